import datetime

from errors import InvalidDate, ValidationError


class CycleResolver:
    """Maps calendar dates onto positions within a repeating training cycle."""

    @staticmethod
    def parse_date(value: datetime.date | str) -> datetime.date:
        """Return ``value`` as a date, accepting ISO date or datetime strings."""
        if isinstance(value, datetime.datetime):
            return value.date()
        if isinstance(value, datetime.date):
            return value
        if isinstance(value, str):
            text = value.strip()
            try:
                if len(text) > 10:
                    return datetime.datetime.fromisoformat(text).date()
                return datetime.date.fromisoformat(text)
            except ValueError:
                raise InvalidDate(f"invalid date: {value!r}")
        raise InvalidDate(f"invalid date: {value!r}")

    @classmethod
    def days_between(
        cls, start_date: datetime.date | str, target_date: datetime.date | str
    ) -> int:
        start = cls.parse_date(start_date)
        target = cls.parse_date(target_date)
        return (target - start).days

    @classmethod
    def resolve_day(
        cls,
        start_date: datetime.date | str,
        cycle_length: int,
        target_date: datetime.date | str,
    ) -> int:
        """Return the 1-based day-index of ``target_date`` in the cycle.

        Dates before ``start_date`` raise :class:`InvalidDate`; they are
        never clamped onto the first day.
        """
        if isinstance(cycle_length, bool) or not isinstance(cycle_length, int):
            raise ValidationError("cycle length must be an integer")
        if cycle_length < 1:
            raise ValidationError("cycle length must be positive")
        elapsed = cls.days_between(start_date, target_date)
        if elapsed < 0:
            raise InvalidDate("date is before workout start")
        return elapsed % cycle_length + 1

    @classmethod
    def elapsed_days(
        cls, start_date: datetime.date | str, today: datetime.date | str
    ) -> int:
        """Plain day count since the plan started, the start date being day 1."""
        return max(cls.days_between(start_date, today) + 1, 1)

    @classmethod
    def window(
        cls, first: datetime.date | str, days: int = 7
    ) -> list[datetime.date]:
        start = cls.parse_date(first)
        return [start + datetime.timedelta(days=i) for i in range(days)]
