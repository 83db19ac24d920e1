from __future__ import annotations

import datetime
from typing import Callable

from algorithms import CycleResolver
from db import TemplateDayRepository
from plan_service import PlanService


class ScheduleService:
    """Date-facing reads of where a plan sits in its training cycle.

    Every day-index is computed directly from the plan start date. The stored
    elapsed-day counter is refreshed before each view but is never used for
    cycle arithmetic.
    """

    def __init__(
        self,
        plan_service: PlanService,
        template_day_repo: TemplateDayRepository,
        clock: Callable[[], datetime.date] | None = None,
    ) -> None:
        self.plans = plan_service
        self.template_days = template_day_repo
        self.clock = clock or plan_service.clock

    def resolve_muscle_groups(self, template_id: int, day_index: int) -> list[str]:
        return self.template_days.fetch_muscle_groups(template_id, day_index)

    def template_days_for(self, template_id: int) -> list[dict]:
        return [
            {"day_index": idx, "muscle_groups": groups}
            for idx, groups in self.template_days.fetch_for_template(template_id)
        ]

    def day_entry(self, plan: dict, date: datetime.date) -> dict:
        if date < CycleResolver.parse_date(plan["start_date"]):
            return {
                "date": date.isoformat(),
                "day_index": None,
                "name": "Not started",
                "muscle_groups": [],
                "rest_day": True,
            }
        day_index = CycleResolver.resolve_day(
            plan["start_date"], plan["cycle_days"], date
        )
        groups = self.resolve_muscle_groups(plan["template_id"], day_index)
        return {
            "date": date.isoformat(),
            "day_index": day_index,
            "name": f"Day {day_index}",
            "muscle_groups": groups,
            "rest_day": not groups,
        }

    def today(self, user_id: str) -> dict:
        counter = self.plans.refresh_day_counter(user_id)
        plan = self.plans.require_active(user_id)
        today = self.clock()
        return {
            "current_day_index": counter["current_day_index"],
            "today": self.day_entry(plan, today),
            "upcoming": self.day_entry(plan, today + datetime.timedelta(days=1)),
        }

    def schedule(self, user_id: str, days: int = 7) -> dict:
        counter = self.plans.refresh_day_counter(user_id)
        plan = self.plans.require_active(user_id)
        return {
            "current_day_index": counter["current_day_index"],
            "days": [
                self.day_entry(plan, d)
                for d in CycleResolver.window(self.clock(), days)
            ],
        }
