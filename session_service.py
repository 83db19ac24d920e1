from __future__ import annotations

import datetime
import logging
from typing import Iterable, Optional

from algorithms import CycleResolver
from catalog_service import CatalogService
from db import PrescriptionRepository, SessionRepository
from errors import NotFoundError, ValidationError
from plan_service import PlanService
from schedule_service import ScheduleService
from validation import require_int, require_number, require_text

logger = logging.getLogger(__name__)

DEFAULT_EFFORT = "normal"


class SessionService:
    """Reconciles saved per-set logs with plan prescriptions for a date."""

    def __init__(
        self,
        plan_service: PlanService,
        schedule_service: ScheduleService,
        prescription_repo: PrescriptionRepository,
        session_repo: SessionRepository,
        catalog: CatalogService | None = None,
    ) -> None:
        self.plans = plan_service
        self.schedule = schedule_service
        self.prescriptions = prescription_repo
        self.sessions = session_repo
        self.catalog = catalog

    def _resolve(self, plan: dict, date: datetime.date) -> tuple[int, list[str]]:
        day_index = CycleResolver.resolve_day(
            plan["start_date"], plan["cycle_days"], date
        )
        return day_index, self.schedule.resolve_muscle_groups(
            plan["template_id"], day_index
        )

    @staticmethod
    def _default_sets(sets: int, weight: float, reps: int) -> list[dict]:
        return [
            {
                "set_number": n,
                "weight": weight or 0,
                "reps": reps or 0,
                "completed": False,
                "effort": DEFAULT_EFFORT,
            }
            for n in range(1, sets + 1)
        ]

    def _logged_sets(self, plan_id: int, date: str) -> dict[str, list[dict]]:
        session = self.sessions.fetch(plan_id, date)
        if session is None:
            return {}
        logged: dict[str, list[dict]] = {}
        for ex_id, set_number, weight, reps, effort, completed, _notes in self.sessions.fetch_logs(
            session["id"]
        ):
            logged.setdefault(ex_id, []).append(
                {
                    "set_number": set_number,
                    "weight": weight,
                    "reps": reps,
                    "completed": bool(completed),
                    "effort": effort,
                }
            )
        for sets in logged.values():
            sets.sort(key=lambda s: s["set_number"])
        return logged

    def get_day_view(self, user_id: str, date: datetime.date | str) -> dict:
        """Return the exercises due on ``date`` grouped by muscle group.

        Logged sets replace the prescription defaults exercise by exercise.
        A rest day yields an empty ``exercises`` mapping.
        """
        plan = self.plans.require_active(user_id)
        day = CycleResolver.parse_date(date)
        day_index, groups = self._resolve(plan, day)
        view = {
            "date": day.isoformat(),
            "day_index": day_index,
            "rest_day": not groups,
            "exercises": {},
        }
        if not groups:
            return view

        due = [
            row
            for row in self.prescriptions.fetch_for_plan(plan["id"])
            if row[6] in groups
        ]
        logged = self._logged_sets(plan["id"], day.isoformat())
        details: dict[str, Optional[dict]] = {}
        if self.catalog is not None and due:
            details = self.catalog.lookup_many(row[1] for row in due)

        grouped: dict[str, list[dict]] = {}
        for pid, ex_id, sets, reps, weight, rest_time, group in due:
            grouped.setdefault(group, []).append(
                {
                    "id": pid,
                    "exercise_id": ex_id,
                    "sets": logged.get(ex_id) or self._default_sets(sets, weight, reps),
                    "reps": reps,
                    "weight": weight,
                    "rest_time": rest_time,
                    "details": details.get(str(ex_id)),
                }
            )
        view["exercises"] = grouped
        return view

    @staticmethod
    def _normalize_entries(entries: Iterable[dict]) -> list[dict]:
        normalized: list[dict] = []
        seen: set[tuple[str, int]] = set()
        for raw in entries:
            if not isinstance(raw, dict):
                raise ValidationError("each log entry must be an object")
            entry = {
                "exercise_id": require_text("exercise_id", raw.get("exercise_id")),
                "set_number": require_int("set_number", raw.get("set_number"), minimum=1),
                "weight": require_number("weight", raw.get("weight", 0)),
                "reps": require_int("reps", raw.get("reps", 0)),
                "effort": str(raw.get("effort") or raw.get("rpe") or DEFAULT_EFFORT),
                "completed": bool(raw.get("completed", False)),
                "notes": raw.get("notes"),
            }
            key = (entry["exercise_id"], entry["set_number"])
            if key in seen:
                raise ValidationError(
                    f"duplicate set {entry['set_number']} for exercise {entry['exercise_id']}"
                )
            seen.add(key)
            normalized.append(entry)
        return normalized

    def save_session(
        self, user_id: str, date: datetime.date | str, entries: Iterable[dict]
    ) -> dict:
        """Replace every log of the session on ``date`` with ``entries``.

        Entries are stored as submitted; nothing is checked against the
        current prescriptions. An empty list leaves an existing, completed
        session without logs.
        """
        if entries is None:
            raise ValidationError("exercises must be a list")
        normalized = self._normalize_entries(entries)
        plan = self.plans.require_active(user_id)
        day = CycleResolver.parse_date(date)
        day_index, groups = self._resolve(plan, day)
        if not groups:
            raise ValidationError("rest days cannot be logged")
        session_id, count = self.sessions.replace_logs(
            plan["id"], day.isoformat(), day_index, normalized
        )
        logger.info(
            "Saved %d set logs for plan %s on %s (session %s)",
            count,
            plan["id"],
            day.isoformat(),
            session_id,
        )
        return {
            "session_id": session_id,
            "date": day.isoformat(),
            "day_index": day_index,
            "log_count": count,
        }

    def update_session_meta(
        self,
        user_id: str,
        date: datetime.date | str,
        duration_seconds: int | None = None,
        notes: str | None = None,
    ) -> dict:
        plan = self.plans.require_active(user_id)
        day = CycleResolver.parse_date(date).isoformat()
        if duration_seconds is not None:
            duration_seconds = require_int("duration_seconds", duration_seconds)
        if not self.sessions.update_meta(plan["id"], day, duration_seconds, notes):
            raise NotFoundError("session not found")
        return self.sessions.fetch(plan["id"], day)
