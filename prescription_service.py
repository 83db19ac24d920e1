from __future__ import annotations

import logging

from db import PrescriptionRepository, UserWorkoutRepository
from errors import NoActivePlan, NotAuthorized, NotFoundError
from validation import require_int, require_number, require_text

logger = logging.getLogger(__name__)


class PrescriptionService:
    """Edits the exercises of a user's active plan independently of its template."""

    def __init__(
        self,
        plan_repo: UserWorkoutRepository,
        prescription_repo: PrescriptionRepository,
    ) -> None:
        self.plans = plan_repo
        self.prescriptions = prescription_repo

    def _active_plan_id(self, user_id: str) -> int:
        plan = self.plans.fetch_active(user_id)
        if plan is None:
            raise NoActivePlan()
        return plan["id"]

    def list_exercises(self, user_id: str) -> list[dict]:
        plan_id = self._active_plan_id(user_id)
        return [
            {
                "id": pid,
                "exercise_id": ex_id,
                "sets": sets,
                "reps": reps,
                "weight": weight,
                "rest_time": rest,
                "muscle_group": group,
            }
            for pid, ex_id, sets, reps, weight, rest, group in self.prescriptions.fetch_for_plan(
                plan_id
            )
        ]

    def add_exercise(
        self,
        user_id: str,
        exercise_id: str,
        muscle_group: str,
        sets: int,
        reps: int,
        weight: float = 0,
        rest_time: int = 60,
    ) -> dict:
        """Append a prescription; the same catalog exercise may appear twice."""
        exercise_id = require_text("exercise_id", exercise_id)
        muscle_group = require_text("muscle_group", muscle_group)
        sets = require_int("sets", sets, minimum=1)
        reps = require_int("reps", reps, minimum=1)
        weight = require_number("weight", weight)
        rest_time = require_int("rest_time", rest_time)
        plan_id = self._active_plan_id(user_id)
        pid = self.prescriptions.add(
            plan_id, exercise_id, sets, reps, weight, rest_time, muscle_group
        )
        return self.prescriptions.fetch_detail(pid)

    def replace_exercise(
        self,
        user_id: str,
        prescription_id: int,
        exercise_id: str,
        sets: int,
        reps: int,
        rest_time: int = 60,
        muscle_group: str | None = None,
    ) -> dict:
        """Point a prescription at another exercise going forward.

        The prescription's weight is kept and logged sessions are not
        rewritten.
        """
        exercise_id = require_text("exercise_id", exercise_id)
        sets = require_int("sets", sets, minimum=1)
        reps = require_int("reps", reps, minimum=1)
        rest_time = require_int("rest_time", rest_time)
        if muscle_group is not None:
            muscle_group = require_text("muscle_group", muscle_group)
        if not self.prescriptions.exists(prescription_id):
            raise NotFoundError("exercise not found")
        if not self.prescriptions.update_owned(
            prescription_id, user_id, exercise_id, sets, reps, rest_time, muscle_group
        ):
            logger.warning(
                "User %s tried to replace exercise %s outside their plan",
                user_id,
                prescription_id,
            )
            raise NotAuthorized()
        return self.prescriptions.fetch_detail(prescription_id)

    def delete_exercise(self, user_id: str, prescription_id: int) -> None:
        if not self.prescriptions.exists(prescription_id):
            raise NotFoundError("exercise not found")
        if not self.prescriptions.remove_owned(prescription_id, user_id):
            logger.warning(
                "User %s tried to delete exercise %s outside their plan",
                user_id,
                prescription_id,
            )
            raise NotAuthorized("not authorized to delete this exercise")
