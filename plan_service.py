from __future__ import annotations

import datetime
import logging
from typing import Callable

from algorithms import CycleResolver, LoadDerivation
from db import (
    TemplateWorkoutRepository,
    TemplateExerciseRepository,
    UserWorkoutRepository,
)
from errors import NoActivePlan, ValidationError
from validation import require_number, require_text

logger = logging.getLogger(__name__)

CANCEL_CONFIRMATION = "I want to cancel"


class PlanService:
    """Creates, inspects and cancels a user's single active training plan."""

    def __init__(
        self,
        plan_repo: UserWorkoutRepository,
        template_repo: TemplateWorkoutRepository,
        template_exercise_repo: TemplateExerciseRepository,
        clock: Callable[[], datetime.date] = datetime.date.today,
    ) -> None:
        self.plans = plan_repo
        self.templates = template_repo
        self.template_exercises = template_exercise_repo
        self.clock = clock

    def activate(
        self,
        user_id: str,
        template_id: int,
        start_date: datetime.date | str,
        squat: float,
        bench: float,
        deadlift: float,
    ) -> dict:
        """Start a plan from ``template_id`` with a one-rep-max baseline.

        Each template exercise becomes a prescription whose weight follows
        :class:`LoadDerivation`. The plan row and its prescriptions are
        written in one transaction, and a second active plan for the same
        user is rejected by the store with ``PlanAlreadyExists``.
        """
        user_id = require_text("user_id", user_id)
        start = CycleResolver.parse_date(start_date)
        squat = require_number("squat_weight", squat, strict=True)
        bench = require_number("bench_weight", bench, strict=True)
        deadlift = require_number("deadlift_weight", deadlift, strict=True)
        self.templates.fetch_detail(template_id)

        prescriptions = [
            (
                ex_id,
                sets,
                reps,
                LoadDerivation.initial_weight(group, squat, bench, deadlift),
                rest_time,
                group,
            )
            for _row_id, ex_id, sets, reps, rest_time, group in self.template_exercises.fetch_for_template(
                template_id
            )
        ]
        plan_id = self.plans.activate(
            user_id,
            template_id,
            start.isoformat(),
            squat,
            bench,
            deadlift,
            prescriptions,
        )
        logger.info(
            "Activated plan %s for user %s from template %s with %d exercises",
            plan_id,
            user_id,
            template_id,
            len(prescriptions),
        )
        return self.require_active(user_id)

    def require_active(self, user_id: str) -> dict:
        plan = self.plans.fetch_active(user_id)
        if plan is None:
            raise NoActivePlan()
        return plan

    def refresh_day_counter(self, user_id: str) -> dict:
        """Recompute the elapsed-day counter from the start date."""
        plan = self.require_active(user_id)
        value = CycleResolver.elapsed_days(plan["start_date"], self.clock())
        updated = self.plans.advance_day_counter(plan["id"], value)
        return {
            "updated": updated,
            "current_day_index": max(value, plan["current_day_index"]),
        }

    def summary(self, user_id: str) -> dict:
        plan = self.require_active(user_id)
        counter = self.refresh_day_counter(user_id)
        return {
            "id": plan["id"],
            "template_id": plan["template_id"],
            "template_name": plan["template_name"],
            "cycle_days": plan["cycle_days"],
            "start_date": plan["start_date"],
            "squat_weight": plan["squat_weight"],
            "bench_weight": plan["bench_weight"],
            "deadlift_weight": plan["deadlift_weight"],
            "current_day_index": counter["current_day_index"],
        }

    def cancel(self, user_id: str, confirmation: str | None) -> int:
        """Deactivate the user's plan after an exact confirmation phrase.

        Sessions and logs stay queryable through the history views.
        """
        if confirmation != CANCEL_CONFIRMATION:
            raise ValidationError(
                f"confirmation must be exactly '{CANCEL_CONFIRMATION}'"
            )
        plan = self.require_active(user_id)
        if not self.plans.deactivate(plan["id"]):
            raise NoActivePlan()
        logger.info("Cancelled plan %s for user %s", plan["id"], user_id)
        return plan["id"]
