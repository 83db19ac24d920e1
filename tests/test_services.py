import os
import sys
import shutil
import datetime
import tempfile
import threading
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from catalog_service import CatalogService, MetadataCache
from db import (
    TemplateWorkoutRepository,
    TemplateDayRepository,
    TemplateExerciseRepository,
    UserWorkoutRepository,
    PrescriptionRepository,
    SessionRepository,
)
from errors import (
    InvalidDate,
    NoActivePlan,
    NotAuthorized,
    NotFoundError,
    PlanAlreadyExists,
    UpstreamUnavailable,
    ValidationError,
)
from history_service import HistoryService
from plan_service import PlanService, CANCEL_CONFIRMATION
from prescription_service import PrescriptionService
from schedule_service import ScheduleService
from session_service import SessionService

TODAY = datetime.date(2024, 3, 10)


class StubCatalogClient:
    def __init__(self, failing=("200",)) -> None:
        self.failing = set(failing)

    def fetch(self, exercise_id: str) -> dict:
        if exercise_id in self.failing:
            raise UpstreamUnavailable(f"timeout for {exercise_id}")
        return {"name": f"Exercise {exercise_id}", "gifUrl": f"http://img/{exercise_id}.gif"}


def build_template(db_path: str) -> int:
    """Three day cycle: chest/triceps, legs, then a rest day."""
    templates = TemplateWorkoutRepository(db_path)
    days = TemplateDayRepository(db_path)
    exercises = TemplateExerciseRepository(db_path)
    tid = templates.create("Test Split", 3, "three day cycle", "beginner")
    days.set_day(tid, 1, ["chest", "triceps"])
    days.set_day(tid, 2, ["legs"])
    exercises.add(tid, "100", "chest", 3, 10, 90)
    exercises.add(tid, "200", "triceps", 3, 12, 60)
    exercises.add(tid, "300", "legs", 4, 8, 120)
    exercises.add(tid, "400", "core", 3, 15, 45)
    return tid


class ServiceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.tmpdir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.tmpdir, "workout.db")
        self.template_id = build_template(self.db_path)
        self.plans_repo = UserWorkoutRepository(self.db_path)
        self.prescriptions_repo = PrescriptionRepository(self.db_path)
        self.sessions_repo = SessionRepository(self.db_path)
        self.catalog = CatalogService(StubCatalogClient(), MetadataCache())
        self.plans = PlanService(
            self.plans_repo,
            TemplateWorkoutRepository(self.db_path),
            TemplateExerciseRepository(self.db_path),
            clock=lambda: TODAY,
        )
        self.schedule = ScheduleService(self.plans, TemplateDayRepository(self.db_path))
        self.prescriptions = PrescriptionService(self.plans_repo, self.prescriptions_repo)
        self.sessions = SessionService(
            self.plans,
            self.schedule,
            self.prescriptions_repo,
            self.sessions_repo,
            self.catalog,
        )
        self.history = HistoryService(self.sessions_repo, self.catalog)

    def tearDown(self) -> None:
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def _activate(self, user: str = "alice", start: str = "2024-03-01") -> dict:
        return self.plans.activate(user, self.template_id, start, 100, 80, 120)


class PlanServiceTest(ServiceTestCase):
    def test_activation_derives_loads(self) -> None:
        plan = self._activate()
        self.assertEqual(plan["current_day_index"], 1)
        self.assertEqual(plan["start_date"], "2024-03-01")
        weights = {
            p["exercise_id"]: p["weight"]
            for p in self.prescriptions.list_exercises("alice")
        }
        self.assertEqual(weights, {"100": 48.0, "200": 40.0, "300": 70.0, "400": 72.0})

    def test_second_active_plan_conflicts(self) -> None:
        self._activate()
        with self.assertRaises(PlanAlreadyExists):
            self._activate()
        self.assertEqual(len(self.plans_repo.fetch_for_user("alice")), 1)
        self._activate("bob")

    def test_concurrent_activation_allows_one(self) -> None:
        results: list[str] = []
        barrier = threading.Barrier(4)

        def worker() -> None:
            barrier.wait()
            try:
                self._activate("carol")
                results.append("ok")
            except PlanAlreadyExists:
                results.append("conflict")

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(results.count("ok"), 1)
        self.assertEqual(results.count("conflict"), 3)
        plans = self.plans_repo.fetch_for_user("carol")
        self.assertEqual(len(plans), 1)
        self.assertEqual(len(self.prescriptions_repo.fetch_for_plan(plans[0]["id"])), 4)

    def test_activation_validation(self) -> None:
        with self.assertRaises(ValidationError):
            self.plans.activate("alice", self.template_id, "2024-03-01", 0, 80, 120)
        with self.assertRaises(ValidationError):
            self.plans.activate("alice", self.template_id, "2024-03-01", "heavy", 80, 120)
        with self.assertRaises(InvalidDate):
            self.plans.activate("alice", self.template_id, "yesterday", 100, 80, 120)
        with self.assertRaises(NotFoundError):
            self.plans.activate("alice", 999, "2024-03-01", 100, 80, 120)
        self.assertIsNone(self.plans_repo.fetch_active("alice"))

    def test_cancel_requires_exact_phrase(self) -> None:
        plan = self._activate()
        with self.assertRaises(ValidationError):
            self.plans.cancel("alice", "i want to cancel")
        with self.assertRaises(ValidationError):
            self.plans.cancel("alice", None)
        self.assertEqual(self.plans.cancel("alice", CANCEL_CONFIRMATION), plan["id"])
        with self.assertRaises(NoActivePlan):
            self.plans.cancel("alice", CANCEL_CONFIRMATION)
        new_plan = self._activate()
        self.assertNotEqual(new_plan["id"], plan["id"])

    def test_day_counter_refresh_is_monotonic(self) -> None:
        self._activate()
        self.assertEqual(
            self.plans.refresh_day_counter("alice"),
            {"updated": True, "current_day_index": 10},
        )
        self.assertEqual(
            self.plans.refresh_day_counter("alice"),
            {"updated": False, "current_day_index": 10},
        )
        self.plans.clock = lambda: datetime.date(2024, 3, 5)
        self.assertEqual(self.plans.refresh_day_counter("alice")["current_day_index"], 10)

    def test_no_plan(self) -> None:
        with self.assertRaises(NoActivePlan):
            self.plans.summary("nobody")


class ScheduleServiceTest(ServiceTestCase):
    def test_today_and_upcoming(self) -> None:
        self._activate()
        data = self.schedule.today("alice")
        self.assertEqual(data["current_day_index"], 10)
        self.assertEqual(data["today"]["day_index"], 1)
        self.assertEqual(data["today"]["muscle_groups"], ["chest", "triceps"])
        self.assertEqual(data["upcoming"]["day_index"], 2)
        self.assertEqual(data["upcoming"]["muscle_groups"], ["legs"])

    def test_week_schedule_follows_calendar(self) -> None:
        self._activate()
        days = self.schedule.schedule("alice")["days"]
        self.assertEqual(len(days), 7)
        self.assertEqual([d["day_index"] for d in days], [1, 2, 3, 1, 2, 3, 1])
        self.assertEqual(days[0]["date"], "2024-03-10")
        self.assertTrue(days[2]["rest_day"])
        self.assertEqual(days[2]["muscle_groups"], [])

    def test_schedule_before_start(self) -> None:
        self._activate(start="2024-03-12")
        days = self.schedule.schedule("alice")["days"]
        self.assertIsNone(days[0]["day_index"])
        self.assertIsNone(days[1]["day_index"])
        self.assertEqual(days[2]["day_index"], 1)
        self.assertEqual(self.schedule.today("alice")["current_day_index"], 1)

    def test_rest_day_lookup(self) -> None:
        self.assertEqual(self.schedule.resolve_muscle_groups(self.template_id, 3), [])
        self.assertEqual(
            self.schedule.resolve_muscle_groups(self.template_id, 2), ["legs"]
        )


class PrescriptionServiceTest(ServiceTestCase):
    def test_add_requires_plan(self) -> None:
        with self.assertRaises(NoActivePlan):
            self.prescriptions.add_exercise("alice", "500", "legs", 3, 10)

    def test_add_allows_duplicates_with_defaults(self) -> None:
        self._activate()
        first = self.prescriptions.add_exercise("alice", "300", "legs", 3, 10)
        second = self.prescriptions.add_exercise("alice", "300", "legs", 2, 6, 90.5, 150)
        self.assertEqual(first["weight"], 0)
        self.assertEqual(first["rest_time"], 60)
        self.assertEqual(second["weight"], 90.5)
        legs = [
            p for p in self.prescriptions.list_exercises("alice") if p["exercise_id"] == "300"
        ]
        self.assertEqual(len(legs), 3)

    def test_add_validation(self) -> None:
        self._activate()
        with self.assertRaises(ValidationError):
            self.prescriptions.add_exercise("alice", "500", "legs", "three", 10)
        with self.assertRaises(ValidationError):
            self.prescriptions.add_exercise("alice", "500", "legs", 0, 10)
        with self.assertRaises(ValidationError):
            self.prescriptions.add_exercise("alice", "", "legs", 3, 10)
        with self.assertRaises(ValidationError):
            self.prescriptions.add_exercise("alice", "500", "legs", 3, 10, weight=-1)

    def test_replace_keeps_weight(self) -> None:
        self._activate()
        pid = self.prescriptions.list_exercises("alice")[0]["id"]
        updated = self.prescriptions.replace_exercise("alice", pid, "101", 5, 5, 180)
        self.assertEqual(updated["exercise_id"], "101")
        self.assertEqual(updated["sets"], 5)
        self.assertEqual(updated["weight"], 48.0)
        self.assertEqual(updated["muscle_group"], "chest")
        moved = self.prescriptions.replace_exercise("alice", pid, "101", 5, 5, 180, "back")
        self.assertEqual(moved["muscle_group"], "back")

    def test_ownership_enforced(self) -> None:
        self._activate("alice")
        self._activate("bob")
        alice_pid = self.prescriptions.list_exercises("alice")[0]["id"]
        with self.assertRaises(NotAuthorized):
            self.prescriptions.replace_exercise("bob", alice_pid, "999", 1, 1, 0)
        with self.assertRaises(NotAuthorized):
            self.prescriptions.delete_exercise("bob", alice_pid)
        detail = self.prescriptions_repo.fetch_detail(alice_pid)
        self.assertEqual(detail["exercise_id"], "100")
        self.assertEqual(detail["sets"], 3)
        with self.assertRaises(NotFoundError):
            self.prescriptions.delete_exercise("alice", 9999)

    def test_delete_keeps_logs(self) -> None:
        self._activate()
        pid = self.prescriptions.list_exercises("alice")[0]["id"]
        self.sessions.save_session(
            "alice",
            "2024-03-04",
            [{"exercise_id": "100", "set_number": 1, "weight": 50, "reps": 10, "completed": True}],
        )
        self.prescriptions.delete_exercise("alice", pid)
        detail = self.history.get_day_detail("alice", "2024-03-04")
        self.assertEqual(detail["exercises"][0]["exercise_id"], "100")
        self.assertIsNone(detail["exercises"][0]["muscle_group"])


class SessionServiceTest(ServiceTestCase):
    def _entries(self) -> list[dict]:
        return [
            {"exercise_id": "100", "set_number": 2, "weight": 50.0, "reps": 8, "effort": "hard", "completed": True},
            {"exercise_id": "100", "set_number": 1, "weight": 50.0, "reps": 10, "effort": "normal", "completed": True},
            {"exercise_id": "200", "set_number": 1, "weight": 42.5, "reps": 12, "effort": "easy", "completed": False},
        ]

    def test_defaults_without_logs(self) -> None:
        self._activate()
        view = self.sessions.get_day_view("alice", "2024-03-04")
        self.assertEqual(view["day_index"], 1)
        self.assertFalse(view["rest_day"])
        self.assertEqual(sorted(view["exercises"]), ["chest", "triceps"])
        chest = view["exercises"]["chest"][0]
        self.assertEqual(len(chest["sets"]), 3)
        self.assertEqual(
            chest["sets"][0],
            {"set_number": 1, "weight": 48.0, "reps": 10, "completed": False, "effort": "normal"},
        )
        self.assertEqual(chest["details"]["name"], "Exercise 100")
        self.assertIsNone(view["exercises"]["triceps"][0]["details"])

    def test_rest_day_view(self) -> None:
        self._activate()
        view = self.sessions.get_day_view("alice", "2024-03-03")
        self.assertEqual(view["day_index"], 3)
        self.assertTrue(view["rest_day"])
        self.assertEqual(view["exercises"], {})

    def test_date_before_start(self) -> None:
        self._activate()
        with self.assertRaises(InvalidDate):
            self.sessions.get_day_view("alice", "2024-02-28")
        with self.assertRaises(InvalidDate):
            self.sessions.save_session("alice", "2024-02-28", [])

    def test_save_then_read_returns_submitted_sets(self) -> None:
        self._activate()
        self.sessions.save_session("alice", "2024-03-04", [
            {"exercise_id": "100", "set_number": 1, "weight": 10, "reps": 1, "completed": False},
            {"exercise_id": "100", "set_number": 3, "weight": 10, "reps": 1, "completed": False},
        ])
        result = self.sessions.save_session("alice", "2024-03-04", self._entries())
        self.assertEqual(result["log_count"], 3)
        self.assertEqual(result["day_index"], 1)
        view = self.sessions.get_day_view("alice", "2024-03-04")
        chest = view["exercises"]["chest"][0]["sets"]
        self.assertEqual(
            chest,
            [
                {"set_number": 1, "weight": 50.0, "reps": 10, "completed": True, "effort": "normal"},
                {"set_number": 2, "weight": 50.0, "reps": 8, "completed": True, "effort": "hard"},
            ],
        )
        triceps = view["exercises"]["triceps"][0]["sets"]
        self.assertEqual(
            triceps,
            [{"set_number": 1, "weight": 42.5, "reps": 12, "completed": False, "effort": "easy"}],
        )

    def test_save_is_idempotent(self) -> None:
        self._activate()
        first = self.sessions.save_session("alice", "2024-03-04", self._entries())
        once = self.sessions.get_day_view("alice", "2024-03-04")
        second = self.sessions.save_session("alice", "2024-03-04", self._entries())
        self.assertEqual(first["session_id"], second["session_id"])
        self.assertEqual(self.sessions.get_day_view("alice", "2024-03-04"), once)

    def test_empty_save_keeps_session(self) -> None:
        plan = self._activate()
        self.sessions.save_session("alice", "2024-03-04", self._entries())
        result = self.sessions.save_session("alice", "2024-03-04", [])
        self.assertEqual(result["log_count"], 0)
        session = self.sessions_repo.fetch(plan["id"], "2024-03-04")
        self.assertTrue(session["completed"])
        self.assertEqual(self.sessions_repo.fetch_logs(session["id"]), [])
        view = self.sessions.get_day_view("alice", "2024-03-04")
        self.assertEqual(len(view["exercises"]["chest"][0]["sets"]), 3)

    def test_logs_not_checked_against_prescriptions(self) -> None:
        self._activate()
        self.sessions.save_session(
            "alice",
            "2024-03-04",
            [{"exercise_id": "777", "set_number": 1, "weight": 5, "reps": 5, "rpe": "hard"}],
        )
        detail = self.history.get_day_detail("alice", "2024-03-04")
        self.assertEqual(detail["exercises"][0]["exercise_id"], "777")
        self.assertEqual(detail["exercises"][0]["sets"][0]["effort"], "hard")

    def test_rest_day_cannot_be_saved(self) -> None:
        self._activate()
        with self.assertRaises(ValidationError):
            self.sessions.save_session("alice", "2024-03-03", self._entries())

    def test_invalid_entries_leave_previous_state(self) -> None:
        plan = self._activate()
        self.sessions.save_session("alice", "2024-03-04", self._entries())
        bad = self._entries() + [
            {"exercise_id": "100", "set_number": 1, "weight": 1, "reps": 1}
        ]
        with self.assertRaises(ValidationError):
            self.sessions.save_session("alice", "2024-03-04", bad)
        with self.assertRaises(ValidationError):
            self.sessions.save_session(
                "alice", "2024-03-04", [{"exercise_id": "100", "set_number": 0}]
            )
        with self.assertRaises(ValidationError):
            self.sessions.save_session(
                "alice", "2024-03-04", [{"exercise_id": "100", "set_number": 1, "weight": "x"}]
            )
        session = self.sessions_repo.fetch(plan["id"], "2024-03-04")
        self.assertEqual(len(self.sessions_repo.fetch_logs(session["id"])), 3)

    def test_session_meta(self) -> None:
        self._activate()
        with self.assertRaises(NotFoundError):
            self.sessions.update_session_meta("alice", "2024-03-04", 1800, "felt good")
        self.sessions.save_session("alice", "2024-03-04", self._entries())
        session = self.sessions.update_session_meta("alice", "2024-03-04", 1800, "felt good")
        self.assertEqual(session["duration_seconds"], 1800)
        self.assertEqual(session["notes"], "felt good")
        session = self.sessions.update_session_meta("alice", "2024-03-04", notes="edited")
        self.assertEqual(session["duration_seconds"], 1800)
        self.assertEqual(session["notes"], "edited")


class HistoryServiceTest(ServiceTestCase):
    def test_month_rollup(self) -> None:
        self._activate()
        self.sessions.save_session("alice", "2024-03-04", [
            {"exercise_id": "100", "set_number": 1, "weight": 50, "reps": 10, "completed": True},
            {"exercise_id": "100", "set_number": 2, "weight": 50, "reps": 10, "completed": True},
            {"exercise_id": "200", "set_number": 1, "weight": 40, "reps": 12, "completed": True},
        ])
        self.sessions.save_session("alice", "2024-03-05", [])
        self.sessions.save_session("alice", "2024-04-01", [
            {"exercise_id": "100", "set_number": 1, "weight": 50, "reps": 10},
        ])
        march = self.history.list_month("alice", 2024, 3)
        self.assertEqual(
            march,
            {
                "2024-03-04": {"name": "Test Split", "completed": True, "exercise_count": 2},
                "2024-03-05": {"name": "Test Split", "completed": True, "exercise_count": 0},
            },
        )
        self.assertEqual(list(self.history.list_month("alice", 2024, 4)), ["2024-04-01"])
        self.assertEqual(self.history.list_month("bob", 2024, 3), {})
        with self.assertRaises(ValidationError):
            self.history.list_month("alice", 2024, 13)

    def test_day_detail_with_degraded_metadata(self) -> None:
        self._activate()
        self.sessions.save_session("alice", "2024-03-04", [
            {"exercise_id": "200", "set_number": 2, "weight": 40, "reps": 10, "completed": True},
            {"exercise_id": "100", "set_number": 1, "weight": 50, "reps": 10, "completed": True},
            {"exercise_id": "200", "set_number": 1, "weight": 40, "reps": 12, "completed": True},
        ])
        detail = self.history.get_day_detail("alice", "2024-03-04")
        self.assertEqual(detail["name"], "Test Split")
        self.assertTrue(detail["completed"])
        self.assertEqual(detail["day_index"], 1)
        self.assertEqual([e["exercise_id"] for e in detail["exercises"]], ["100", "200"])
        chest, triceps = detail["exercises"]
        self.assertEqual(chest["name"], "Exercise 100")
        self.assertEqual(chest["image"], "http://img/100.gif")
        self.assertEqual(chest["muscle_group"], "chest")
        self.assertEqual(triceps["name"], "Unknown Exercise")
        self.assertEqual(triceps["image"], "")
        self.assertEqual([s["set_number"] for s in triceps["sets"]], [1, 2])

    def test_history_survives_cancel(self) -> None:
        self._activate()
        self.sessions.save_session("alice", "2024-03-04", [
            {"exercise_id": "100", "set_number": 1, "weight": 50, "reps": 10, "completed": True},
        ])
        self.plans.cancel("alice", CANCEL_CONFIRMATION)
        self.assertIn("2024-03-04", self.history.list_month("alice", 2024, 3))
        self.assertIsNotNone(self.history.get_day_detail("alice", "2024-03-04"))

    def test_missing_day(self) -> None:
        self._activate()
        self.assertIsNone(self.history.get_day_detail("alice", "2024-03-06"))


if __name__ == "__main__":
    unittest.main()
