import requests
from typing import Optional


class TrainingClient:
    """Simple REST client for the training cycle API."""

    def __init__(
        self,
        user_id: str,
        base_url: str = "http://localhost:8000",
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.session.headers.update({"X-User-Id": user_id})
        self.timeout = timeout

    def _request(self, method: str, path: str, **kwargs):
        resp = self.session.request(
            method, f"{self.base_url}{path}", timeout=self.timeout, **kwargs
        )
        resp.raise_for_status()
        return resp.json()

    def list_templates(self):
        return self._request("GET", "/workouts")

    def activate_plan(
        self,
        template_id: int,
        start_date: str,
        squat: float,
        bench: float,
        deadlift: float,
    ) -> int:
        data = self._request(
            "POST",
            "/user-workouts",
            json={
                "template_id": template_id,
                "start_date": start_date,
                "squat_weight": squat,
                "bench_weight": bench,
                "deadlift_weight": deadlift,
            },
        )
        return data["id"]

    def cancel_plan(self, confirmation: str):
        return self._request(
            "DELETE", "/user-workouts/cancel", params={"confirmation": confirmation}
        )

    def today(self):
        return self._request("GET", "/workouts/today")

    def schedule(self):
        return self._request("GET", "/workouts/schedule")

    def day_view(self, date: str):
        return self._request("GET", "/workouts/detail", params={"date": date})

    def save_log(self, date: str, exercises: list[dict]):
        return self._request(
            "POST", "/workouts/save-log", json={"date": date, "exercises": exercises}
        )

    def history(self, year: int, month: int):
        return self._request(
            "GET", "/workouts/history", params={"year": year, "month": month}
        )

    def history_day(self, date: str):
        return self._request("GET", f"/workouts/history/{date}")

    def exercises(self):
        return self._request("GET", "/workouts/exercises")

    def add_exercise(
        self,
        exercise_id: str,
        muscle_group: str,
        sets: int,
        reps: int,
        weight: float = 0,
        rest_time: int = 60,
    ):
        return self._request(
            "POST",
            "/workouts/exercise",
            json={
                "exercise_id": exercise_id,
                "muscle_group": muscle_group,
                "sets": sets,
                "reps": reps,
                "weight": weight,
                "rest_time": rest_time,
            },
        )

    def replace_exercise(
        self, prescription_id: int, exercise_id: str, sets: int, reps: int, rest_time: int = 60
    ):
        return self._request(
            "PUT",
            f"/workouts/exercise/{prescription_id}",
            json={
                "exercise_id": exercise_id,
                "sets": sets,
                "reps": reps,
                "rest_time": rest_time,
            },
        )

    def delete_exercise(self, prescription_id: int):
        return self._request("DELETE", f"/workouts/exercise/{prescription_id}")

    def update_session_meta(
        self, date: str, duration_seconds: Optional[int] = None, notes: Optional[str] = None
    ):
        return self._request(
            "PUT",
            "/workouts/session-meta",
            json={"date": date, "duration_seconds": duration_seconds, "notes": notes},
        )
