from __future__ import annotations

import datetime
from typing import Optional

from algorithms import CycleResolver
from catalog_service import CatalogService
from db import AsyncSessionRepository, SessionRepository
from validation import require_int

UNKNOWN_EXERCISE = "Unknown Exercise"


class HistoryService:
    """Read-only rollups of committed sessions for calendar and detail views."""

    def __init__(
        self,
        session_repo: SessionRepository,
        catalog: CatalogService | None = None,
        async_session_repo: AsyncSessionRepository | None = None,
    ) -> None:
        self.sessions = session_repo
        self.catalog = catalog
        self.async_sessions = async_session_repo

    @staticmethod
    def _month_map(rows) -> dict[str, dict]:
        data: dict[str, dict] = {}
        for session_date, completed, name, exercise_count in rows:
            data[session_date] = {
                "name": name,
                "completed": bool(completed),
                "exercise_count": exercise_count,
            }
        return data

    def list_month(self, user_id: str, year: int, month: int) -> dict[str, dict]:
        year = require_int("year", year, minimum=1)
        month = require_int("month", month, minimum=1)
        return self._month_map(self.sessions.fetch_month(user_id, year, month))

    async def list_month_async(self, user_id: str, year: int, month: int) -> dict[str, dict]:
        if self.async_sessions is None:
            return self.list_month(user_id, year, month)
        year = require_int("year", year, minimum=1)
        month = require_int("month", month, minimum=1)
        rows = await self.async_sessions.fetch_month(user_id, year, month)
        return self._month_map(rows)

    def get_day_detail(
        self, user_id: str, date: datetime.date | str
    ) -> Optional[dict]:
        """Return the logged session for ``date`` or ``None`` if nothing was saved."""
        day = CycleResolver.parse_date(date).isoformat()
        session = self.sessions.fetch_for_user_date(user_id, day)
        if session is None:
            return None

        exercises: dict[str, dict] = {}
        for ex_id, group, set_number, weight, reps, effort, completed, notes in self.sessions.fetch_detail_logs(
            session["id"]
        ):
            entry = exercises.setdefault(
                ex_id,
                {"exercise_id": ex_id, "muscle_group": group, "sets": []},
            )
            entry["sets"].append(
                {
                    "set_number": set_number,
                    "weight": weight,
                    "reps": reps,
                    "effort": effort,
                    "completed": bool(completed),
                    "notes": notes,
                }
            )

        meta: dict[str, Optional[dict]] = {}
        if self.catalog is not None and exercises:
            meta = self.catalog.lookup_many(exercises.keys())
        for ex_id, entry in exercises.items():
            entry["sets"].sort(key=lambda s: s["set_number"])
            info = CatalogService.summary(meta.get(str(ex_id)))
            entry["name"] = info["name"] or UNKNOWN_EXERCISE
            entry["image"] = info["image"]

        return {
            "date": day,
            "name": session["name"],
            "day_index": session["day_index"],
            "completed": session["completed"],
            "duration": session["duration_seconds"],
            "notes": session["notes"],
            "exercises": list(exercises.values()),
        }
