import sqlite3
import aiosqlite
import datetime
from contextlib import contextmanager, asynccontextmanager
from typing import List, Tuple, Optional, Iterable

from errors import NotFoundError, PlanAlreadyExists, StoreError, ValidationError


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "workout_templates": (
            """CREATE TABLE workout_templates (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    description TEXT,
                    difficulty TEXT,
                    cycle_days INTEGER NOT NULL CHECK (cycle_days > 0),
                    image_url TEXT
                );""",
            ["id", "name", "description", "difficulty", "cycle_days", "image_url"],
        ),
        "workout_template_days": (
            """CREATE TABLE workout_template_days (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    template_id INTEGER NOT NULL,
                    day_index INTEGER NOT NULL,
                    muscle_groups TEXT NOT NULL,
                    UNIQUE (template_id, day_index),
                    FOREIGN KEY(template_id) REFERENCES workout_templates(id) ON DELETE CASCADE
                );""",
            ["id", "template_id", "day_index", "muscle_groups"],
        ),
        "workout_template_exercises": (
            """CREATE TABLE workout_template_exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    template_id INTEGER NOT NULL,
                    exercise_id TEXT NOT NULL,
                    sets INTEGER NOT NULL,
                    reps INTEGER NOT NULL,
                    rest_time INTEGER NOT NULL DEFAULT 60,
                    muscle_group TEXT NOT NULL,
                    FOREIGN KEY(template_id) REFERENCES workout_templates(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "template_id",
                "exercise_id",
                "sets",
                "reps",
                "rest_time",
                "muscle_group",
            ],
        ),
        "user_workouts": (
            """CREATE TABLE user_workouts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    template_id INTEGER NOT NULL,
                    start_date TEXT NOT NULL,
                    squat_weight REAL NOT NULL,
                    bench_weight REAL NOT NULL,
                    deadlift_weight REAL NOT NULL,
                    current_day_index INTEGER NOT NULL DEFAULT 1,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT,
                    FOREIGN KEY(template_id) REFERENCES workout_templates(id)
                );""",
            [
                "id",
                "user_id",
                "template_id",
                "start_date",
                "squat_weight",
                "bench_weight",
                "deadlift_weight",
                "current_day_index",
                "is_active",
                "created_at",
            ],
        ),
        "user_workout_exercises": (
            """CREATE TABLE user_workout_exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_workout_id INTEGER NOT NULL,
                    exercise_id TEXT NOT NULL,
                    sets INTEGER NOT NULL,
                    reps INTEGER NOT NULL,
                    weight REAL NOT NULL DEFAULT 0,
                    rest_time INTEGER NOT NULL DEFAULT 60,
                    muscle_group TEXT NOT NULL,
                    FOREIGN KEY(user_workout_id) REFERENCES user_workouts(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "user_workout_id",
                "exercise_id",
                "sets",
                "reps",
                "weight",
                "rest_time",
                "muscle_group",
            ],
        ),
        "user_workout_sessions": (
            """CREATE TABLE user_workout_sessions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_workout_id INTEGER NOT NULL,
                    session_date TEXT NOT NULL,
                    day_index INTEGER NOT NULL,
                    completed INTEGER NOT NULL DEFAULT 0,
                    duration_seconds INTEGER,
                    notes TEXT,
                    UNIQUE (user_workout_id, session_date),
                    FOREIGN KEY(user_workout_id) REFERENCES user_workouts(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "user_workout_id",
                "session_date",
                "day_index",
                "completed",
                "duration_seconds",
                "notes",
            ],
        ),
        "user_exercise_logs": (
            """CREATE TABLE user_exercise_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id INTEGER NOT NULL,
                    user_workout_id INTEGER NOT NULL,
                    exercise_id TEXT NOT NULL,
                    log_date TEXT NOT NULL,
                    set_number INTEGER NOT NULL,
                    weight REAL NOT NULL,
                    reps INTEGER NOT NULL,
                    rpe TEXT NOT NULL DEFAULT 'normal',
                    completed INTEGER NOT NULL DEFAULT 0,
                    notes TEXT,
                    UNIQUE (session_id, exercise_id, set_number),
                    FOREIGN KEY(session_id) REFERENCES user_workout_sessions(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "session_id",
                "user_workout_id",
                "exercise_id",
                "log_date",
                "set_number",
                "weight",
                "reps",
                "rpe",
                "completed",
                "notes",
            ],
        ),
    }

    _INDEX_DEFINITIONS = [
        # one active plan per user
        "CREATE UNIQUE INDEX IF NOT EXISTS ux_user_workouts_active "
        "ON user_workouts(user_id) WHERE is_active = 1;",
        "CREATE INDEX IF NOT EXISTS ix_sessions_date "
        "ON user_workout_sessions(session_date);",
        "CREATE INDEX IF NOT EXISTS ix_logs_session "
        "ON user_exercise_logs(session_id, exercise_id, set_number);",
    ]

    def __init__(self, db_path: str = "workout.db", timeout: float = 5.0) -> None:
        self._db_path = db_path
        self._timeout = timeout
        self._ensure_schema()
        self._ensure_indexes()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path, timeout=self._timeout)
        connection.execute("PRAGMA foreign_keys=on;")
        try:
            yield connection
            connection.commit()
        except sqlite3.Error as e:
            connection.rollback()
            raise StoreError(str(e)) from e
        except Exception:
            connection.rollback()
            raise
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("PRAGMA foreign_keys=off;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            cursor.execute("PRAGMA foreign_keys=on;")

    def _ensure_indexes(self) -> None:
        with self._connection() as conn:
            for sql in self._INDEX_DEFINITIONS:
                conn.execute(sql)

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)

        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            missing = [c for c in columns if c not in existing_cols]
            if missing:
                def default_val(col: str) -> str:
                    if col == "rpe":
                        return "'normal'"
                    if col in ("current_day_index", "is_active"):
                        return "1"
                    if col in ("completed", "weight"):
                        return "0"
                    if col == "rest_time":
                        return "60"
                    return "NULL"

                defaults = ", ".join(default_val(c) for c in missing)
                conn.execute(
                    f"INSERT INTO {table} ({cols}, {', '.join(missing)}) SELECT {cols}, {defaults} FROM {table}_old;"
                )
            else:
                conn.execute(
                    f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
                )
        conn.execute(f"DROP TABLE {table}_old;")


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def execute_count(self, query: str, params: Tuple = ()) -> int:
        """Execute ``query`` and return the number of affected rows."""
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.rowcount

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()


class AsyncDatabase(Database):
    """Provides asynchronous connection management."""

    @asynccontextmanager
    async def _async_connection(self):
        conn = await aiosqlite.connect(self._db_path, timeout=self._timeout)
        try:
            yield conn
            await conn.commit()
        except sqlite3.Error as e:
            await conn.rollback()
            raise StoreError(str(e)) from e
        finally:
            await conn.close()


class AsyncBaseRepository(AsyncDatabase):
    """Asynchronous variant of BaseRepository using aiosqlite."""

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return rows


def _split_groups(value: str | None) -> list[str]:
    if not value:
        return []
    return [g.strip() for g in value.split(",") if g.strip()]


def month_bounds(year: int, month: int) -> tuple[str, str]:
    """Return the ISO start date and exclusive end date of a month."""
    if not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12")
    try:
        start = datetime.date(year, month, 1)
        if month == 12:
            end = datetime.date(year + 1, 1, 1)
        else:
            end = datetime.date(year, month + 1, 1)
    except (ValueError, OverflowError):
        raise ValidationError(f"year out of range: {year}")
    return start.isoformat(), end.isoformat()


class TemplateWorkoutRepository(BaseRepository):
    """Repository for workout templates."""

    def create(
        self,
        name: str,
        cycle_days: int,
        description: str | None = None,
        difficulty: str | None = None,
        image_url: str | None = None,
    ) -> int:
        if cycle_days < 1:
            raise ValidationError("cycle_days must be positive")
        return self.execute(
            "INSERT INTO workout_templates (name, description, difficulty, cycle_days, image_url) VALUES (?, ?, ?, ?, ?);",
            (name, description, difficulty, cycle_days, image_url),
        )

    def fetch_all(self) -> list[tuple[int, str, str, str, int, str]]:
        return super().fetch_all(
            "SELECT id, name, description, difficulty, cycle_days, image_url FROM workout_templates ORDER BY id;"
        )

    def fetch_detail(self, template_id: int) -> tuple[int, str, str, str, int, str]:
        rows = super().fetch_all(
            "SELECT id, name, description, difficulty, cycle_days, image_url FROM workout_templates WHERE id = ?;",
            (template_id,),
        )
        if not rows:
            raise NotFoundError("template not found")
        return rows[0]

    def find_id(self, name: str) -> Optional[int]:
        rows = super().fetch_all(
            "SELECT id FROM workout_templates WHERE name = ?;", (name,)
        )
        return rows[0][0] if rows else None


class TemplateDayRepository(BaseRepository):
    """Repository for the muscle groups assigned to each template day."""

    def set_day(self, template_id: int, day_index: int, muscle_groups: Iterable[str]) -> None:
        rows = super().fetch_all(
            "SELECT cycle_days FROM workout_templates WHERE id = ?;", (template_id,)
        )
        if not rows:
            raise NotFoundError("template not found")
        if not 1 <= day_index <= rows[0][0]:
            raise ValidationError("day_index outside template cycle")
        groups = ",".join(g.strip() for g in muscle_groups if g and g.strip())
        if not groups:
            raise ValidationError("muscle groups required")
        self.execute(
            "INSERT INTO workout_template_days (template_id, day_index, muscle_groups) VALUES (?, ?, ?) "
            "ON CONFLICT(template_id, day_index) DO UPDATE SET muscle_groups=excluded.muscle_groups;",
            (template_id, day_index, groups),
        )

    def fetch_for_template(self, template_id: int) -> list[tuple[int, list[str]]]:
        rows = super().fetch_all(
            "SELECT day_index, muscle_groups FROM workout_template_days WHERE template_id = ? ORDER BY day_index;",
            (template_id,),
        )
        return [(idx, _split_groups(groups)) for idx, groups in rows]

    def fetch_muscle_groups(self, template_id: int, day_index: int) -> list[str]:
        """Return the groups trained on ``day_index``; empty on rest days."""
        rows = super().fetch_all(
            "SELECT muscle_groups FROM workout_template_days WHERE template_id = ? AND day_index = ?;",
            (template_id, day_index),
        )
        if not rows:
            return []
        return _split_groups(rows[0][0])


class TemplateExerciseRepository(BaseRepository):
    """Repository for the flat exercise list of a template."""

    def add(
        self,
        template_id: int,
        exercise_id: str,
        muscle_group: str,
        sets: int,
        reps: int,
        rest_time: int = 60,
    ) -> int:
        return self.execute(
            "INSERT INTO workout_template_exercises (template_id, exercise_id, sets, reps, rest_time, muscle_group) VALUES (?, ?, ?, ?, ?, ?);",
            (template_id, exercise_id, sets, reps, rest_time, muscle_group),
        )

    def fetch_for_template(
        self, template_id: int
    ) -> list[tuple[int, str, int, int, int, str]]:
        return self.fetch_all(
            "SELECT id, exercise_id, sets, reps, rest_time, muscle_group FROM workout_template_exercises WHERE template_id = ? ORDER BY id;",
            (template_id,),
        )


class UserWorkoutRepository(BaseRepository):
    """Repository for user workout plans."""

    _PLAN_COLUMNS = (
        "u.id, u.user_id, u.template_id, u.start_date, u.squat_weight, u.bench_weight, "
        "u.deadlift_weight, u.current_day_index, u.is_active, t.name, t.cycle_days"
    )

    @staticmethod
    def _to_dict(row: Tuple) -> dict:
        return {
            "id": row[0],
            "user_id": row[1],
            "template_id": row[2],
            "start_date": row[3],
            "squat_weight": row[4],
            "bench_weight": row[5],
            "deadlift_weight": row[6],
            "current_day_index": row[7],
            "is_active": bool(row[8]),
            "template_name": row[9],
            "cycle_days": row[10],
        }

    def activate(
        self,
        user_id: str,
        template_id: int,
        start_date: str,
        squat: float,
        bench: float,
        deadlift: float,
        prescriptions: Iterable[tuple[str, int, int, float, int, str]],
    ) -> int:
        """Insert a plan and its prescriptions in one transaction.

        ``prescriptions`` holds ``(exercise_id, sets, reps, weight, rest_time,
        muscle_group)`` tuples.
        """
        with self._connection() as conn:
            try:
                cursor = conn.execute(
                    "INSERT INTO user_workouts (user_id, template_id, start_date, squat_weight, bench_weight, deadlift_weight, current_day_index, is_active, created_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, 1, 1, ?);",
                    (
                        user_id,
                        template_id,
                        start_date,
                        squat,
                        bench,
                        deadlift,
                        datetime.datetime.now().isoformat(timespec="seconds"),
                    ),
                )
            except sqlite3.IntegrityError as e:
                if "UNIQUE" in str(e):
                    raise PlanAlreadyExists() from e
                raise
            plan_id = cursor.lastrowid
            conn.executemany(
                "INSERT INTO user_workout_exercises (user_workout_id, exercise_id, sets, reps, weight, rest_time, muscle_group) VALUES (?, ?, ?, ?, ?, ?, ?);",
                [(plan_id, *p) for p in prescriptions],
            )
            return plan_id

    def fetch_active(self, user_id: str) -> Optional[dict]:
        rows = self.fetch_all(
            f"SELECT {self._PLAN_COLUMNS} FROM user_workouts u "
            "JOIN workout_templates t ON u.template_id = t.id "
            "WHERE u.user_id = ? AND u.is_active = 1 LIMIT 1;",
            (user_id,),
        )
        return self._to_dict(rows[0]) if rows else None

    def fetch_for_user(self, user_id: str) -> list[dict]:
        rows = self.fetch_all(
            f"SELECT {self._PLAN_COLUMNS} FROM user_workouts u "
            "JOIN workout_templates t ON u.template_id = t.id "
            "WHERE u.user_id = ? ORDER BY u.id DESC;",
            (user_id,),
        )
        return [self._to_dict(r) for r in rows]

    def advance_day_counter(self, plan_id: int, value: int) -> bool:
        """Raise the stored elapsed-day counter to ``value``; never lowers it."""
        changed = self.execute_count(
            "UPDATE user_workouts SET current_day_index = ? WHERE id = ? AND current_day_index < ?;",
            (value, plan_id, value),
        )
        return changed > 0

    def deactivate(self, plan_id: int) -> bool:
        changed = self.execute_count(
            "UPDATE user_workouts SET is_active = 0 WHERE id = ? AND is_active = 1;",
            (plan_id,),
        )
        return changed > 0


class PrescriptionRepository(BaseRepository):
    """Repository for a plan's mutable exercise prescriptions."""

    _OWNED = (
        "user_workout_id IN (SELECT id FROM user_workouts WHERE user_id = ? AND is_active = 1)"
    )

    def add(
        self,
        plan_id: int,
        exercise_id: str,
        sets: int,
        reps: int,
        weight: float,
        rest_time: int,
        muscle_group: str,
    ) -> int:
        return self.execute(
            "INSERT INTO user_workout_exercises (user_workout_id, exercise_id, sets, reps, weight, rest_time, muscle_group) VALUES (?, ?, ?, ?, ?, ?, ?);",
            (plan_id, exercise_id, sets, reps, weight, rest_time, muscle_group),
        )

    def fetch_for_plan(
        self, plan_id: int
    ) -> List[Tuple[int, str, int, int, float, int, str]]:
        return self.fetch_all(
            "SELECT id, exercise_id, sets, reps, weight, rest_time, muscle_group FROM user_workout_exercises WHERE user_workout_id = ? ORDER BY id;",
            (plan_id,),
        )

    def fetch_detail(self, prescription_id: int) -> dict:
        rows = self.fetch_all(
            "SELECT id, user_workout_id, exercise_id, sets, reps, weight, rest_time, muscle_group FROM user_workout_exercises WHERE id = ?;",
            (prescription_id,),
        )
        if not rows:
            raise NotFoundError("exercise not found")
        pid, plan_id, ex_id, sets, reps, weight, rest, group = rows[0]
        return {
            "id": pid,
            "user_workout_id": plan_id,
            "exercise_id": ex_id,
            "sets": sets,
            "reps": reps,
            "weight": weight,
            "rest_time": rest,
            "muscle_group": group,
        }

    def exists(self, prescription_id: int) -> bool:
        rows = self.fetch_all(
            "SELECT 1 FROM user_workout_exercises WHERE id = ?;", (prescription_id,)
        )
        return bool(rows)

    def update_owned(
        self,
        prescription_id: int,
        user_id: str,
        exercise_id: str,
        sets: int,
        reps: int,
        rest_time: int,
        muscle_group: str | None = None,
    ) -> bool:
        """Update a prescription of ``user_id``'s active plan in one statement."""
        changed = self.execute_count(
            "UPDATE user_workout_exercises SET exercise_id = ?, sets = ?, reps = ?, rest_time = ?, "
            "muscle_group = COALESCE(?, muscle_group) "
            f"WHERE id = ? AND {self._OWNED};",
            (exercise_id, sets, reps, rest_time, muscle_group, prescription_id, user_id),
        )
        return changed > 0

    def remove_owned(self, prescription_id: int, user_id: str) -> bool:
        changed = self.execute_count(
            f"DELETE FROM user_workout_exercises WHERE id = ? AND {self._OWNED};",
            (prescription_id, user_id),
        )
        return changed > 0


class SessionRepository(BaseRepository):
    """Repository for per-date sessions and their set logs."""

    def fetch(self, plan_id: int, session_date: str) -> Optional[dict]:
        rows = self.fetch_all(
            "SELECT id, session_date, day_index, completed, duration_seconds, notes FROM user_workout_sessions "
            "WHERE user_workout_id = ? AND session_date = ?;",
            (plan_id, session_date),
        )
        if not rows:
            return None
        sid, date, day_index, completed, duration, notes = rows[0]
        return {
            "id": sid,
            "date": date,
            "day_index": day_index,
            "completed": bool(completed),
            "duration_seconds": duration,
            "notes": notes,
        }

    def replace_logs(
        self,
        plan_id: int,
        session_date: str,
        day_index: int,
        entries: Iterable[dict],
    ) -> tuple[int, int]:
        """Find or create the session and replace all of its logs atomically.

        Returns ``(session_id, inserted_count)``.
        """
        with self._connection() as conn:
            conn.execute(
                "INSERT INTO user_workout_sessions (user_workout_id, session_date, day_index, completed) VALUES (?, ?, ?, 1) "
                "ON CONFLICT(user_workout_id, session_date) DO UPDATE SET day_index=excluded.day_index, completed=1;",
                (plan_id, session_date, day_index),
            )
            session_id = conn.execute(
                "SELECT id FROM user_workout_sessions WHERE user_workout_id = ? AND session_date = ?;",
                (plan_id, session_date),
            ).fetchone()[0]
            conn.execute(
                "DELETE FROM user_exercise_logs WHERE session_id = ?;", (session_id,)
            )
            rows = [
                (
                    session_id,
                    plan_id,
                    e["exercise_id"],
                    session_date,
                    e["set_number"],
                    e["weight"],
                    e["reps"],
                    e["effort"],
                    int(e["completed"]),
                    e.get("notes"),
                )
                for e in entries
            ]
            conn.executemany(
                "INSERT INTO user_exercise_logs (session_id, user_workout_id, exercise_id, log_date, set_number, weight, reps, rpe, completed, notes) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);",
                rows,
            )
            return session_id, len(rows)

    def update_meta(
        self,
        plan_id: int,
        session_date: str,
        duration_seconds: Optional[int],
        notes: Optional[str],
    ) -> bool:
        changed = self.execute_count(
            "UPDATE user_workout_sessions SET duration_seconds = COALESCE(?, duration_seconds), "
            "notes = COALESCE(?, notes) WHERE user_workout_id = ? AND session_date = ?;",
            (duration_seconds, notes, plan_id, session_date),
        )
        return changed > 0

    def fetch_logs(
        self, session_id: int
    ) -> List[Tuple[str, int, float, int, str, int, Optional[str]]]:
        return self.fetch_all(
            "SELECT exercise_id, set_number, weight, reps, rpe, completed, notes FROM user_exercise_logs "
            "WHERE session_id = ? ORDER BY exercise_id, set_number;",
            (session_id,),
        )

    def fetch_month(
        self, user_id: str, year: int, month: int
    ) -> List[Tuple[str, int, str, int]]:
        start, end = month_bounds(year, month)
        return self.fetch_all(MONTH_QUERY, (user_id, start, end))

    def fetch_for_user_date(self, user_id: str, session_date: str) -> Optional[dict]:
        """Return the user's session on ``session_date``, preferring the active plan."""
        rows = self.fetch_all(
            "SELECT uws.id, wt.name, uws.completed, uws.duration_seconds, uws.notes, uws.day_index "
            "FROM user_workout_sessions uws "
            "JOIN user_workouts uw ON uws.user_workout_id = uw.id "
            "JOIN workout_templates wt ON uw.template_id = wt.id "
            "WHERE uws.session_date = ? AND uw.user_id = ? "
            "ORDER BY uw.is_active DESC, uws.id DESC LIMIT 1;",
            (session_date, user_id),
        )
        if not rows:
            return None
        sid, name, completed, duration, notes, day_index = rows[0]
        return {
            "id": sid,
            "name": name,
            "completed": bool(completed),
            "duration_seconds": duration,
            "notes": notes,
            "day_index": day_index,
        }

    def fetch_detail_logs(
        self, session_id: int
    ) -> List[Tuple[str, Optional[str], int, float, int, str, int, Optional[str]]]:
        # prescriptions may have been replaced or deleted since the session was logged
        return self.fetch_all(
            "SELECT uel.exercise_id, "
            "(SELECT uwe.muscle_group FROM user_workout_exercises uwe "
            " WHERE uwe.user_workout_id = uel.user_workout_id AND uwe.exercise_id = uel.exercise_id "
            " ORDER BY uwe.id LIMIT 1), "
            "uel.set_number, uel.weight, uel.reps, uel.rpe, uel.completed, uel.notes "
            "FROM user_exercise_logs uel WHERE uel.session_id = ? "
            "ORDER BY uel.exercise_id, uel.set_number;",
            (session_id,),
        )


MONTH_QUERY = (
    "SELECT uws.session_date, uws.completed, wt.name, COUNT(DISTINCT uel.exercise_id) "
    "FROM user_workout_sessions uws "
    "JOIN user_workouts uw ON uws.user_workout_id = uw.id "
    "JOIN workout_templates wt ON uw.template_id = wt.id "
    "LEFT JOIN user_exercise_logs uel ON uws.id = uel.session_id "
    "WHERE uw.user_id = ? AND uws.session_date >= ? AND uws.session_date < ? "
    "GROUP BY uws.id ORDER BY uws.session_date, uw.is_active;"
)


class AsyncSessionRepository(AsyncBaseRepository):
    """Async repository for read-only session history."""

    async def fetch_month(
        self, user_id: str, year: int, month: int
    ) -> List[Tuple[str, int, str, int]]:
        start, end = month_bounds(year, month)
        return await self.fetch_all(MONTH_QUERY, (user_id, start, end))
