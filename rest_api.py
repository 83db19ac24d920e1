import datetime
import logging
import time
from collections import deque
from typing import Callable, List, Optional

from fastapi import (
    FastAPI,
    HTTPException,
    APIRouter,
    Request,
    Header,
    Depends,
)
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from catalog_service import CatalogService, ExerciseCatalogClient, MetadataCache
from config import load_settings
from db import (
    TemplateWorkoutRepository,
    TemplateDayRepository,
    TemplateExerciseRepository,
    UserWorkoutRepository,
    PrescriptionRepository,
    SessionRepository,
    AsyncSessionRepository,
)
from errors import WorkoutError
from history_service import HistoryService
from log_setup import setup_logging
from plan_service import PlanService
from prescription_service import PrescriptionService
from schedule_service import ScheduleService
from session_service import SessionService

logger = logging.getLogger(__name__)


class RateLimiter:
    """Sliding-window request limit per caller.

    Callers are keyed by their ``X-User-Id`` header, falling back to the
    client address. Keys whose window has fully elapsed are dropped.
    """

    def __init__(self, limit: int = 60, window: float = 60.0, clock=time.monotonic) -> None:
        self.limit = limit
        self.window = window
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}

    @staticmethod
    def caller_key(request: Request) -> str:
        user = request.headers.get("x-user-id", "").strip()
        if user:
            return f"user:{user}"
        return f"ip:{request.client.host if request.client else 'anon'}"

    def _prune(self, now: float) -> None:
        stale = [
            k for k, hits in self._hits.items() if not hits or now - hits[-1] >= self.window
        ]
        for key in stale:
            del self._hits[key]

    def allow(self, key: str) -> bool:
        now = self._clock()
        self._prune(now)
        hits = self._hits.setdefault(key, deque())
        while hits and now - hits[0] >= self.window:
            hits.popleft()
        if len(hits) >= self.limit:
            return False
        hits.append(now)
        return True

    def __len__(self) -> int:
        return len(self._hits)

    async def __call__(self, request: Request, call_next):
        key = self.caller_key(request)
        if not self.allow(key):
            logger.warning("Rate limit exceeded for %s", key)
            return JSONResponse(status_code=429, content={"detail": "rate limit exceeded"})
        return await call_next(request)


class PlanCreate(BaseModel):
    template_id: int
    start_date: str
    squat_weight: float
    bench_weight: float
    deadlift_weight: float


class ExerciseCreate(BaseModel):
    exercise_id: str | int
    muscle_group: str
    sets: int
    reps: int
    weight: float = 0
    rest_time: int = 60


class ExerciseReplace(BaseModel):
    exercise_id: str | int
    sets: int
    reps: int
    rest_time: int = 60
    muscle_group: Optional[str] = None


class SetEntry(BaseModel):
    exercise_id: str | int
    set_number: int
    weight: float = 0
    reps: int = 0
    effort: Optional[str] = None
    rpe: Optional[str] = None
    completed: bool = False
    notes: Optional[str] = None


class SaveLogRequest(BaseModel):
    date: str
    exercises: List[SetEntry]


class SessionMeta(BaseModel):
    date: str
    duration_seconds: Optional[int] = None
    notes: Optional[str] = None


def current_user(x_user_id: str | None = Header(default=None)) -> str:
    """Caller identity as issued by the authentication service."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="missing user id")
    return x_user_id.strip()


def _http_error(e: WorkoutError) -> HTTPException:
    if e.status_code >= 500:
        logger.error("Request failed: %s", e)
    return HTTPException(status_code=e.status_code, detail=str(e))


class TrainingAPI:
    """Provides REST endpoints for cycle scheduling and session logging."""

    def __init__(
        self,
        db_path: str = "workout.db",
        yaml_path: str = "settings.yaml",
        *,
        catalog: CatalogService | None = None,
        clock: Callable[[], datetime.date] | None = None,
        rate_limit: int | None = None,
        rate_window: float | None = None,
    ) -> None:
        self.db_path = db_path
        self.settings = load_settings(yaml_path)
        self.templates = TemplateWorkoutRepository(db_path)
        self.template_days = TemplateDayRepository(db_path)
        self.template_exercises = TemplateExerciseRepository(db_path)
        self.plans = UserWorkoutRepository(db_path)
        self.prescriptions = PrescriptionRepository(db_path)
        self.sessions = SessionRepository(db_path)
        self.async_sessions = AsyncSessionRepository(db_path)
        self.catalog = catalog or CatalogService(
            ExerciseCatalogClient(
                base_url=self.settings.catalog_base_url,
                api_key=self.settings.catalog_api_key,
                host=self.settings.catalog_host,
                timeout=self.settings.catalog_timeout,
            ),
            MetadataCache(
                max_size=self.settings.catalog_cache_size,
                ttl=self.settings.catalog_cache_ttl,
            ),
            max_workers=self.settings.catalog_max_workers,
        )
        self.plan_service = PlanService(
            self.plans,
            self.templates,
            self.template_exercises,
            clock=clock or datetime.date.today,
        )
        self.schedule = ScheduleService(self.plan_service, self.template_days)
        self.prescription_service = PrescriptionService(self.plans, self.prescriptions)
        self.session_service = SessionService(
            self.plan_service,
            self.schedule,
            self.prescriptions,
            self.sessions,
            self.catalog,
        )
        self.history = HistoryService(
            self.sessions, self.catalog, async_session_repo=self.async_sessions
        )
        self.app = FastAPI(
            title="Training Cycle API",
            description="REST API for workout cycle scheduling and session logs",
        )
        if rate_limit is None:
            rate_limit = self.settings.rate_limit
        self.rate_limiter: RateLimiter | None = None
        if rate_limit is not None:
            self.rate_limiter = RateLimiter(
                limit=rate_limit,
                window=rate_window or self.settings.rate_window,
            )
            self.app.middleware("http")(self.rate_limiter)
        self._setup_routes()

    def _setup_routes(self) -> None:
        plans_router = APIRouter(prefix="/user-workouts", tags=["Plans"])
        workouts_router = APIRouter(prefix="/workouts", tags=["Workouts"])

        @self.app.exception_handler(RequestValidationError)
        async def validation_handler(request: Request, exc: RequestValidationError):
            return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        def health():
            """Return API and database connection status."""
            try:
                self.templates.fetch_all()
                return {"status": "ok"}
            except WorkoutError as e:  # pragma: no cover - connectivity failure
                raise HTTPException(status_code=500, detail=str(e))

        @workouts_router.get("")
        def list_templates():
            return [
                {
                    "id": tid,
                    "name": name,
                    "description": desc,
                    "difficulty": difficulty,
                    "cycle_days": cycle,
                    "image_url": image,
                }
                for tid, name, desc, difficulty, cycle, image in self.templates.fetch_all()
            ]

        @workouts_router.get("/today")
        def today(user_id: str = Depends(current_user)):
            try:
                return self.schedule.today(user_id)
            except WorkoutError as e:
                raise _http_error(e)

        @workouts_router.get("/schedule")
        def schedule(user_id: str = Depends(current_user)):
            try:
                return self.schedule.schedule(user_id)
            except WorkoutError as e:
                raise _http_error(e)

        @workouts_router.get("/update-day")
        def update_day(user_id: str = Depends(current_user)):
            try:
                return self.plan_service.refresh_day_counter(user_id)
            except WorkoutError as e:
                raise _http_error(e)

        @workouts_router.get("/detail")
        def day_detail(date: str, user_id: str = Depends(current_user)):
            try:
                return self.session_service.get_day_view(user_id, date)
            except WorkoutError as e:
                raise _http_error(e)

        @workouts_router.get("/exercises")
        def list_exercises(user_id: str = Depends(current_user)):
            try:
                return self.prescription_service.list_exercises(user_id)
            except WorkoutError as e:
                raise _http_error(e)

        @workouts_router.post("/exercise", status_code=201)
        def add_exercise(body: ExerciseCreate, user_id: str = Depends(current_user)):
            try:
                return self.prescription_service.add_exercise(
                    user_id,
                    str(body.exercise_id),
                    body.muscle_group,
                    body.sets,
                    body.reps,
                    body.weight,
                    body.rest_time,
                )
            except WorkoutError as e:
                raise _http_error(e)

        @workouts_router.put("/exercise/{prescription_id}")
        def replace_exercise(
            prescription_id: int,
            body: ExerciseReplace,
            user_id: str = Depends(current_user),
        ):
            try:
                return self.prescription_service.replace_exercise(
                    user_id,
                    prescription_id,
                    str(body.exercise_id),
                    body.sets,
                    body.reps,
                    body.rest_time,
                    body.muscle_group,
                )
            except WorkoutError as e:
                raise _http_error(e)

        @workouts_router.delete("/exercise/{prescription_id}")
        def delete_exercise(prescription_id: int, user_id: str = Depends(current_user)):
            try:
                self.prescription_service.delete_exercise(user_id, prescription_id)
                return {"status": "deleted"}
            except WorkoutError as e:
                raise _http_error(e)

        @workouts_router.post("/save-log")
        def save_log(body: SaveLogRequest, user_id: str = Depends(current_user)):
            entries = [
                {
                    "exercise_id": str(e.exercise_id),
                    "set_number": e.set_number,
                    "weight": e.weight,
                    "reps": e.reps,
                    "effort": e.effort or e.rpe,
                    "completed": e.completed,
                    "notes": e.notes,
                }
                for e in body.exercises
            ]
            try:
                return self.session_service.save_session(user_id, body.date, entries)
            except WorkoutError as e:
                raise _http_error(e)

        @workouts_router.put("/session-meta")
        def update_session_meta(body: SessionMeta, user_id: str = Depends(current_user)):
            try:
                return self.session_service.update_session_meta(
                    user_id, body.date, body.duration_seconds, body.notes
                )
            except WorkoutError as e:
                raise _http_error(e)

        @workouts_router.get("/history")
        async def history_month(
            year: int | None = None,
            month: int | None = None,
            user_id: str = Depends(current_user),
        ):
            today = self.plan_service.clock()
            try:
                return await self.history.list_month_async(
                    user_id,
                    year if year is not None else today.year,
                    month if month is not None else today.month,
                )
            except WorkoutError as e:
                raise _http_error(e)

        @workouts_router.get("/history/{date}")
        def history_day(date: str, user_id: str = Depends(current_user)):
            try:
                return self.history.get_day_detail(user_id, date)
            except WorkoutError as e:
                raise _http_error(e)

        @workouts_router.get("/{template_id}/days")
        def template_days(template_id: int):
            try:
                tid, name, _desc, _difficulty, cycle, _image = self.templates.fetch_detail(
                    template_id
                )
            except WorkoutError as e:
                raise _http_error(e)
            return {
                "id": tid,
                "name": name,
                "cycle_days": cycle,
                "days": self.schedule.template_days_for(template_id),
                "exercises": [
                    {
                        "exercise_id": ex_id,
                        "sets": sets,
                        "reps": reps,
                        "rest_time": rest,
                        "muscle_group": group,
                    }
                    for _id, ex_id, sets, reps, rest, group in self.template_exercises.fetch_for_template(
                        template_id
                    )
                ],
            }

        @plans_router.post("", status_code=201)
        def activate_plan(body: PlanCreate, user_id: str = Depends(current_user)):
            try:
                plan = self.plan_service.activate(
                    user_id,
                    body.template_id,
                    body.start_date,
                    body.squat_weight,
                    body.bench_weight,
                    body.deadlift_weight,
                )
            except WorkoutError as e:
                raise _http_error(e)
            return {"id": plan["id"], "message": "Workout plan created successfully"}

        @plans_router.get("")
        def active_plan(user_id: str = Depends(current_user)):
            try:
                return self.plan_service.summary(user_id)
            except WorkoutError as e:
                raise _http_error(e)

        @plans_router.delete("/cancel")
        def cancel_plan(
            confirmation: str | None = None, user_id: str = Depends(current_user)
        ):
            try:
                plan_id = self.plan_service.cancel(user_id, confirmation)
            except WorkoutError as e:
                raise _http_error(e)
            return {"status": "cancelled", "cancelled_workout_id": plan_id}

        self.app.include_router(plans_router)
        self.app.include_router(workouts_router)


def create_app(yaml_path: str = "settings.yaml") -> FastAPI:
    settings = load_settings(yaml_path)
    setup_logging(settings.log_format, settings.log_level)
    return TrainingAPI(db_path=settings.db_path, yaml_path=yaml_path).app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app())
