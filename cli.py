import argparse
import logging
import shutil
import time

import requests

from config import load_settings
from db import (
    TemplateDayRepository,
    TemplateExerciseRepository,
    TemplateWorkoutRepository,
    UserWorkoutRepository,
)
from errors import WorkoutError
from log_setup import setup_logging
from plan_service import PlanService
from schedule_service import ScheduleService
from seed_sample_data import seed, DEFAULT_TEMPLATES

logger = logging.getLogger(__name__)


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)


def print_schedule(db_path: str, user_id: str, days: int = 7) -> None:
    """Print the upcoming days of ``user_id``'s active plan."""
    plans = PlanService(
        UserWorkoutRepository(db_path),
        TemplateWorkoutRepository(db_path),
        TemplateExerciseRepository(db_path),
    )
    schedule = ScheduleService(plans, TemplateDayRepository(db_path))
    data = schedule.schedule(user_id, days)
    for day in data["days"]:
        groups = ", ".join(day["muscle_groups"]) or "Rest"
        label = day["day_index"] if day["day_index"] is not None else "-"
        print(f"{day['date']}  day {label}: {groups}")


def benchmark(url: str, runs: int = 10) -> None:
    times: list[float] = []
    for _ in range(runs):
        t0 = time.time()
        requests.get(f"{url}/health", timeout=5)
        times.append(time.time() - t0)
    avg = sum(times) / len(times)
    print(f"Average /health response time over {runs} runs: {avg:.4f}s")


def serve(yaml_path: str, host: str, port: int) -> None:
    import uvicorn
    from rest_api import create_app

    uvicorn.run(create_app(yaml_path), host=host, port=port)


def main() -> None:
    parser = argparse.ArgumentParser(description="Utility commands")
    parser.add_argument("--yaml", default="settings.yaml")
    sub = parser.add_subparsers(dest="cmd", required=True)

    sd = sub.add_parser("seed")
    sd.add_argument("--db", default=None)
    sd.add_argument("--templates", default=DEFAULT_TEMPLATES)

    bkp = sub.add_parser("backup")
    bkp.add_argument("--db", default=None)
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")
    rst.add_argument("--db", default=None)

    sch = sub.add_parser("schedule")
    sch.add_argument("--db", default=None)
    sch.add_argument("--user", required=True)
    sch.add_argument("--days", type=int, default=7)

    bench = sub.add_parser("benchmark")
    bench.add_argument("--url", default="http://localhost:8000")
    bench.add_argument("--runs", type=int, default=10)

    srv = sub.add_parser("serve")
    srv.add_argument("--host", default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8000)

    args = parser.parse_args()
    settings = load_settings(args.yaml)
    setup_logging(settings.log_format, settings.log_level)
    db_path = getattr(args, "db", None) or settings.db_path

    if args.cmd == "seed":
        ids = seed(db_path, args.templates)
        logger.info("Seeded %d templates", len(ids))
    elif args.cmd == "backup":
        backup_db(db_path, args.out)
    elif args.cmd == "restore":
        restore_db(args.src, db_path)
    elif args.cmd == "schedule":
        try:
            print_schedule(db_path, args.user, args.days)
        except WorkoutError as e:
            parser.exit(1, f"error: {e}\n")
    elif args.cmd == "benchmark":
        benchmark(args.url, args.runs)
    elif args.cmd == "serve":
        serve(args.yaml, args.host, args.port)


if __name__ == "__main__":
    main()
