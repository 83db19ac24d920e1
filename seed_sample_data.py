import os
import yaml

from db import TemplateWorkoutRepository, TemplateDayRepository, TemplateExerciseRepository

DEFAULT_TEMPLATES = os.path.join(os.path.dirname(__file__), "sample_templates.yaml")


def seed(db_path: str = "workout.db", templates_path: str = DEFAULT_TEMPLATES) -> list[int]:
    """Insert the templates from ``templates_path`` that are not present yet."""
    templates = TemplateWorkoutRepository(db_path)
    days = TemplateDayRepository(db_path)
    exercises = TemplateExerciseRepository(db_path)
    with open(templates_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or []

    created: list[int] = []
    for item in data:
        if templates.find_id(item["name"]) is not None:
            continue
        tid = templates.create(
            item["name"],
            int(item["cycle_days"]),
            item.get("description"),
            item.get("difficulty"),
            item.get("image_url"),
        )
        for day_index, groups in (item.get("days") or {}).items():
            days.set_day(tid, int(day_index), groups)
        for ex in item.get("exercises") or []:
            exercises.add(
                tid,
                str(ex["exercise_id"]),
                ex["muscle_group"],
                int(ex["sets"]),
                int(ex["reps"]),
                int(ex.get("rest_time", 60)),
            )
        created.append(tid)
    return created


if __name__ == "__main__":
    ids = seed()
    if ids:
        print(f"Seeded templates {ids}")
    else:
        print("Templates already present")
