import sqlite3
import sys


def migrate(db_path='workout.db'):
    conn = sqlite3.connect(db_path)
    cur = conn.cursor()
    cur.execute("PRAGMA table_info(user_workout_sessions);")
    cols = [r[1] for r in cur.fetchall()]
    if cols and 'duration_seconds' not in cols:
        cur.execute("ALTER TABLE user_workout_sessions ADD COLUMN duration_seconds INTEGER;")
    if cols and 'notes' not in cols:
        cur.execute("ALTER TABLE user_workout_sessions ADD COLUMN notes TEXT;")
    if cols:
        # one session per plan and date; the latest save wins
        stale = (
            "SELECT id FROM user_workout_sessions WHERE id NOT IN "
            "(SELECT MAX(id) FROM user_workout_sessions GROUP BY user_workout_id, session_date)"
        )
        cur.execute("PRAGMA table_info(user_exercise_logs);")
        if cur.fetchall():
            cur.execute(f"DELETE FROM user_exercise_logs WHERE session_id IN ({stale});")
        cur.execute(f"DELETE FROM user_workout_sessions WHERE id IN ({stale});")
        cur.execute(
            "CREATE UNIQUE INDEX IF NOT EXISTS ux_sessions_plan_date "
            "ON user_workout_sessions(user_workout_id, session_date);"
        )
    cur.execute("PRAGMA table_info(user_exercise_logs);")
    cols = [r[1] for r in cur.fetchall()]
    if cols and 'notes' not in cols:
        cur.execute("ALTER TABLE user_exercise_logs ADD COLUMN notes TEXT;")
    cur.execute("PRAGMA table_info(user_workouts);")
    cols = [r[1] for r in cur.fetchall()]
    if cols:
        # keep only the newest active plan per user
        cur.execute(
            "UPDATE user_workouts SET is_active = 0 WHERE is_active = 1 AND id NOT IN "
            "(SELECT MAX(id) FROM user_workouts WHERE is_active = 1 GROUP BY user_id);"
        )
        cur.execute(
            "CREATE UNIQUE INDEX IF NOT EXISTS ux_user_workouts_active "
            "ON user_workouts(user_id) WHERE is_active = 1;"
        )
    conn.commit()
    conn.close()


if __name__ == '__main__':
    path = sys.argv[1] if len(sys.argv) > 1 else 'workout.db'
    migrate(path)
