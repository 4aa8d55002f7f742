"""Dashboard summaries: course tiles, quiz progress and recent favorites."""
from itertools import groupby

from course_portal.attempts import history_stats, list_history, list_open_quizzes
from course_portal.courses import list_courses
from course_portal.db import get_connection
from course_portal.favorites import FavoritesStore


def get_score_label(score: float) -> str:
    if score >= 85:
        return "EXCELLENT"
    elif score >= 70:
        return "GOOD"
    elif score >= 50:
        return "NEEDS WORK"
    return "STRUGGLING"


def get_score_color(score: float) -> str:
    if score >= 85:
        return "green"
    elif score >= 70:
        return "yellow"
    elif score >= 50:
        return "dark_orange"
    return "red"


def semester_label(semester: int | None) -> str:
    return f"Semester {semester}" if semester else "Other"


def get_course_tiles(db_path: str) -> list[dict]:
    """Courses grouped by semester, each with resource and question counts."""
    conn = get_connection(db_path)
    resources = dict(conn.execute(
        "SELECT course_id, COUNT(*) FROM resources GROUP BY course_id"
    ).fetchall())
    questions = dict(conn.execute(
        "SELECT course_id, COUNT(*) FROM mcq_questions WHERE is_archived = 0 GROUP BY course_id"
    ).fetchall())
    conn.close()

    groups = []
    for semester, courses in groupby(list_courses(db_path), key=lambda c: c.semester):
        groups.append({
            "label": semester_label(semester),
            "courses": [
                {
                    "id": c.id,
                    "code": c.code,
                    "name": c.name,
                    "resources": resources.get(c.id, 0),
                    "questions": questions.get(c.id, 0),
                }
                for c in courses
            ],
        })
    return groups


def get_quiz_summary(db_path: str, user_id: str | None) -> dict:
    if not user_id:
        return {"count": 0, "avg": 0, "best": 0, "last": 0, "open": 0}
    stats = history_stats(list_history(db_path, user_id))
    stats["open"] = len(list_open_quizzes(db_path, user_id))
    return stats


def get_recent_favorites(store: FavoritesStore, limit: int = 5) -> list:
    return store.read()[:limit]
