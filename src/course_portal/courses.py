"""Course catalog reads and administrator CRUD."""
import logging
import sqlite3

from course_portal.db import get_connection, is_unique_violation, new_id, now_iso
from course_portal.errors import BackendError, DuplicateError, ValidationError
from course_portal.models import Course

logger = logging.getLogger(__name__)


def list_courses(db_path: str) -> list[Course]:
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT * FROM courses ORDER BY semester IS NULL, semester, code"
    ).fetchall()
    conn.close()
    return [Course.from_row(r) for r in rows]


def get_course(db_path: str, course_id: str) -> Course | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM courses WHERE id = ?", (course_id,)).fetchone()
    conn.close()
    return Course.from_row(row) if row else None


def _validate(code: str, name: str, semester) -> tuple[str, str, int | None]:
    code = (code or "").strip().upper()
    name = (name or "").strip()
    if not code:
        raise ValidationError("Course code is required (e.g. PHARMA).")
    if not name:
        raise ValidationError("Course name is required.")
    sem = None
    if semester not in (None, ""):
        try:
            sem = int(str(semester).strip())
        except ValueError as exc:
            raise ValidationError("Semester must be a number between 1 and 20.") from exc
        if not 1 <= sem <= 20:
            raise ValidationError("Semester must be a number between 1 and 20.")
    return code, name, sem


def add_course(db_path: str, code: str, name: str, semester=None, description: str = "") -> Course:
    code, name, sem = _validate(code, name, semester)
    course = Course(id=new_id(), code=code, name=name, semester=sem, description=description.strip() or None)
    conn = get_connection(db_path)
    try:
        conn.execute(
            "INSERT INTO courses (id, code, name, semester, description, created_at) VALUES (?, ?, ?, ?, ?, ?)",
            (course.id, course.code, course.name, course.semester, course.description, now_iso()),
        )
        conn.commit()
    except sqlite3.IntegrityError as exc:
        if is_unique_violation(exc):
            raise DuplicateError(f"Course code {code} already exists.") from exc
        raise BackendError(f"Could not add course: {exc}") from exc
    finally:
        conn.close()
    logger.info("course added", extra={"course_id": course.id, "code": code})
    return course


def add_default_courses(db_path: str, catalog: list[dict]) -> int:
    """Insert catalog entries, ignoring codes that already exist. Returns rows added."""
    conn = get_connection(db_path)
    added = 0
    for entry in catalog:
        code, name, sem = _validate(entry.get("code", ""), entry.get("name", ""), entry.get("semester"))
        cur = conn.execute(
            """INSERT INTO courses (id, code, name, semester, description, created_at)
            VALUES (?, ?, ?, ?, ?, ?) ON CONFLICT(code) DO NOTHING""",
            (new_id(), code, name, sem, entry.get("description"), now_iso()),
        )
        added += cur.rowcount
    conn.commit()
    conn.close()
    return added


def delete_course(db_path: str, course_id: str) -> bool:
    """Delete a course; lectures, resources, questions and attempts cascade."""
    conn = get_connection(db_path)
    try:
        cur = conn.execute("DELETE FROM courses WHERE id = ?", (course_id,))
        conn.commit()
    except sqlite3.DatabaseError as exc:
        raise BackendError(f"Could not delete course: {exc}") from exc
    finally:
        conn.close()
    return cur.rowcount > 0
