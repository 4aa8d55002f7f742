"""Lecture and formative groupings within a course."""
import logging
import sqlite3
import time

from course_portal.db import get_connection, is_unique_violation, new_id, now_iso
from course_portal.errors import BackendError, DuplicateError, ValidationError
from course_portal.models import Lecture

logger = logging.getLogger(__name__)

MAX_ORDER = 9999
MAX_SEED = 60
GENERAL_TITLE = "General"


def build_lecture_title(order: int, topic: str = "", custom: str = "") -> str:
    if custom.strip():
        return custom.strip()
    topic = topic.strip()
    return f"Lecture {order} ({topic})" if topic else f"Lecture {order}"


def build_formative_title(no: int) -> str:
    return f"Formative {no}"


def parse_number(value, low: int, high: int, message: str) -> int:
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError) as exc:
        raise ValidationError(message) from exc
    if not low <= number <= high:
        raise ValidationError(message)
    return number


def list_groupings(db_path: str, course_id: str) -> tuple[list[Lecture], list[Lecture]]:
    """Return ``(lectures, formatives)`` for a course, each in display order."""
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT * FROM lectures WHERE course_id = ? ORDER BY kind, order_index", (course_id,)
    ).fetchall()
    conn.close()
    items = [Lecture.from_row(r) for r in rows]
    lectures = sorted((l for l in items if not l.is_formative), key=lambda l: l.order_index)
    formatives = sorted((l for l in items if l.is_formative), key=lambda l: l.sort_key)
    return lectures, formatives


def get_grouping(db_path: str, lecture_id: str) -> Lecture | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM lectures WHERE id = ?", (lecture_id,)).fetchone()
    conn.close()
    return Lecture.from_row(row) if row else None


def next_numbers(db_path: str, course_id: str) -> tuple[int, int]:
    """Suggested next lecture number and formative number."""
    lectures, formatives = list_groupings(db_path, course_id)
    next_lecture = max([l.order_index for l in lectures], default=0) + 1
    next_formative = max([f.sort_key for f in formatives], default=0) + 1
    return max(1, next_lecture), max(1, next_formative)


def _duplicate_message(kind: str) -> str:
    if kind == "formative":
        return "A formative with this number already exists. Pick another number."
    return "A lecture with this number already exists. Pick another number."


def _insert(db_path: str, lecture: Lecture) -> Lecture:
    conn = get_connection(db_path)
    try:
        conn.execute(
            """INSERT INTO lectures (id, course_id, title, order_index, kind, formative_no, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (lecture.id, lecture.course_id, lecture.title, lecture.order_index,
             lecture.kind, lecture.formative_no, lecture.created_at),
        )
        conn.commit()
    except sqlite3.IntegrityError as exc:
        if is_unique_violation(exc):
            raise DuplicateError(_duplicate_message(lecture.kind)) from exc
        raise BackendError(f"Could not add {lecture.kind}: {exc}") from exc
    finally:
        conn.close()
    logger.info("grouping added", extra={"lecture_id": lecture.id, "kind": lecture.kind})
    return lecture


def add_lecture(db_path: str, course_id: str, order, topic: str = "", custom_title: str = "") -> Lecture:
    number = parse_number(order, 0, MAX_ORDER, "Lecture number must be between 0 and 9999 (0 is 'general').")
    return _insert(db_path, Lecture(
        id=new_id(), course_id=course_id, title=build_lecture_title(number, topic, custom_title),
        order_index=number, kind="lecture", created_at=now_iso(),
    ))


def add_formative(db_path: str, course_id: str, no) -> Lecture:
    number = parse_number(no, 1, MAX_ORDER, "Formative number must be between 1 and 9999.")
    return _insert(db_path, Lecture(
        id=new_id(), course_id=course_id, title=build_formative_title(number),
        order_index=number, kind="formative", formative_no=number, created_at=now_iso(),
    ))


def seed_lectures(db_path: str, course_id: str, count) -> int:
    """Create lectures 1..count, skipping numbers that already exist."""
    n = parse_number(count, 1, MAX_SEED, "Enter a count between 1 and 60.")
    conn = get_connection(db_path)
    added = 0
    for number in range(1, n + 1):
        cur = conn.execute(
            """INSERT INTO lectures (id, course_id, title, order_index, kind, formative_no, created_at)
            VALUES (?, ?, ?, ?, 'lecture', NULL, ?)
            ON CONFLICT(course_id, kind, order_index) DO NOTHING""",
            (new_id(), course_id, build_lecture_title(number), number, now_iso()),
        )
        added += cur.rowcount
    conn.commit()
    conn.close()
    return added


def ensure_general_lecture(db_path: str, course_id: str) -> list[Lecture]:
    """Make sure an upload target exists; creates an order-0 general lecture if none."""
    lectures, formatives = list_groupings(db_path, course_id)
    if lectures or formatives:
        return lectures + formatives
    conn = get_connection(db_path)
    conn.execute(
        """INSERT INTO lectures (id, course_id, title, order_index, kind, created_at)
        VALUES (?, ?, ?, 0, 'lecture', ?) ON CONFLICT(course_id, kind, order_index) DO NOTHING""",
        (new_id(), course_id, GENERAL_TITLE, now_iso()),
    )
    conn.commit()
    conn.close()
    lectures, formatives = list_groupings(db_path, course_id)
    return lectures + formatives


def update_grouping(db_path: str, lecture: Lecture, order, title: str = "") -> Lecture:
    number = parse_number(order, 0, MAX_ORDER, "Invalid number.")
    if lecture.is_formative:
        values = {"order_index": number, "formative_no": number, "title": build_formative_title(number)}
    else:
        if not title.strip():
            raise ValidationError("Title is required.")
        values = {"order_index": number, "title": title.strip()}
    try:
        _update(db_path, lecture.id, values)
    except sqlite3.IntegrityError as exc:
        if is_unique_violation(exc):
            raise DuplicateError(_duplicate_message(lecture.kind)) from exc
        raise BackendError(f"Could not save: {exc}") from exc
    updated = get_grouping(db_path, lecture.id)
    if updated is None:
        raise BackendError("Grouping disappeared while saving.")
    return updated


def _update(db_path: str, lecture_id: str, values: dict) -> None:
    columns = ", ".join(f"{name} = ?" for name in values)
    conn = get_connection(db_path)
    try:
        conn.execute(f"UPDATE lectures SET {columns} WHERE id = ?", (*values.values(), lecture_id))
        conn.commit()
    finally:
        conn.close()


def _key_values(lecture: Lecture, key: int, formative_no: int | None) -> dict:
    if lecture.is_formative:
        label = formative_no if formative_no is not None else key
        return {"order_index": key, "formative_no": formative_no, "title": build_formative_title(label)}
    return {"order_index": key}


def swap_order(db_path: str, a: Lecture, b: Lecture, sentinel: int | None = None) -> None:
    """Exchange the order keys of two groupings of the same kind.

    Three sequential writes: ``a`` parks on a negative sentinel, ``b`` takes
    ``a``'s key, then ``a`` takes ``b``'s key. No two rows share a key at any
    point, but the sequence is not atomic: a failure after the first write
    leaves ``a`` on the sentinel.
    """
    if a.kind != b.kind:
        raise ValidationError("Only items of the same kind can be reordered.")
    tmp = sentinel if sentinel is not None else -int(time.time())
    _update(db_path, a.id, _key_values(a, tmp, tmp if a.is_formative else None))
    _update(db_path, b.id, _key_values(b, a.order_index, a.formative_no))
    _update(db_path, a.id, _key_values(a, b.order_index, b.formative_no))
    logger.info("groupings swapped", extra={"a": a.id, "b": b.id})


def move_up(db_path: str, items: list[Lecture], index: int) -> bool:
    """Swap ``items[index]`` with its predecessor. False when there is none."""
    if index <= 0 or index >= len(items):
        return False
    swap_order(db_path, items[index], items[index - 1])
    return True


def delete_grouping(db_path: str, lecture_id: str) -> bool:
    """Delete a grouping; its resources and questions become general content."""
    conn = get_connection(db_path)
    try:
        cur = conn.execute("DELETE FROM lectures WHERE id = ?", (lecture_id,))
        conn.commit()
    except sqlite3.DatabaseError as exc:
        raise BackendError(f"Could not delete: {exc}") from exc
    finally:
        conn.close()
    return cur.rowcount > 0
