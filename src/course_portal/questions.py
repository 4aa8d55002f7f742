"""MCQ question bank administration."""
import json
import logging
import sqlite3

from course_portal.db import get_connection, is_fk_restriction, new_id, now_iso
from course_portal.errors import BackendError, DeleteOutcome, ValidationError
from course_portal.models import DraftQuestion, McqQuestion

logger = logging.getLogger(__name__)

MIN_CHOICES = 2
MAX_CHOICES = 6


def list_questions(
    db_path: str,
    course_id: str,
    lecture_id: str | None = None,
    query: str = "",
    show_archived: bool = False,
) -> list[McqQuestion]:
    """Questions for a course, newest first, optionally narrowed."""
    sql = "SELECT * FROM mcq_questions WHERE course_id = ?"
    params: list = [course_id]
    if lecture_id:
        sql += " AND lecture_id = ?"
        params.append(lecture_id)
    if not show_archived:
        sql += " AND is_archived = 0"
    if query.strip():
        sql += " AND lower(question_text) LIKE ?"
        params.append(f"%{query.strip().lower()}%")
    sql += " ORDER BY created_at DESC, rowid DESC"
    conn = get_connection(db_path)
    rows = conn.execute(sql, params).fetchall()
    conn.close()
    return [McqQuestion.from_row(r) for r in rows]


def get_question(db_path: str, question_id: str) -> McqQuestion | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM mcq_questions WHERE id = ?", (question_id,)).fetchone()
    conn.close()
    return McqQuestion.from_row(row) if row else None


def clean_question(text: str, choices: list[str], correct_index) -> tuple[str, list[str], int]:
    """Validate an edit form: text, 2..6 non-blank choices, clamped answer."""
    text = (text or "").strip()
    if not text:
        raise ValidationError("Question text is required.")
    kept = [c.strip() for c in choices if c and c.strip()][:MAX_CHOICES]
    if len(kept) < MIN_CHOICES:
        raise ValidationError("At least 2 choices are required.")
    try:
        index = int(correct_index)
    except (TypeError, ValueError):
        index = 0
    index = max(0, min(index, len(kept) - 1))
    return text, kept, index


def add_question(
    db_path: str,
    course_id: str,
    text: str,
    choices: list[str],
    correct_index,
    lecture_id: str | None = None,
    explanation: str = "",
    created_by: str | None = None,
) -> McqQuestion:
    text, kept, index = clean_question(text, choices, correct_index)
    question = McqQuestion(
        id=new_id(), course_id=course_id, question_text=text, choices=kept,
        correct_index=index, lecture_id=lecture_id,
        explanation=explanation.strip() or None, created_at=now_iso(),
    )
    conn = get_connection(db_path)
    try:
        conn.execute(
            """INSERT INTO mcq_questions
            (id, course_id, lecture_id, question_text, choices, correct_index, explanation, created_by, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (question.id, course_id, lecture_id, text, json.dumps(kept), index,
             question.explanation, created_by, question.created_at),
        )
        conn.commit()
    except sqlite3.DatabaseError as exc:
        raise BackendError(f"Could not add question: {exc}") from exc
    finally:
        conn.close()
    return question


def update_question(
    db_path: str,
    question: McqQuestion,
    text: str,
    choices: list[str],
    correct_index,
    lecture_id: str | None = None,
    explanation: str = "",
) -> McqQuestion:
    text, kept, index = clean_question(text, choices, correct_index)
    conn = get_connection(db_path)
    try:
        conn.execute(
            """UPDATE mcq_questions SET question_text = ?, choices = ?, correct_index = ?,
            lecture_id = ?, explanation = ? WHERE id = ?""",
            (text, json.dumps(kept), index, lecture_id, explanation.strip() or None, question.id),
        )
        conn.commit()
    except sqlite3.DatabaseError as exc:
        raise BackendError(f"Could not save question: {exc}") from exc
    finally:
        conn.close()
    question.question_text = text
    question.choices = kept
    question.correct_index = index
    question.lecture_id = lecture_id
    question.explanation = explanation.strip() or None
    return question


def set_archived(db_path: str, question_id: str, archived: bool = True) -> None:
    conn = get_connection(db_path)
    conn.execute("UPDATE mcq_questions SET is_archived = ? WHERE id = ?", (int(archived), question_id))
    conn.commit()
    conn.close()


def delete_question(db_path: str, question_id: str) -> DeleteOutcome:
    """Hard delete, or archive when past quiz attempts still reference it."""
    conn = get_connection(db_path)
    try:
        conn.execute("DELETE FROM mcq_questions WHERE id = ?", (question_id,))
        conn.commit()
        return DeleteOutcome.deleted()
    except sqlite3.IntegrityError as exc:
        if not is_fk_restriction(exc):
            return DeleteOutcome.failed(str(exc))
    except sqlite3.DatabaseError as exc:
        return DeleteOutcome.failed(str(exc))
    finally:
        conn.close()

    try:
        set_archived(db_path, question_id, True)
    except sqlite3.DatabaseError as exc:
        return DeleteOutcome.failed(f"Delete blocked and archive failed: {exc}")
    logger.info("question archived instead of deleted", extra={"question_id": question_id})
    return DeleteOutcome.archived("Question is used in past attempts, so it was archived.")


def insert_drafts(
    db_path: str,
    course_id: str,
    lecture_id: str | None,
    drafts: list[DraftQuestion],
    created_by: str | None = None,
) -> int:
    """Bulk insert reviewed drafts. Every draft must have a chosen answer."""
    if not drafts:
        raise ValidationError("Nothing to save.")
    rows = []
    for n, draft in enumerate(drafts, start=1):
        if draft.detected_correct is None:
            raise ValidationError(f"Question {n} has no correct answer selected.")
        try:
            text, kept, index = clean_question(draft.question, draft.choices, draft.detected_correct)
        except ValidationError as exc:
            raise ValidationError(f"Question {n}: {exc}") from exc
        rows.append((new_id(), course_id, lecture_id, text, json.dumps(kept), index, created_by, now_iso()))

    conn = get_connection(db_path)
    try:
        conn.executemany(
            """INSERT INTO mcq_questions
            (id, course_id, lecture_id, question_text, choices, correct_index, created_by, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            rows,
        )
        conn.commit()
    except sqlite3.DatabaseError as exc:
        raise BackendError(f"Could not save questions: {exc}") from exc
    finally:
        conn.close()
    logger.info("drafts inserted", extra={"course_id": course_id, "count": len(rows)})
    return len(rows)
