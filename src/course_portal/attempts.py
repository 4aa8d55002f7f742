"""Persisted quiz sessions, results and attempt history."""
import logging
import math
import sqlite3
from dataclasses import dataclass, field

from course_portal.db import get_connection, new_id, now_iso
from course_portal.errors import BackendError, ValidationError
from course_portal.models import McqQuestion, QuizAnswer, QuizAttempt
from course_portal.quiz import IncompleteQuiz, QuizFilters, score, select_questions

logger = logging.getLogger(__name__)

RESULT_VIEWS = ("all", "wrong", "unanswered")

_ATTEMPT_SELECT = """
    SELECT q.*, c.code AS course_code, c.name AS course_name, l.title AS lecture_title
    FROM mcq_quizzes q
    JOIN courses c ON c.id = q.course_id
    LEFT JOIN lectures l ON l.id = q.lecture_id
"""


@dataclass
class PersistedQuiz:
    attempt: QuizAttempt
    questions: list[McqQuestion]
    # question id -> selected index; None is an explicit "left unanswered"
    answers: dict[str, int | None] = field(default_factory=dict)

    @property
    def answered_count(self) -> int:
        return sum(1 for v in self.answers.values() if v is not None)

    @property
    def missing_count(self) -> int:
        return sum(1 for q in self.questions if q.id not in self.answers)


@dataclass(frozen=True)
class Redirect:
    """Returned instead of a quiz when the attempt is already submitted."""

    quiz_id: str
    to: str = "results"


@dataclass
class ResultItem:
    question: McqQuestion
    selected_index: int | None

    @property
    def is_correct(self) -> bool:
        return self.selected_index is not None and self.selected_index == self.question.correct_index

    @property
    def is_unanswered(self) -> bool:
        return self.selected_index is None


def get_attempt(db_path: str, quiz_id: str) -> QuizAttempt | None:
    conn = get_connection(db_path)
    row = conn.execute(_ATTEMPT_SELECT + " WHERE q.id = ?", (quiz_id,)).fetchone()
    conn.close()
    return QuizAttempt.from_row(row) if row else None


def create_quiz(db_path: str, user_id: str, filters: QuizFilters, label: str | None = None, rng=None) -> str:
    """Start a resumable attempt: the attempt row, then its question order."""
    if not user_id:
        raise ValidationError("Sign in to save a quiz.")
    questions = select_questions(db_path, filters, rng=rng)
    ids = filters.selected_ids()
    lecture_id = ids[0] if len(ids) == 1 else None
    quiz_id = new_id()
    conn = get_connection(db_path)
    try:
        conn.execute(
            """INSERT INTO mcq_quizzes
            (id, user_id, course_id, lecture_id, mode, selection, total_questions, started_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (quiz_id, user_id, filters.course_id, lecture_id, filters.mode, label,
             len(questions), now_iso()),
        )
        conn.executemany(
            "INSERT INTO mcq_quiz_questions (quiz_id, question_id, order_index) VALUES (?, ?, ?)",
            [(quiz_id, q.id, i) for i, q in enumerate(questions)],
        )
        conn.commit()
    except sqlite3.DatabaseError as exc:
        raise BackendError(f"Could not start the quiz: {exc}") from exc
    finally:
        conn.close()
    logger.info("quiz created", extra={"quiz_id": quiz_id, "questions": len(questions)})
    return quiz_id


def _load_questions(conn, quiz_id: str) -> list[McqQuestion]:
    rows = conn.execute(
        """SELECT m.* FROM mcq_quiz_questions qq
        JOIN mcq_questions m ON m.id = qq.question_id
        WHERE qq.quiz_id = ? ORDER BY qq.order_index""",
        (quiz_id,),
    ).fetchall()
    return [McqQuestion.from_row(r) for r in rows]


def _load_answers(conn, quiz_id: str) -> dict[str, int | None]:
    rows = conn.execute(
        "SELECT question_id, selected_index FROM mcq_quiz_answers WHERE quiz_id = ?", (quiz_id,)
    ).fetchall()
    return {r["question_id"]: r["selected_index"] for r in rows}


def load_quiz(db_path: str, quiz_id: str) -> PersistedQuiz | Redirect:
    attempt = get_attempt(db_path, quiz_id)
    if attempt is None:
        raise ValidationError("Quiz not found.")
    if attempt.is_submitted:
        return Redirect(quiz_id)
    conn = get_connection(db_path)
    questions = _load_questions(conn, quiz_id)
    answers = _load_answers(conn, quiz_id)
    conn.close()
    return PersistedQuiz(attempt=attempt, questions=questions, answers=answers)


def _require_open(db_path: str, quiz_id: str) -> QuizAttempt:
    attempt = get_attempt(db_path, quiz_id)
    if attempt is None:
        raise ValidationError("Quiz not found.")
    if attempt.is_submitted:
        raise ValidationError("This quiz is already submitted.")
    return attempt


def record_answer(db_path: str, quiz_id: str, question: McqQuestion, selected_index: int | None) -> QuizAnswer:
    """Upsert the answer for one question; a later choice replaces an earlier one."""
    _require_open(db_path, quiz_id)
    if selected_index is not None and not 0 <= selected_index < len(question.choices):
        raise ValidationError(f"Choice must be between 1 and {len(question.choices)}.")
    answer = QuizAnswer(question.id, selected_index, selected_index == question.correct_index)
    conn = get_connection(db_path)
    try:
        conn.execute(
            """INSERT INTO mcq_quiz_answers (quiz_id, question_id, selected_index, is_correct, answered_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(quiz_id, question_id) DO UPDATE SET
                selected_index = excluded.selected_index,
                is_correct = excluded.is_correct,
                answered_at = excluded.answered_at""",
            (quiz_id, question.id, selected_index, int(answer.is_correct), now_iso()),
        )
        conn.commit()
    except sqlite3.DatabaseError as exc:
        raise BackendError(f"Could not save the answer: {exc}") from exc
    finally:
        conn.close()
    return answer


def mark_unanswered(db_path: str, quiz_id: str) -> int:
    """Write explicit null answers for every question without an entry."""
    _require_open(db_path, quiz_id)
    conn = get_connection(db_path)
    try:
        cur = conn.execute(
            """INSERT INTO mcq_quiz_answers (quiz_id, question_id, selected_index, is_correct, answered_at)
            SELECT qq.quiz_id, qq.question_id, NULL, 0, ?
            FROM mcq_quiz_questions qq
            WHERE qq.quiz_id = ? AND NOT EXISTS (
                SELECT 1 FROM mcq_quiz_answers a
                WHERE a.quiz_id = qq.quiz_id AND a.question_id = qq.question_id
            )""",
            (now_iso(), quiz_id),
        )
        conn.commit()
    finally:
        conn.close()
    return cur.rowcount


def submit_quiz(db_path: str, quiz_id: str) -> QuizAttempt:
    """Score and close the attempt.

    Every question needs an answer row; explicit nulls count toward the total
    but never toward the correct count. Raises ``IncompleteQuiz`` otherwise.
    """
    _require_open(db_path, quiz_id)
    conn = get_connection(db_path)
    questions = _load_questions(conn, quiz_id)
    answers = _load_answers(conn, quiz_id)
    missing = sum(1 for q in questions if q.id not in answers)
    if missing:
        conn.close()
        raise IncompleteQuiz(missing)
    total = len(questions)
    correct = sum(1 for q in questions if answers[q.id] is not None and answers[q.id] == q.correct_index)
    pct = score(correct, total)
    conn.execute(
        """UPDATE mcq_quizzes SET total_questions = ?, correct_count = ?, score = ?, submitted_at = ?
        WHERE id = ?""",
        (total, correct, pct, now_iso(), quiz_id),
    )
    conn.commit()
    conn.close()
    logger.info("quiz submitted", extra={"quiz_id": quiz_id, "score": pct})
    return get_attempt(db_path, quiz_id)


def get_results(db_path: str, quiz_id: str, view: str = "all") -> tuple[QuizAttempt, list[ResultItem]]:
    if view not in RESULT_VIEWS:
        raise ValidationError(f"Unknown results view: {view}")
    attempt = get_attempt(db_path, quiz_id)
    if attempt is None:
        raise ValidationError("Quiz not found.")
    conn = get_connection(db_path)
    questions = _load_questions(conn, quiz_id)
    answers = _load_answers(conn, quiz_id)
    conn.close()
    items = [ResultItem(q, answers.get(q.id)) for q in questions]
    if view == "unanswered":
        items = [it for it in items if it.is_unanswered]
    elif view == "wrong":
        items = [it for it in items if not it.is_unanswered and not it.is_correct]
    return attempt, items


def list_history(db_path: str, user_id: str, course_id: str | None = None) -> list[QuizAttempt]:
    """Submitted attempts, newest first."""
    sql = _ATTEMPT_SELECT + " WHERE q.user_id = ? AND q.submitted_at IS NOT NULL"
    params: list = [user_id]
    if course_id:
        sql += " AND q.course_id = ?"
        params.append(course_id)
    sql += " ORDER BY q.started_at DESC, q.rowid DESC"
    conn = get_connection(db_path)
    rows = conn.execute(sql, params).fetchall()
    conn.close()
    return [QuizAttempt.from_row(r) for r in rows]


def list_open_quizzes(db_path: str, user_id: str) -> list[QuizAttempt]:
    """Unsubmitted attempts that can be resumed."""
    conn = get_connection(db_path)
    rows = conn.execute(
        _ATTEMPT_SELECT + " WHERE q.user_id = ? AND q.submitted_at IS NULL ORDER BY q.started_at DESC",
        (user_id,),
    ).fetchall()
    conn.close()
    return [QuizAttempt.from_row(r) for r in rows]


def _half_up(x: float) -> int:
    return math.floor(x + 0.5)


def history_stats(attempts: list[QuizAttempt]) -> dict:
    """Summary of a newest-first history list."""
    if not attempts:
        return {"count": 0, "avg": 0, "best": 0, "last": 0}
    scores = [a.score or 0 for a in attempts]
    return {
        "count": len(scores),
        "avg": _half_up(sum(scores) / len(scores)),
        "best": max(scores),
        "last": scores[0],
    }


def score_series(attempts: list[QuizAttempt]) -> list[tuple[str, int]]:
    """(started_at, score) points, oldest to newest, for charting."""
    return [(a.started_at or "", a.score) for a in reversed(attempts)]
