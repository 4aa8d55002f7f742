"""Quiz engine: question selection, in-memory sessions and scoring."""
import logging
import random
from dataclasses import dataclass, field, replace

from course_portal.db import get_connection, new_id, now_iso
from course_portal.errors import PortalError, ValidationError
from course_portal.lectures import list_groupings
from course_portal.models import MODES, Lecture, McqQuestion

logger = logging.getLogger(__name__)

GROUPS = ("all", "lectures", "formatives", "mixed")
MIN_COUNT = 5
MAX_COUNT = 200
DEFAULT_COUNT = 50
COUNT_OPTIONS = (10, 20, 30, 50, 75, 100)


class EmptySelection(PortalError):
    """No questions match the filters. The user can change them and retry."""


class IncompleteQuiz(ValidationError):
    def __init__(self, missing: int):
        super().__init__(f"{missing} question(s) still have no answer.")
        self.missing = missing


def clamp_count(value) -> int:
    try:
        n = int(value)
    except (TypeError, ValueError):
        return DEFAULT_COUNT
    return min(max(n, MIN_COUNT), MAX_COUNT)


@dataclass
class QuizFilters:
    course_id: str = ""
    group: str = "all"
    lecture_ids: list[str] = field(default_factory=list)
    formative_ids: list[str] = field(default_factory=list)
    include_general: bool = False
    count: int = DEFAULT_COUNT
    shuffle: bool = True
    mode: str = "practice"

    def selected_ids(self) -> list[str]:
        if self.group == "lectures":
            return list(self.lecture_ids)
        if self.group == "formatives":
            return list(self.formative_ids)
        if self.group == "mixed":
            return list(self.lecture_ids) + list(self.formative_ids)
        return []

    def can_start(self) -> bool:
        if not self.course_id:
            return False
        return self.group == "all" or bool(self.selected_ids())

    def normalized(self) -> "QuizFilters":
        """Canonical form: what survives a trip through the quiz URL."""
        group = self.group if self.group in GROUPS else "all"
        lectures = list(self.lecture_ids) if group in ("lectures", "mixed") else []
        formatives = list(self.formative_ids) if group in ("formatives", "mixed") else []
        return replace(
            self,
            group=group,
            lecture_ids=lectures,
            formative_ids=formatives,
            include_general=self.include_general and group != "all",
            count=clamp_count(self.count),
            mode="exam" if self.mode == "exam" else "practice",
        )


def _display_rank(groupings: list[Lecture]) -> dict[str, tuple]:
    """Whole-course order: lectures by order key, then formatives by number."""
    ranks = {}
    for g in groupings:
        ranks[g.id] = (1 if g.is_formative else 0, g.sort_key)
    return ranks


def select_questions(db_path: str, filters: QuizFilters, rng: random.Random | None = None) -> list[McqQuestion]:
    """Fetch, order, truncate and optionally shuffle the questions for a quiz.

    General (ungrouped) questions come first in whole-course sessions, followed
    by lecture and formative questions in display order. Scoped sessions are
    ordered by creation time. Raises ``EmptySelection`` when nothing matches.
    """
    if not filters.course_id:
        raise ValidationError("Choose a course first.")
    ids = filters.selected_ids()
    if filters.group != "all" and not ids:
        raise ValidationError("Choose at least one lecture or formative.")

    sql = "SELECT * FROM mcq_questions WHERE course_id = ? AND is_archived = 0"
    params: list = [filters.course_id]
    if filters.group != "all":
        marks = ", ".join("?" for _ in ids)
        if filters.include_general:
            sql += f" AND (lecture_id IN ({marks}) OR lecture_id IS NULL)"
        else:
            sql += f" AND lecture_id IN ({marks})"
        params.extend(ids)
    sql += " ORDER BY created_at, rowid"

    conn = get_connection(db_path)
    rows = conn.execute(sql, params).fetchall()
    conn.close()
    questions = [McqQuestion.from_row(r) for r in rows]

    if filters.group == "all":
        lectures, formatives = list_groupings(db_path, filters.course_id)
        ranks = _display_rank(lectures + formatives)
        # list.sort is stable: creation order holds within a grouping
        questions.sort(key=lambda q: (0,) if q.lecture_id is None else (1, *ranks.get(q.lecture_id, (2, 0))))

    questions = questions[:clamp_count(filters.count)]
    if not questions:
        raise EmptySelection("No questions match these filters. Try another lecture or clear the scope.")
    if filters.shuffle:
        (rng or random).shuffle(questions)
    return questions


def score(correct: int, total: int) -> int:
    """Percentage rounded half up; 0 for an empty quiz."""
    if total <= 0:
        return 0
    return (200 * correct + total) // (2 * total)


def selection_label(filters: QuizFilters, groupings: list[Lecture]) -> str:
    if filters.group == "all":
        return "Whole course"
    by_id = {g.id: g for g in groupings}

    def title_of(gid: str) -> str:
        g = by_id.get(gid)
        if g is None:
            return gid
        return f"Formative {g.sort_key}" if g.is_formative else g.title

    def join(ids):
        return " + ".join(title_of(i) for i in ids)

    if filters.group == "lectures":
        return f"Lectures: {join(filters.lecture_ids)}"
    if filters.group == "formatives":
        return f"Formatives: {join(filters.formative_ids)}"
    return f"Custom: {join(filters.selected_ids())}"


@dataclass(frozen=True)
class QuizResult:
    correct_count: int
    total: int
    score: int


@dataclass
class QuizSession:
    """One run through a question list. Submission is final."""

    questions: list[McqQuestion]
    mode: str = "practice"
    index: int = 0
    answers: dict[str, int] = field(default_factory=dict)
    submitted: bool = False
    started_at: str = field(default_factory=now_iso)
    result: QuizResult | None = None

    def __post_init__(self):
        if self.mode not in MODES:
            raise ValidationError(f"Unknown mode: {self.mode}")

    @property
    def current(self) -> McqQuestion | None:
        if not self.questions:
            return None
        return self.questions[self.index]

    @property
    def progress(self) -> str:
        return f"{self.index + 1}/{len(self.questions)}" if self.questions else "0/0"

    def next(self) -> None:
        self.index = min(self.index + 1, max(len(self.questions) - 1, 0))

    def previous(self) -> None:
        self.index = max(self.index - 1, 0)

    def go_to(self, index: int) -> None:
        if 0 <= index < len(self.questions):
            self.index = index

    def choose(self, choice: int, question_id: str | None = None) -> None:
        """Record a selection; the last choice for a question wins."""
        if self.submitted:
            raise ValidationError("This quiz is already submitted.")
        question = self.current if question_id is None else self._question(question_id)
        if question is None:
            raise ValidationError("No question to answer.")
        if not 0 <= choice < len(question.choices):
            raise ValidationError(f"Choice must be between 1 and {len(question.choices)}.")
        self.answers[question.id] = choice

    def _question(self, question_id: str) -> McqQuestion | None:
        return next((q for q in self.questions if q.id == question_id), None)

    def is_revealed(self, question_id: str) -> bool:
        if self.submitted:
            return True
        return self.mode == "practice" and question_id in self.answers

    @property
    def missing_count(self) -> int:
        return sum(1 for q in self.questions if q.id not in self.answers)

    @property
    def correct_count(self) -> int:
        return sum(1 for q in self.questions if self.answers.get(q.id) == q.correct_index)

    def submit(self) -> QuizResult:
        if self.submitted and self.result is not None:
            return self.result
        if not self.questions:
            raise ValidationError("There are no questions to submit.")
        missing = self.missing_count
        if missing:
            raise IncompleteQuiz(missing)
        correct = self.correct_count
        total = len(self.questions)
        self.result = QuizResult(correct, total, score(correct, total))
        self.submitted = True
        return self.result


def persist_attempt(
    db_path: str,
    user_id: str | None,
    filters: QuizFilters,
    session: QuizSession,
    label: str | None = None,
) -> str | None:
    """Write a submitted session to history, best effort.

    The attempt row goes first, then the question order, then the answers.
    Failures are logged and swallowed; the caller's result stands either way.
    Returns the attempt id when the attempt row was written.
    """
    if not user_id or session.result is None:
        return None
    ids = filters.selected_ids() if filters.group != "all" else []
    lecture_id = ids[0] if len(ids) == 1 else None
    result = session.result
    quiz_id = new_id()
    saved = None
    try:
        submitted_at = now_iso()
        conn = get_connection(db_path)
        try:
            conn.execute(
                """INSERT INTO mcq_quizzes
                (id, user_id, course_id, lecture_id, mode, selection, total_questions,
                 correct_count, score, started_at, submitted_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (quiz_id, user_id, filters.course_id, lecture_id, session.mode, label,
                 result.total, result.correct_count, result.score, session.started_at, submitted_at),
            )
            conn.commit()
        finally:
            conn.close()
        saved = quiz_id

        conn = get_connection(db_path)
        try:
            conn.executemany(
                "INSERT INTO mcq_quiz_questions (quiz_id, question_id, order_index) VALUES (?, ?, ?)",
                [(quiz_id, q.id, i) for i, q in enumerate(session.questions)],
            )
            conn.commit()
            conn.executemany(
                """INSERT INTO mcq_quiz_answers (quiz_id, question_id, selected_index, is_correct, answered_at)
                VALUES (?, ?, ?, ?, ?)""",
                [
                    (quiz_id, q.id, session.answers.get(q.id),
                     int(session.answers.get(q.id) == q.correct_index), submitted_at)
                    for q in session.questions
                ],
            )
            conn.commit()
        finally:
            conn.close()
    except Exception as exc:
        logger.warning("quiz history not fully saved: %s", exc, extra={"quiz_id": saved})
        return saved
    logger.info("quiz attempt saved", extra={"quiz_id": quiz_id, "score": result.score})
    return quiz_id
