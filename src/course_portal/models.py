"""Data classes for the portal domain model."""
import json
from dataclasses import dataclass, field
from typing import Optional

ROLES = ("student", "moderator", "admin")
KINDS = ("lecture", "formative")
MODES = ("practice", "exam")


@dataclass
class Profile:
    id: str
    role: str = "student"
    full_name: Optional[str] = None
    created_at: Optional[str] = None


@dataclass
class Course:
    id: str
    code: str
    name: str
    semester: Optional[int] = None
    description: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "Course":
        return cls(row["id"], row["code"], row["name"], row["semester"], row["description"])


@dataclass
class Lecture:
    id: str
    course_id: str
    title: str
    order_index: int
    kind: str = "lecture"
    formative_no: Optional[int] = None
    created_at: Optional[str] = None

    @property
    def is_formative(self) -> bool:
        return self.kind == "formative"

    @property
    def sort_key(self) -> int:
        """Display ordering: formatives by their label, lectures by order key."""
        if self.is_formative and self.formative_no is not None:
            return self.formative_no
        return self.order_index

    @classmethod
    def from_row(cls, row) -> "Lecture":
        return cls(
            id=row["id"],
            course_id=row["course_id"],
            title=row["title"],
            order_index=row["order_index"],
            kind=row["kind"] or "lecture",
            formative_no=row["formative_no"],
            created_at=row["created_at"],
        )


@dataclass
class Resource:
    id: str
    course_id: str
    title: str
    type: str
    lecture_id: Optional[str] = None
    description: Optional[str] = None
    storage_path: Optional[str] = None
    external_url: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "Resource":
        return cls(
            id=row["id"],
            course_id=row["course_id"],
            title=row["title"],
            type=row["type"],
            lecture_id=row["lecture_id"],
            description=row["description"],
            storage_path=row["storage_path"],
            external_url=row["external_url"],
            created_at=row["created_at"],
        )


@dataclass
class McqQuestion:
    id: str
    course_id: str
    question_text: str
    choices: list[str]
    correct_index: int
    lecture_id: Optional[str] = None
    explanation: Optional[str] = None
    is_archived: bool = False
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "McqQuestion":
        choices = row["choices"]
        if isinstance(choices, str):
            choices = json.loads(choices)
        return cls(
            id=row["id"],
            course_id=row["course_id"],
            question_text=row["question_text"],
            choices=list(choices),
            correct_index=row["correct_index"],
            lecture_id=row["lecture_id"],
            explanation=row["explanation"],
            is_archived=bool(row["is_archived"]),
            created_at=row["created_at"],
        )


@dataclass
class QuizAttempt:
    id: str
    user_id: str
    course_id: str
    mode: str
    total_questions: int = 0
    correct_count: int = 0
    score: int = 0
    lecture_id: Optional[str] = None
    selection: Optional[str] = None
    started_at: Optional[str] = None
    submitted_at: Optional[str] = None
    course_code: Optional[str] = None
    course_name: Optional[str] = None
    lecture_title: Optional[str] = None

    @property
    def is_submitted(self) -> bool:
        return self.submitted_at is not None

    @classmethod
    def from_row(cls, row) -> "QuizAttempt":
        keys = row.keys()
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            course_id=row["course_id"],
            mode=row["mode"],
            total_questions=row["total_questions"],
            correct_count=row["correct_count"],
            score=row["score"],
            lecture_id=row["lecture_id"],
            selection=row["selection"],
            started_at=row["started_at"],
            submitted_at=row["submitted_at"],
            course_code=row["course_code"] if "course_code" in keys else None,
            course_name=row["course_name"] if "course_name" in keys else None,
            lecture_title=row["lecture_title"] if "lecture_title" in keys else None,
        )


@dataclass
class QuizAnswer:
    question_id: str
    selected_index: Optional[int]
    is_correct: bool = False


@dataclass
class DraftQuestion:
    """Unsaved question produced by the text importer."""

    question: str
    choices: list[str] = field(default_factory=list)
    needs_review: bool = False
    detected_correct: Optional[int] = None


@dataclass
class FavoriteResource:
    """Client-local snapshot of a resource plus its deep-link context."""

    id: str
    title: str
    type: str = ""
    description: Optional[str] = None
    storage_path: Optional[str] = None
    external_url: Optional[str] = None
    course_id: Optional[str] = None
    course_code: Optional[str] = None
    course_name: Optional[str] = None
    lecture_key: Optional[str] = None
    lecture_title: Optional[str] = None
    saved_at: str = ""
