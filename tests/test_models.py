"""Tests for data model classes."""
import json

from course_portal.models import DraftQuestion, FavoriteResource, Lecture, McqQuestion, QuizAttempt


def test_lecture_defaults():
    l = Lecture(id="l1", course_id="c1", title="Lecture 1", order_index=1)
    assert l.kind == "lecture"
    assert l.formative_no is None
    assert not l.is_formative
    assert l.sort_key == 1


def test_formative_sort_key_uses_label():
    f = Lecture(id="f1", course_id="c1", title="Formative 3", order_index=7, kind="formative", formative_no=3)
    assert f.is_formative
    assert f.sort_key == 3


def test_formative_sort_key_falls_back_to_order():
    f = Lecture(id="f1", course_id="c1", title="F", order_index=4, kind="formative")
    assert f.sort_key == 4


def test_question_from_row_decodes_choices():
    row = {
        "id": "q1", "course_id": "c1", "question_text": "Q?", "choices": json.dumps(["x", "y"]),
        "correct_index": 1, "lecture_id": None, "explanation": None, "is_archived": 0, "created_at": "t",
    }
    q = McqQuestion.from_row(row)
    assert q.choices == ["x", "y"]
    assert q.is_archived is False


class _Row(dict):
    def keys(self):
        return list(super().keys())


def test_attempt_from_row_without_joined_columns():
    row = _Row(
        id="a", user_id="u", course_id="c", mode="exam", total_questions=4, correct_count=3, score=75,
        lecture_id=None, selection="Whole course", started_at="s", submitted_at=None,
    )
    attempt = QuizAttempt.from_row(row)
    assert attempt.course_code is None
    assert not attempt.is_submitted


def test_draft_question_defaults():
    d = DraftQuestion(question="Q?")
    assert d.choices == []
    assert d.detected_correct is None
    assert d.needs_review is False


def test_favorite_defaults():
    f = FavoriteResource(id="r1", title="Slides")
    assert f.saved_at == ""
    assert f.lecture_key is None
