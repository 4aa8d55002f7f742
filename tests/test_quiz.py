# tests/test_quiz.py
import random
from dataclasses import replace

import pytest

from course_portal.db import get_connection
from course_portal.errors import ValidationError
from course_portal.questions import add_question, set_archived
from course_portal.quiz import (
    EmptySelection, IncompleteQuiz, QuizFilters, QuizSession, clamp_count, persist_attempt, score,
    select_questions, selection_label,
)


def _texts(questions):
    return {q.question_text for q in questions}


def test_score_rounds_half_up():
    assert score(0, 7) == 0
    assert score(7, 7) == 100
    assert score(1, 8) == 13  # 12.5
    assert score(1, 3) == 33
    assert score(2, 3) == 67
    assert score(0, 0) == 0


@pytest.mark.parametrize("total", range(1, 41))
def test_score_matches_percentage(total):
    for correct in range(total + 1):
        exact = correct * 100 / total
        assert abs(score(correct, total) - exact) <= 0.5


def test_clamp_count():
    assert clamp_count(1) == 5
    assert clamp_count(500) == 200
    assert clamp_count("30") == 30
    assert clamp_count("lots") == 50


def test_scope_filter_lectures(db, course, groupings, scoped_questions):
    l1, _, _ = groupings
    filters = QuizFilters(course_id=course.id, group="lectures", lecture_ids=[l1.id], shuffle=False)
    assert _texts(select_questions(db, filters)) == {"Question 1?", "Question 2?"}
    filters.include_general = True
    assert _texts(select_questions(db, filters)) == {"Question 1?", "Question 2?", "Question 4?", "Question 5?"}


def test_archived_questions_are_excluded(db, course, scoped_questions):
    set_archived(db, scoped_questions[0].id)
    picked = select_questions(db, QuizFilters(course_id=course.id, shuffle=False))
    assert "Question 1?" not in _texts(picked)


def test_whole_course_order_follows_display_order(db, course, groupings):
    l1, l2, f1 = groupings
    add_question(db, course.id, "formative", ["a", "b"], 0, f1.id)
    add_question(db, course.id, "lecture 2", ["a", "b"], 0, l2.id)
    add_question(db, course.id, "general", ["a", "b"], 0)
    add_question(db, course.id, "lecture 1", ["a", "b"], 0, l1.id)
    picked = select_questions(db, QuizFilters(course_id=course.id, shuffle=False))
    assert [q.question_text for q in picked] == ["general", "lecture 1", "lecture 2", "formative"]


def test_count_truncates_before_shuffle(db, course):
    for n in range(8):
        add_question(db, course.id, f"Q{n}", ["a", "b"], 0)
    filters = QuizFilters(course_id=course.id, count=5, shuffle=True)
    picked = select_questions(db, filters, rng=random.Random(3))
    assert _texts(picked) == {f"Q{n}" for n in range(5)}


def test_empty_selection(db, course, groupings):
    _, l2, _ = groupings
    with pytest.raises(EmptySelection):
        select_questions(db, QuizFilters(course_id=course.id, group="lectures", lecture_ids=[l2.id]))


def test_selection_requires_ids(db, course):
    filters = QuizFilters(course_id=course.id, group="formatives")
    assert not filters.can_start()
    with pytest.raises(ValidationError):
        select_questions(db, filters)


def test_selected_ids_by_group():
    f = QuizFilters(course_id="c", group="mixed", lecture_ids=["l1"], formative_ids=["f1"])
    assert f.selected_ids() == ["l1", "f1"]
    f.group = "lectures"
    assert f.selected_ids() == ["l1"]
    f.group = "all"
    assert f.selected_ids() == []
    assert f.can_start()


def test_selection_label(groupings):
    l1, l2, f1 = groupings
    items = [l1, l2, f1]
    assert selection_label(QuizFilters(group="all"), items) == "Whole course"
    assert selection_label(QuizFilters(group="lectures", lecture_ids=[l1.id, l2.id]), items) == \
        "Lectures: Lecture 1 (Intro) + Lecture 2 (Receptors)"
    assert selection_label(QuizFilters(group="formatives", formative_ids=[f1.id]), items) == "Formatives: Formative 1"
    assert selection_label(QuizFilters(group="mixed", lecture_ids=["gone"]), items) == "Custom: gone"


def _session(scoped_questions, mode="exam"):
    return QuizSession(list(scoped_questions[:3]), mode=mode)


def test_last_choice_wins(scoped_questions):
    session = _session(scoped_questions)
    session.choose(0)
    session.choose(2)
    assert session.answers == {scoped_questions[0].id: 2}


def test_submit_refused_with_missing_count(scoped_questions):
    session = _session(scoped_questions)
    session.choose(1)
    with pytest.raises(IncompleteQuiz) as info:
        session.submit()
    assert info.value.missing == 2
    assert not session.submitted


def test_submit_scores_and_is_final(scoped_questions):
    session = _session(scoped_questions)
    for q in session.questions:
        session.go_to(session.questions.index(q))
        session.choose(q.correct_index if q is not session.questions[2] else (q.correct_index + 1) % 4)
    result = session.submit()
    assert (result.correct_count, result.total, result.score) == (2, 3, 67)
    assert session.submitted
    with pytest.raises(ValidationError):
        session.choose(0)
    assert session.submit() is result


def test_practice_reveals_only_answered(scoped_questions):
    session = _session(scoped_questions, mode="practice")
    session.choose(0)
    assert session.is_revealed(scoped_questions[0].id)
    assert not session.is_revealed(scoped_questions[1].id)
    exam = _session(scoped_questions)
    exam.choose(0)
    assert not exam.is_revealed(scoped_questions[0].id)


def test_navigation_stays_in_bounds(scoped_questions):
    session = _session(scoped_questions)
    session.previous()
    assert session.index == 0
    for _ in range(5):
        session.next()
    assert session.index == 2
    assert session.progress == "3/3"


def test_choice_out_of_range(scoped_questions):
    with pytest.raises(ValidationError):
        _session(scoped_questions).choose(4)


def test_persist_attempt_writes_three_tables(db, course, groupings, scoped_questions):
    l1, _, _ = groupings
    filters = QuizFilters(course_id=course.id, group="lectures", lecture_ids=[l1.id])
    session = QuizSession(list(scoped_questions[:2]), mode="practice")
    session.choose(scoped_questions[0].correct_index)
    session.next()
    session.choose(0)
    session.submit()
    quiz_id = persist_attempt(db, "user-1", filters, session, "Lectures: Lecture 1")
    conn = get_connection(db)
    quiz = conn.execute("SELECT * FROM mcq_quizzes WHERE id = ?", (quiz_id,)).fetchone()
    order = conn.execute("SELECT COUNT(*) FROM mcq_quiz_questions WHERE quiz_id = ?", (quiz_id,)).fetchone()[0]
    answers = conn.execute("SELECT COUNT(*) FROM mcq_quiz_answers WHERE quiz_id = ?", (quiz_id,)).fetchone()[0]
    conn.close()
    assert quiz["lecture_id"] == l1.id
    assert quiz["selection"] == "Lectures: Lecture 1"
    assert quiz["score"] == session.result.score
    assert quiz["submitted_at"] is not None
    assert (order, answers) == (2, 2)


def test_persist_attempt_swallows_failures(db, course, scoped_questions):
    session = _session(scoped_questions)
    for q in session.questions:
        session.choose(0, q.id)
    result = session.submit()
    bad = QuizFilters(course_id="missing-course")
    assert persist_attempt(db, "user-1", bad, session) is None
    assert session.result is result


def test_persist_attempt_keeps_attempt_when_later_writes_fail(db, course, scoped_questions):
    # An unknown question id makes the order rows violate their foreign key.
    ghost = replace(scoped_questions[0], id="ghost")
    session = QuizSession([ghost, scoped_questions[1]], mode="exam")
    for q in session.questions:
        session.choose(q.correct_index, q.id)
    result = session.submit()
    quiz_id = persist_attempt(db, "user-1", QuizFilters(course_id=course.id), session)
    assert quiz_id is not None
    assert session.result is result
    conn = get_connection(db)
    quiz = conn.execute("SELECT * FROM mcq_quizzes WHERE id = ?", (quiz_id,)).fetchone()
    order = conn.execute("SELECT COUNT(*) FROM mcq_quiz_questions WHERE quiz_id = ?", (quiz_id,)).fetchone()[0]
    conn.close()
    assert quiz["score"] == 100
    assert order == 0


def test_persist_attempt_needs_user_and_result(db, course, scoped_questions):
    session = _session(scoped_questions)
    assert persist_attempt(db, "user-1", QuizFilters(course_id=course.id), session) is None
    for q in session.questions:
        session.choose(0, q.id)
    session.submit()
    assert persist_attempt(db, None, QuizFilters(course_id=course.id), session) is None
