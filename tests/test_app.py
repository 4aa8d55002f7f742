import pytest
from unittest.mock import patch

from course_portal import attempts
from course_portal.app import (
    SessionExitRequested, cmd_admin, run_persisted_quiz, run_quiz_session, session_int_prompt,
    session_prompt, show_review, sparkline,
)
from course_portal.auth import sign_in, sign_up
from course_portal.courses import add_course
from course_portal.lectures import add_lecture
from course_portal.profiles import set_role
from course_portal.questions import add_question
from course_portal.quiz import QuizFilters, QuizSession


def test_session_prompt_raises_on_q():
    with patch("course_portal.app.Prompt.ask", return_value="q"):
        with pytest.raises(SessionExitRequested):
            session_prompt("test prompt")


def test_session_prompt_raises_on_menu():
    with patch("course_portal.app.Prompt.ask", return_value="MENU"):
        with pytest.raises(SessionExitRequested):
            session_prompt("test prompt")


def test_session_prompt_returns_normal_input():
    with patch("course_portal.app.Prompt.ask", return_value="hello"):
        assert session_prompt("test prompt") == "hello"


def test_session_int_prompt_retries_until_valid():
    with patch("course_portal.app.Prompt.ask", side_effect=["x", "9", "3"]):
        assert session_int_prompt("pick", choices=["1", "2", "3"]) == 3


def test_session_int_prompt_raises_on_q():
    with patch("course_portal.app.Prompt.ask", return_value="q"):
        with pytest.raises(SessionExitRequested):
            session_int_prompt("pick", choices=["1", "2"])


def test_run_quiz_session_scores_answers(db, scoped_questions):
    # Correct indices are 1 and 2, entered one-based.
    session = QuizSession(scoped_questions[:2], mode="exam")
    with patch("course_portal.app.Prompt.ask", side_effect=["2", "3", "s"]):
        result = run_quiz_session(session)
    assert (result.correct_count, result.total, result.score) == (2, 2, 100)
    assert session.submitted


def test_run_quiz_session_refuses_early_submit(db, scoped_questions):
    session = QuizSession(scoped_questions[:2], mode="exam")
    with patch("course_portal.app.Prompt.ask", side_effect=["s", "1", "2", "s"]):
        result = run_quiz_session(session)
    assert (result.correct_count, result.total, result.score) == (0, 2, 0)


def test_run_quiz_session_exits_on_q(db, scoped_questions):
    session = QuizSession(scoped_questions[:2], mode="practice")
    with patch("course_portal.app.Prompt.ask", side_effect=["2", "q"]):
        with pytest.raises(SessionExitRequested):
            run_quiz_session(session)
    assert not session.submitted
    assert session.answers == {scoped_questions[0].id: 1}


@pytest.fixture
def signed_in(settings):
    user_id = sign_up(settings.db_path, "student@example.com", "secret1", "secret1", "Stu Dent")
    sign_in(settings.db_path, settings.session_path, "student@example.com", "secret1")
    return user_id


def test_run_persisted_quiz_submits(settings, signed_in):
    course = add_course(settings.db_path, "micro", "Microbiology", 2)
    lecture = add_lecture(settings.db_path, course.id, 1, "Bacteria")
    for n in (1, 2):
        add_question(settings.db_path, course.id, f"Q{n}?", ["a", "b", "c", "d"], n, lecture.id)
    filters = QuizFilters(course_id=course.id, group="lectures", lecture_ids=[lecture.id], shuffle=False, mode="exam")
    quiz_id = attempts.create_quiz(settings.db_path, signed_in, filters)

    with patch("course_portal.app.Prompt.ask", side_effect=["2", "3", "s", "back"]):
        run_persisted_quiz(settings, quiz_id)

    attempt = attempts.get_attempt(settings.db_path, quiz_id)
    assert attempt.submitted_at
    assert attempt.score == 100


def test_cmd_admin_refuses_students(settings, signed_in):
    with patch("course_portal.app.Prompt.ask") as ask:
        cmd_admin(settings)
    ask.assert_not_called()


def test_cmd_admin_opens_for_moderators(settings, signed_in):
    set_role(settings.db_path, signed_in, "moderator")
    with patch("course_portal.app.Prompt.ask", return_value="back") as ask:
        cmd_admin(settings)
    ask.assert_called_once()


def test_sparkline():
    assert sparkline([0, 100]) == "▁█"
    assert sparkline([]) == ""


def test_show_review_reveals_exam_answers_after_submit(db, scoped_questions):
    session = QuizSession(scoped_questions[:2], mode="exam")
    with patch("course_portal.app.Prompt.ask", side_effect=["1", "3", "s"]):
        run_quiz_session(session)
    with patch("course_portal.app.show_question") as shown:
        show_review(session)
    calls = [c.args for c in shown.call_args_list]
    assert calls == [
        (scoped_questions[0], "1/2", 0, True),
        (scoped_questions[1], "2/2", 2, True),
    ]
