from course_portal.attempts import create_quiz, mark_unanswered, record_answer, submit_quiz
from course_portal.courses import add_course
from course_portal.dashboard import (
    get_course_tiles, get_quiz_summary, get_recent_favorites, get_score_color, get_score_label,
)
from course_portal.favorites import FavoritesStore
from course_portal.models import FavoriteResource
from course_portal.questions import set_archived
from course_portal.quiz import QuizFilters


def test_score_label():
    assert get_score_label(85) == "EXCELLENT"
    assert get_score_label(70) == "GOOD"
    assert get_score_label(55) == "NEEDS WORK"
    assert get_score_label(40) == "STRUGGLING"


def test_score_color():
    assert get_score_color(100) == "green"
    assert get_score_color(0) == "red"


def test_course_tiles_grouped_by_semester(db, scoped_questions):
    add_course(db, "ece2", "Early clinical exposure", None)
    set_archived(db, scoped_questions[0].id, True)
    tiles = get_course_tiles(db)
    assert [g["label"] for g in tiles] == ["Semester 2", "Other"]
    pharma = tiles[0]["courses"][0]
    assert pharma["code"] == "PHARMA"
    assert pharma["questions"] == 4
    assert pharma["resources"] == 0


def test_quiz_summary(db, course, scoped_questions):
    assert get_quiz_summary(db, None)["count"] == 0
    filters = QuizFilters(course_id=course.id, shuffle=False)
    done = create_quiz(db, "u1", filters)
    record_answer(db, done, scoped_questions[0], 1)
    mark_unanswered(db, done)
    submit_quiz(db, done)
    create_quiz(db, "u1", filters)

    summary = get_quiz_summary(db, "u1")
    assert summary["count"] == 1
    assert summary["open"] == 1
    assert summary["last"] == 20


def test_recent_favorites(tmp_path):
    store = FavoritesStore(tmp_path / "fav.json")
    for n in range(7):
        store.toggle(FavoriteResource(id=f"r{n}", title=f"R{n}"))
    assert [f.id for f in get_recent_favorites(store)] == ["r6", "r5", "r4", "r3", "r2"]
