import pytest

from course_portal.config import load_settings
from course_portal.courses import add_course
from course_portal.db import init_db
from course_portal.lectures import add_formative, add_lecture
from course_portal.questions import add_question


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_portal.db")
    return db_path


@pytest.fixture
def db(tmp_db):
    """An initialized, empty database."""
    init_db(tmp_db)
    return tmp_db


@pytest.fixture
def settings(tmp_path):
    s = load_settings(env={}, home=tmp_path / "home")
    init_db(s.db_path)
    return s


@pytest.fixture
def course(db):
    return add_course(db, "pharma", "Pharmacology", 2)


@pytest.fixture
def groupings(db, course):
    """Two lectures and one formative in the test course."""
    l1 = add_lecture(db, course.id, 1, "Intro")
    l2 = add_lecture(db, course.id, 2, "Receptors")
    f1 = add_formative(db, course.id, 1)
    return l1, l2, f1


@pytest.fixture
def scoped_questions(db, course, groupings):
    """q1, q2 in L1; q3 in L2; q4, q5 general."""
    l1, l2, _ = groupings
    made = []
    for n, lecture_id in enumerate([l1.id, l1.id, l2.id, None, None], start=1):
        made.append(add_question(db, course.id, f"Question {n}?", ["a", "b", "c", "d"], n % 4, lecture_id))
    return made
