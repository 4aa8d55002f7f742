"""Tests for course administration."""
import pytest

from course_portal.courses import add_course, add_default_courses, delete_course, get_course, list_courses
from course_portal.errors import DuplicateError, ValidationError
from course_portal.lectures import add_lecture, list_groupings


def test_add_course_normalises_code(db):
    course = add_course(db, " micro ", "Microbiology", "2", "  ")
    assert course.code == "MICRO"
    assert course.semester == 2
    assert course.description is None
    assert get_course(db, course.id) == course


def test_duplicate_code(db):
    add_course(db, "PARA", "Parasitology")
    with pytest.raises(DuplicateError, match="PARA"):
        add_course(db, "para", "Again")


@pytest.mark.parametrize("code,name,semester", [
    ("", "Name", None),
    ("X", "", None),
    ("X", "Name", "0"),
    ("X", "Name", "21"),
    ("X", "Name", "two"),
])
def test_validation(db, code, name, semester):
    with pytest.raises(ValidationError):
        add_course(db, code, name, semester)


def test_list_orders_by_semester_then_code(db):
    add_course(db, "ZED", "Z", 1)
    add_course(db, "ALPHA", "A", 2)
    add_course(db, "NOSEM", "N")
    add_course(db, "BETA", "B", 1)
    assert [c.code for c in list_courses(db)] == ["BETA", "ZED", "ALPHA", "NOSEM"]


def test_add_default_courses_skips_existing(db):
    add_course(db, "PHARMA", "Pharmacology", 2)
    catalog = [{"code": "PHARMA", "name": "Pharmacology"}, {"code": "PATHO", "name": "Pathology", "semester": 2}]
    assert add_default_courses(db, catalog) == 1
    assert add_default_courses(db, catalog) == 0


def test_delete_course_cascades(db):
    course = add_course(db, "ECE1", "ECE1")
    add_lecture(db, course.id, 1)
    assert delete_course(db, course.id)
    assert list_groupings(db, course.id) == ([], [])
    assert not delete_course(db, course.id)
