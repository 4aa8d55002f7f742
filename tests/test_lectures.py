"""Tests for lecture and formative groupings."""
import pytest

from course_portal.errors import DuplicateError, ValidationError
from course_portal.lectures import (
    add_formative, add_lecture, build_lecture_title, delete_grouping, ensure_general_lecture,
    get_grouping, list_groupings, move_up, next_numbers, seed_lectures, swap_order, update_grouping,
)
from course_portal.questions import add_question, get_question


def test_build_lecture_title():
    assert build_lecture_title(3) == "Lecture 3"
    assert build_lecture_title(3, "Antibiotics") == "Lecture 3 (Antibiotics)"
    assert build_lecture_title(3, "Antibiotics", "Custom") == "Custom"


def test_add_lecture_and_formative(db, course):
    lecture = add_lecture(db, course.id, "4", "Toxicology")
    formative = add_formative(db, course.id, 2)
    assert lecture.title == "Lecture 4 (Toxicology)"
    assert formative.title == "Formative 2"
    assert formative.formative_no == 2
    lectures, formatives = list_groupings(db, course.id)
    assert [l.id for l in lectures] == [lecture.id]
    assert [f.id for f in formatives] == [formative.id]


def test_duplicate_number_per_kind(db, course):
    add_lecture(db, course.id, 1)
    add_formative(db, course.id, 1)  # other kind, same number is fine
    with pytest.raises(DuplicateError, match="lecture"):
        add_lecture(db, course.id, 1)
    with pytest.raises(DuplicateError, match="formative"):
        add_formative(db, course.id, 1)


@pytest.mark.parametrize("value", ["-1", "10000", "abc", None])
def test_lecture_number_range(db, course, value):
    with pytest.raises(ValidationError):
        add_lecture(db, course.id, value)


def test_formative_number_starts_at_one(db, course):
    with pytest.raises(ValidationError):
        add_formative(db, course.id, 0)


def test_next_numbers(db, course, groupings):
    assert next_numbers(db, course.id) == (3, 2)


def test_seed_lectures_skips_existing(db, course):
    add_lecture(db, course.id, 2, "Existing")
    assert seed_lectures(db, course.id, 3) == 2
    lectures, _ = list_groupings(db, course.id)
    assert [l.order_index for l in lectures] == [1, 2, 3]
    assert lectures[1].title == "Lecture 2 (Existing)"
    with pytest.raises(ValidationError):
        seed_lectures(db, course.id, 61)


def test_ensure_general_lecture(db, course):
    created = ensure_general_lecture(db, course.id)
    assert [(l.title, l.order_index) for l in created] == [("General", 0)]
    assert len(ensure_general_lecture(db, course.id)) == 1


def test_update_grouping(db, course, groupings):
    l1, l2, f1 = groupings
    updated = update_grouping(db, l1, 5, "Renamed")
    assert (updated.order_index, updated.title) == (5, "Renamed")
    with pytest.raises(DuplicateError):
        update_grouping(db, l2, 5, "Clash")
    with pytest.raises(ValidationError):
        update_grouping(db, l2, 6, " ")
    renumbered = update_grouping(db, f1, 4)
    assert (renumbered.formative_no, renumbered.title) == (4, "Formative 4")


def test_swap_then_swap_back_restores_order(db, course, groupings):
    l1, l2, _ = groupings
    swap_order(db, l1, l2)
    a, b = get_grouping(db, l1.id), get_grouping(db, l2.id)
    assert (a.order_index, b.order_index) == (2, 1)
    swap_order(db, a, b)
    a, b = get_grouping(db, l1.id), get_grouping(db, l2.id)
    assert (a.order_index, b.order_index) == (1, 2)


def test_swap_formatives_moves_label_and_title(db, course):
    f1 = add_formative(db, course.id, 1)
    f3 = add_formative(db, course.id, 3)
    swap_order(db, f1, f3, sentinel=-99)
    a, b = get_grouping(db, f1.id), get_grouping(db, f3.id)
    assert (a.formative_no, a.title, a.order_index) == (3, "Formative 3", 3)
    assert (b.formative_no, b.title, b.order_index) == (1, "Formative 1", 1)


def test_swap_requires_same_kind(db, course, groupings):
    l1, _, f1 = groupings
    with pytest.raises(ValidationError):
        swap_order(db, l1, f1)


def test_move_up(db, course, groupings):
    lectures, _ = list_groupings(db, course.id)
    assert not move_up(db, lectures, 0)
    assert move_up(db, lectures, 1)
    lectures, _ = list_groupings(db, course.id)
    assert [l.title for l in lectures] == ["Lecture 2 (Receptors)", "Lecture 1 (Intro)"]


def test_delete_grouping_makes_content_general(db, course, groupings):
    l1, _, _ = groupings
    q = add_question(db, course.id, "Q?", ["a", "b"], 0, l1.id)
    assert delete_grouping(db, l1.id)
    assert get_question(db, q.id).lecture_id is None
