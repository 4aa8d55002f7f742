from course_portal.courses import list_courses
from course_portal.seed import is_seeded, load_catalog, seed_default_courses


def test_catalog_has_default_courses():
    codes = [c["code"] for c in load_catalog()]
    assert codes == ["PHARMA", "PARA", "MICRO", "PATHO", "ECE1"]


def test_seed_default_courses(db):
    assert not is_seeded(db)
    assert seed_default_courses(db) == 5
    assert is_seeded(db)
    assert all(c.semester == 2 for c in list_courses(db))


def test_seed_is_idempotent(db):
    seed_default_courses(db)
    assert seed_default_courses(db) == 0
    assert len(list_courses(db)) == 5


def test_seed_from_custom_file(db, tmp_path):
    path = tmp_path / "catalog.yaml"
    path.write_text("courses:\n  - code: anat\n    name: Anatomy\n    semester: 1\n")
    assert seed_default_courses(db, path) == 1
    assert list_courses(db)[0].code == "ANAT"
