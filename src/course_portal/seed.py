"""Seed the database with the default course catalog."""
from pathlib import Path

import yaml

from course_portal.courses import add_default_courses
from course_portal.db import get_connection

CONTENT_DIR = Path(__file__).parent / "content"


def is_seeded(db_path: str) -> bool:
    """Check whether the database already has any courses."""
    conn = get_connection(db_path)
    count = conn.execute("SELECT COUNT(*) FROM courses").fetchone()[0]
    conn.close()
    return count > 0


def load_catalog(path: Path | None = None) -> list[dict]:
    data = yaml.safe_load((path or CONTENT_DIR / "default_courses.yaml").read_text())
    return list((data or {}).get("courses", []))


def seed_default_courses(db_path: str, path: Path | None = None) -> int:
    """Insert the default catalog; existing codes are left alone."""
    return add_default_courses(db_path, load_catalog(path))
