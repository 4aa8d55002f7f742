"""Database initialization and connection management."""
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path

DEFAULT_DB_PATH = str(Path.home() / ".course_portal" / "portal.db")

SCHEMA = """
CREATE TABLE IF NOT EXISTS credentials (
    user_id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS profiles (
    id TEXT PRIMARY KEY REFERENCES credentials(user_id) ON DELETE CASCADE,
    full_name TEXT,
    role TEXT NOT NULL DEFAULT 'student' CHECK (role IN ('student', 'moderator', 'admin')),
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS courses (
    id TEXT PRIMARY KEY,
    code TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    semester INTEGER,
    description TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS lectures (
    id TEXT PRIMARY KEY,
    course_id TEXT NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    order_index INTEGER NOT NULL,
    kind TEXT NOT NULL DEFAULT 'lecture' CHECK (kind IN ('lecture', 'formative')),
    formative_no INTEGER,
    created_at TEXT NOT NULL,
    UNIQUE(course_id, kind, order_index)
);

CREATE TABLE IF NOT EXISTS resources (
    id TEXT PRIMARY KEY,
    course_id TEXT NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
    lecture_id TEXT REFERENCES lectures(id) ON DELETE SET NULL,
    title TEXT NOT NULL,
    type TEXT NOT NULL,
    description TEXT,
    storage_path TEXT,
    external_url TEXT,
    uploader_id TEXT,
    created_at TEXT NOT NULL,
    CHECK (storage_path IS NOT NULL OR external_url IS NOT NULL)
);

CREATE TABLE IF NOT EXISTS mcq_questions (
    id TEXT PRIMARY KEY,
    course_id TEXT NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
    lecture_id TEXT REFERENCES lectures(id) ON DELETE SET NULL,
    question_text TEXT NOT NULL,
    choices TEXT NOT NULL,
    correct_index INTEGER NOT NULL,
    explanation TEXT,
    is_archived INTEGER NOT NULL DEFAULT 0,
    created_by TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS mcq_quizzes (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    course_id TEXT NOT NULL REFERENCES courses(id) ON DELETE CASCADE,
    lecture_id TEXT REFERENCES lectures(id) ON DELETE SET NULL,
    mode TEXT NOT NULL CHECK (mode IN ('practice', 'exam')),
    selection TEXT,
    total_questions INTEGER NOT NULL DEFAULT 0,
    correct_count INTEGER NOT NULL DEFAULT 0,
    score INTEGER NOT NULL DEFAULT 0,
    started_at TEXT NOT NULL,
    submitted_at TEXT
);

CREATE TABLE IF NOT EXISTS mcq_quiz_questions (
    quiz_id TEXT NOT NULL REFERENCES mcq_quizzes(id) ON DELETE CASCADE,
    question_id TEXT NOT NULL REFERENCES mcq_questions(id),
    order_index INTEGER NOT NULL,
    UNIQUE(quiz_id, question_id)
);

CREATE TABLE IF NOT EXISTS mcq_quiz_answers (
    quiz_id TEXT NOT NULL REFERENCES mcq_quizzes(id) ON DELETE CASCADE,
    question_id TEXT NOT NULL REFERENCES mcq_questions(id),
    selected_index INTEGER,
    is_correct INTEGER NOT NULL DEFAULT 0,
    answered_at TEXT,
    UNIQUE(quiz_id, question_id)
);
"""

# SQLite extended result codes for constraint failures.
SQLITE_CONSTRAINT_FOREIGNKEY = 787
SQLITE_CONSTRAINT_PRIMARYKEY = 1555
SQLITE_CONSTRAINT_UNIQUE = 2067


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Return a SQLite connection with row factory and foreign keys enabled."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: str = DEFAULT_DB_PATH) -> None:
    """Initialize the database, creating all tables if they don't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()


def new_id() -> str:
    return uuid.uuid4().hex


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def is_unique_violation(exc: Exception) -> bool:
    """True when ``exc`` is the backend rejecting a duplicate key."""
    if not isinstance(exc, sqlite3.IntegrityError):
        return False
    code = getattr(exc, "sqlite_errorcode", None)
    if code in (SQLITE_CONSTRAINT_UNIQUE, SQLITE_CONSTRAINT_PRIMARYKEY):
        return True
    msg = str(exc).lower()
    return "unique constraint" in msg or "duplicate" in msg


def is_fk_restriction(exc: Exception) -> bool:
    """True when ``exc`` is a referential-integrity refusal."""
    if not isinstance(exc, sqlite3.IntegrityError):
        return False
    if getattr(exc, "sqlite_errorcode", None) == SQLITE_CONSTRAINT_FOREIGNKEY:
        return True
    return "foreign key" in str(exc).lower()
