"""Email/password accounts and the locally persisted sign-in session."""
import json
import logging
import re
import sqlite3
from dataclasses import asdict, dataclass
from pathlib import Path

from werkzeug.security import check_password_hash, generate_password_hash

from course_portal.db import get_connection, is_unique_violation, new_id, now_iso
from course_portal.errors import AuthError, BackendError, DuplicateError, ValidationError

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD = 6


@dataclass
class AuthSession:
    user_id: str
    email: str
    signed_in_at: str


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def sign_up(db_path: str, email: str, password: str, confirm: str, full_name: str = "") -> str:
    """Create an account and its ``student`` profile. Returns the new user id."""
    email = _normalize_email(email)
    if not EMAIL_RE.match(email):
        raise ValidationError("Enter a valid email address.")
    if len(password or "") < MIN_PASSWORD:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD} characters.")
    if password != confirm:
        raise ValidationError("Passwords do not match.")

    user_id = new_id()
    created = now_iso()
    conn = get_connection(db_path)
    try:
        conn.execute(
            "INSERT INTO credentials (user_id, email, password_hash, created_at) VALUES (?, ?, ?, ?)",
            (user_id, email, generate_password_hash(password), created),
        )
        conn.execute(
            "INSERT INTO profiles (id, full_name, role, created_at) VALUES (?, ?, 'student', ?)",
            (user_id, full_name.strip() or None, created),
        )
        conn.commit()
    except sqlite3.IntegrityError as exc:
        conn.rollback()
        if is_unique_violation(exc):
            raise DuplicateError("An account with this email already exists.") from exc
        raise BackendError(f"Sign-up failed: {exc}") from exc
    finally:
        conn.close()
    logger.info("account created", extra={"user_id": user_id})
    return user_id


def sign_in(db_path: str, session_path: str, email: str, password: str) -> AuthSession:
    email = _normalize_email(email)
    conn = get_connection(db_path)
    row = conn.execute(
        "SELECT user_id, password_hash FROM credentials WHERE email = ?", (email,)
    ).fetchone()
    conn.close()
    if not row or not check_password_hash(row["password_hash"], password or ""):
        logger.info("sign-in refused", extra={"email": email})
        raise AuthError("Invalid email or password.")
    session = AuthSession(user_id=row["user_id"], email=email, signed_in_at=now_iso())
    path = Path(session_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(asdict(session)), encoding="utf-8")
    return session


def get_session(session_path: str) -> AuthSession | None:
    """Return the stored session, or None when signed out or unreadable."""
    path = Path(session_path)
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return AuthSession(**data)
    except (ValueError, TypeError) as exc:
        logger.warning("discarding unreadable session file: %s", exc)
        return None


def sign_out(session_path: str) -> None:
    Path(session_path).unlink(missing_ok=True)
