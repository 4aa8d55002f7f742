"""Profile rows and the role gate used to unlock admin screens."""
from course_portal.auth import AuthSession
from course_portal.db import get_connection
from course_portal.errors import NotAuthorizedError, ValidationError
from course_portal.models import ROLES, Profile


def get_profile(db_path: str, user_id: str) -> Profile | None:
    conn = get_connection(db_path)
    row = conn.execute(
        "SELECT id, full_name, role, created_at FROM profiles WHERE id = ?", (user_id,)
    ).fetchone()
    conn.close()
    if not row:
        return None
    return Profile(id=row["id"], role=row["role"], full_name=row["full_name"], created_at=row["created_at"])


def get_my_profile(db_path: str, session: AuthSession | None) -> Profile | None:
    if session is None:
        return None
    return get_profile(db_path, session.user_id)


def is_moderator(role: str | None) -> bool:
    return role in ("moderator", "admin")


def require_moderator(profile: Profile | None) -> Profile:
    """UI gate only; row-level enforcement belongs to the data store."""
    if profile is None or not is_moderator(profile.role):
        role = profile.role if profile else "unknown"
        raise NotAuthorizedError(f"Your role ({role}) cannot open admin pages.")
    return profile


def update_display_name(db_path: str, user_id: str, full_name: str) -> None:
    name = full_name.strip()
    if not name:
        raise ValidationError("Display name is required.")
    conn = get_connection(db_path)
    conn.execute("UPDATE profiles SET full_name = ? WHERE id = ?", (name, user_id))
    conn.commit()
    conn.close()


def set_role(db_path: str, user_id: str, role: str) -> None:
    if role not in ROLES:
        raise ValidationError(f"Unknown role: {role}")
    conn = get_connection(db_path)
    conn.execute("UPDATE profiles SET role = ? WHERE id = ?", (role, user_id))
    conn.commit()
    conn.close()
