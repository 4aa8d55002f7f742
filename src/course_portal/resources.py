"""Course resources: stored files or external links, optionally per lecture."""
import logging
import sqlite3
from collections import defaultdict

from course_portal import storage
from course_portal.db import get_connection, new_id, now_iso
from course_portal.errors import BackendError, PortalError, ValidationError
from course_portal.models import Resource

logger = logging.getLogger(__name__)

GENERAL_KEY = "__general__"
ALL_TYPES = "all"


def list_resources(db_path: str, course_id: str) -> list[Resource]:
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT * FROM resources WHERE course_id = ? ORDER BY created_at DESC, rowid DESC",
        (course_id,),
    ).fetchall()
    conn.close()
    return [Resource.from_row(r) for r in rows]


def get_resource(db_path: str, resource_id: str) -> Resource | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM resources WHERE id = ?", (resource_id,)).fetchone()
    conn.close()
    return Resource.from_row(row) if row else None


def type_options(resources: list[Resource]) -> list[str]:
    return [ALL_TYPES] + sorted({r.type for r in resources})


def filter_resources(resources: list[Resource], query: str = "", type_: str = ALL_TYPES) -> list[Resource]:
    needle = query.strip().lower()
    out = []
    for r in resources:
        if type_ != ALL_TYPES and r.type != type_:
            continue
        haystack = f"{r.title} {r.description or ''}".lower()
        if needle and needle not in haystack:
            continue
        out.append(r)
    return out


def group_by_lecture(resources: list[Resource]) -> dict[str, list[Resource]]:
    groups: dict[str, list[Resource]] = defaultdict(list)
    for r in resources:
        groups[r.lecture_id or GENERAL_KEY].append(r)
    return dict(groups)


def add_resource(
    db_path: str,
    storage_dir: str,
    *,
    course_id: str,
    lecture_id: str | None,
    title: str,
    type_: str,
    uploader_id: str,
    description: str = "",
    file_name: str | None = None,
    file_data: bytes | None = None,
    external_url: str = "",
) -> Resource:
    """Upload the file (if any) and then record the resource row."""
    if not course_id:
        raise ValidationError("Choose a course.")
    if not title.strip():
        raise ValidationError("Title is required.")
    has_file = file_data is not None and bool(file_name)
    if not has_file and not external_url.strip():
        raise ValidationError("Upload a file or provide an external link.")

    storage_path = None
    if has_file:
        path = storage.build_object_path(course_id, lecture_id, file_name)
        storage_path = storage.upload(storage_dir, path, file_data)

    resource = Resource(
        id=new_id(),
        course_id=course_id,
        lecture_id=lecture_id,
        title=title.strip(),
        type=type_.strip() or "file",
        description=description.strip() or None,
        storage_path=storage_path,
        external_url=external_url.strip() or None,
        created_at=now_iso(),
    )
    conn = get_connection(db_path)
    try:
        conn.execute(
            """INSERT INTO resources
            (id, course_id, lecture_id, title, type, description, storage_path, external_url, uploader_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (resource.id, resource.course_id, resource.lecture_id, resource.title, resource.type,
             resource.description, resource.storage_path, resource.external_url, uploader_id,
             resource.created_at),
        )
        conn.commit()
    except sqlite3.DatabaseError as exc:
        raise BackendError(f"Could not save the resource: {exc}") from exc
    finally:
        conn.close()
    logger.info("resource added", extra={"resource_id": resource.id, "course_id": course_id})
    return resource


def update_resource(
    db_path: str,
    storage_dir: str,
    resource: Resource,
    *,
    title: str,
    type_: str,
    description: str = "",
    external_url: str | None = None,
    file_name: str | None = None,
    file_data: bytes | None = None,
) -> tuple[Resource, str | None]:
    """Save edits, optionally replacing the stored file.

    Returns the updated resource and a warning when the previous object could
    not be removed.
    """
    if not title.strip():
        raise ValidationError("Title is required.")
    new_url = resource.external_url if external_url is None else (external_url.strip() or None)
    new_path = resource.storage_path
    if file_data is not None and file_name:
        path = storage.build_object_path(resource.course_id, resource.lecture_id, file_name)
        new_path = storage.upload(storage_dir, path, file_data)
    if not new_path and not new_url:
        raise ValidationError("A resource needs a file or an external link.")

    conn = get_connection(db_path)
    try:
        conn.execute(
            """UPDATE resources SET title = ?, type = ?, description = ?, storage_path = ?, external_url = ?
            WHERE id = ?""",
            (title.strip(), type_.strip() or resource.type, description.strip() or None,
             new_path, new_url, resource.id),
        )
        conn.commit()
    except sqlite3.DatabaseError as exc:
        raise BackendError(f"Could not update the resource: {exc}") from exc
    finally:
        conn.close()

    warning = None
    if resource.storage_path and new_path != resource.storage_path:
        try:
            storage.remove(storage_dir, resource.storage_path)
        except (PortalError, OSError) as exc:
            logger.warning("old object not removed: %s", exc, extra={"path": resource.storage_path})
            warning = "Saved, but the previous file could not be removed."
    updated = get_resource(db_path, resource.id)
    if updated is None:
        raise BackendError("Resource disappeared while saving.")
    return updated, warning


def delete_resource(db_path: str, storage_dir: str, resource: Resource) -> bool:
    conn = get_connection(db_path)
    cur = conn.execute("DELETE FROM resources WHERE id = ?", (resource.id,))
    conn.commit()
    conn.close()
    if resource.storage_path:
        try:
            storage.remove(storage_dir, resource.storage_path)
        except (PortalError, OSError) as exc:
            logger.warning("object not removed after delete: %s", exc)
    return cur.rowcount > 0


def open_resource(storage_dir: str, secret: str, resource: Resource, expires_in: int = 60) -> str:
    """Return a short-lived signed URL for stored files, else the external link."""
    if resource.storage_path:
        return storage.create_signed_url(storage_dir, secret, resource.storage_path, expires_in)
    if resource.external_url:
        return resource.external_url
    raise ValidationError("This resource has no file attached.")
