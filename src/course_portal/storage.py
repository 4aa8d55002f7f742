"""Object storage for uploaded resource files with short-lived signed URLs."""
import logging
import re
import time
from pathlib import Path

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from course_portal.errors import BackendError, DuplicateError, ValidationError

logger = logging.getLogger(__name__)

BUCKET = "resources"
SIGNED_PREFIX = "/storage/v1/object/sign/"
_UNSAFE = re.compile(r"[^\w.\-() ]+")


def _serializer(secret: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret, salt=f"storage:{BUCKET}")


def _object_file(storage_dir: str, path: str) -> Path:
    root = Path(storage_dir).resolve()
    target = (root / path).resolve()
    if root not in target.parents:
        raise ValidationError(f"Invalid object path: {path}")
    return target


def safe_file_name(name: str) -> str:
    return _UNSAFE.sub("_", name)


def build_object_path(course_id: str, lecture_id: str | None, filename: str) -> str:
    millis = int(time.time() * 1000)
    return f"{course_id}/{lecture_id or 'general'}/{millis}_{safe_file_name(filename)}"


def upload(storage_dir: str, path: str, data: bytes, upsert: bool = False) -> str:
    target = _object_file(storage_dir, path)
    if target.exists() and not upsert:
        raise DuplicateError(f"Object already exists: {path}")
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
    except OSError as exc:
        raise BackendError(f"Upload failed: {exc}") from exc
    logger.info("object stored", extra={"path": path, "bytes": len(data)})
    return path


def download(storage_dir: str, path: str) -> bytes:
    target = _object_file(storage_dir, path)
    if not target.exists():
        raise BackendError(f"Object not found: {path}")
    return target.read_bytes()


def remove(storage_dir: str, path: str) -> bool:
    target = _object_file(storage_dir, path)
    if not target.exists():
        return False
    target.unlink()
    return True


def create_signed_url(storage_dir: str, secret: str, path: str, expires_in: int = 60) -> str:
    """Return a URL granting read access to ``path`` for ``expires_in`` seconds."""
    if not _object_file(storage_dir, path).exists():
        raise BackendError(f"Object not found: {path}")
    token = _serializer(secret).dumps({"path": path, "ttl": int(expires_in)})
    return f"{SIGNED_PREFIX}{BUCKET}/{path}?token={token}"


def resolve_signed_url(storage_dir: str, secret: str, url: str, max_age: int | None = None) -> Path:
    """Validate a signed URL and return the file it grants access to."""
    _, _, token = url.partition("?token=")
    if not token:
        raise ValidationError("Signed URL has no token.")
    serializer = _serializer(secret)
    try:
        payload = serializer.loads(token)
        ttl = max_age if max_age is not None else int(payload.get("ttl", 60))
        data = serializer.loads(token, max_age=ttl)
    except SignatureExpired as exc:
        raise ValidationError("Signed URL has expired.") from exc
    except BadSignature as exc:
        raise ValidationError("Signed URL is not valid.") from exc
    return _object_file(storage_dir, data["path"])
