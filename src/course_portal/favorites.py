"""Client-local favorite resources, newest first and capped.

Observers in the same process subscribe with::

    @favorites_changed.connect
    def on_change(sender, **kwargs):
        ...
"""
import json
import logging
from dataclasses import asdict, fields
from pathlib import Path

from blinker import Namespace

from course_portal.db import now_iso
from course_portal.models import FavoriteResource

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 300
META_FIELDS = ("title", "type", "description", "storage_path", "external_url")

favorite_signals = Namespace()

# Payload: favorites (list[FavoriteResource])
favorites_changed = favorite_signals.signal("favorites_changed")

_FIELD_NAMES = {f.name for f in fields(FavoriteResource)}


def _from_dict(data) -> FavoriteResource | None:
    if not isinstance(data, dict):
        return None
    if not isinstance(data.get("id"), str) or not isinstance(data.get("title"), str):
        return None
    return FavoriteResource(**{k: v for k, v in data.items() if k in _FIELD_NAMES})


class FavoritesStore:
    """Bounded favorites list stored as one JSON document.

    Every write replaces the whole file; there is no merging with writes made
    by another process in the meantime.
    """

    def __init__(self, path, limit: int = DEFAULT_LIMIT):
        self.path = Path(path)
        self.limit = limit

    def read(self) -> list[FavoriteResource]:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return []
        if not isinstance(raw, list):
            return []
        items = (_from_dict(x) for x in raw)
        return [x for x in items if x is not None]

    def write(self, items: list[FavoriteResource]) -> list[FavoriteResource]:
        trimmed = list(items)[: self.limit]
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                json.dumps([asdict(x) for x in trimmed], ensure_ascii=False, indent=2),
                encoding="utf-8",
            )
        except OSError as exc:
            logger.warning("favorites not saved: %s", exc, extra={"path": str(self.path)})
            return trimmed
        favorites_changed.send(self, favorites=trimmed)
        return trimmed

    def is_favorite(self, resource_id: str) -> bool:
        return any(f.id == resource_id for f in self.read())

    def toggle(self, item: FavoriteResource) -> bool:
        """Add ``item`` at the front, or remove it if present. True when added."""
        current = self.read()
        if any(f.id == item.id for f in current):
            self.write([f for f in current if f.id != item.id])
            return False
        data = asdict(item)
        data["saved_at"] = now_iso()
        self.write([FavoriteResource(**data)] + current)
        return True

    def remove(self, resource_id: str) -> None:
        self.write([f for f in self.read() if f.id != resource_id])

    def update_meta(self, resource_id: str, **patch) -> bool:
        unknown = set(patch) - set(META_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update favorite fields: {', '.join(sorted(unknown))}")
        current = self.read()
        for i, fav in enumerate(current):
            if fav.id == resource_id:
                current[i] = FavoriteResource(**{**asdict(fav), **patch})
                self.write(current)
                return True
        return False

    def clear(self) -> None:
        self.write([])
