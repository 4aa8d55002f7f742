"""Runtime settings: defaults, ``.env`` and an optional TOML file."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping

from dotenv import load_dotenv

from course_portal.errors import ConfigError

HOME_ENV = "COURSE_PORTAL_HOME"
SECRET_ENV = "COURSE_PORTAL_SECRET"
CONFIG_NAME = "config.toml"

CONFIG_TEMPLATE = """\
# course-portal configuration. Paths are relative to the portal home.

[storage]
db_file = "portal.db"
objects_dir = "objects"
signed_url_ttl = 60

[client]
session_file = "session.json"
favorites_file = "favorites.json"
favorites_limit = 300
default_quiz_count = 50

[logging]
dir = "logs"
level = "INFO"

[security]
# Overridden by the COURSE_PORTAL_SECRET environment variable.
secret_key = "change-me"
"""

_DEFAULTS: dict[str, dict[str, Any]] = {
    "storage": {
        "db_file": "portal.db",
        "objects_dir": "objects",
        "signed_url_ttl": 60,
    },
    "client": {
        "session_file": "session.json",
        "favorites_file": "favorites.json",
        "favorites_limit": 300,
        "default_quiz_count": 50,
    },
    "logging": {"dir": "logs", "level": "INFO"},
    "security": {"secret_key": "change-me"},
}


@dataclass(frozen=True)
class Settings:
    home: Path
    db_path: str
    storage_dir: str
    session_path: str
    favorites_path: str
    log_dir: Path
    log_level: str = "INFO"
    secret_key: str = "change-me"
    signed_url_ttl: int = 60
    favorites_limit: int = 300
    default_quiz_count: int = 50

    def as_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def default_home(env: Mapping[str, str] | None = None) -> Path:
    env = os.environ if env is None else env
    raw = env.get(HOME_ENV, "").strip().strip('"').strip("'")
    return Path(raw).expanduser() if raw else Path.home() / ".course_portal"


def load_settings(
    path: Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
    home: Path | None = None,
) -> Settings:
    """Build :class:`Settings` from defaults, ``.env`` and TOML overrides."""
    if env is None:
        load_dotenv()
        env = os.environ
    root = home or default_home(env)

    values = {section: dict(items) for section, items in _DEFAULTS.items()}
    config_path = path or root / CONFIG_NAME
    if path is not None or config_path.exists():
        merge_defaults(values, load_toml(config_path))

    secret = env.get(SECRET_ENV) or values["security"]["secret_key"]
    storage, client = values["storage"], values["client"]
    return Settings(
        home=root,
        db_path=str(root / storage["db_file"]),
        storage_dir=str(root / storage["objects_dir"]),
        session_path=str(root / client["session_file"]),
        favorites_path=str(root / client["favorites_file"]),
        log_dir=root / values["logging"]["dir"],
        log_level=str(values["logging"]["level"]),
        secret_key=str(secret),
        signed_url_ttl=int(storage["signed_url_ttl"]),
        favorites_limit=int(client["favorites_limit"]),
        default_quiz_count=int(client["default_quiz_count"]),
    )


def load_toml(path: Path) -> Mapping[str, Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file not found: {path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Failed to parse config TOML: {exc}") from exc


def merge_defaults(
    base: dict[str, Any],
    override: Mapping[str, Any],
    *,
    path: str = "",
) -> None:
    """Recursively merge ``override`` into ``base`` enforcing known keys."""
    for key, value in override.items():
        dotted = f"{path}{key}"
        if key not in base:
            raise ConfigError(f"Unknown configuration key '{dotted}'.")
        if isinstance(base[key], dict):
            if not isinstance(value, Mapping):
                raise ConfigError(
                    f"Expected table for '{dotted}', found {type(value).__name__}."
                )
            merge_defaults(base[key], value, path=f"{dotted}.")
            continue
        base[key] = value


def write_default_config(path: Path, *, overwrite: bool = False) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.exists() and not overwrite:
        raise ConfigError(f"Config already exists: {path}")
    path.write_text(CONFIG_TEMPLATE, encoding="utf-8")
    return path
