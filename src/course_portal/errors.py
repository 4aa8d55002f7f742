"""Error types and tagged results shared across the portal."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class PortalError(RuntimeError):
    """Base class for failures contained to a single interaction."""


class ValidationError(PortalError):
    """User input rejected before anything reaches the backend."""


class DuplicateError(PortalError):
    """The backend refused a write because of a uniqueness constraint."""


class BackendError(PortalError):
    """Unclassified backend failure; the operation is aborted."""


class NotAuthorizedError(PortalError):
    """The caller's role does not unlock this action."""


class AuthError(PortalError):
    """Sign-in, sign-up or session failures."""


class ConfigError(PortalError):
    """Raised when configuration IO or validation fails."""


class DeleteStatus(str, Enum):
    DELETED = "deleted"
    ARCHIVED = "archived"
    FAILED = "failed"


@dataclass(frozen=True)
class DeleteOutcome:
    """Result of a delete that may fall back to archiving."""

    status: DeleteStatus
    reason: str | None = None

    @classmethod
    def deleted(cls) -> "DeleteOutcome":
        return cls(DeleteStatus.DELETED)

    @classmethod
    def archived(cls, reason: str | None = None) -> "DeleteOutcome":
        return cls(DeleteStatus.ARCHIVED, reason)

    @classmethod
    def failed(cls, reason: str) -> "DeleteOutcome":
        return cls(DeleteStatus.FAILED, reason)
