"""Service layer for the compliance console."""

from .requirements import (
    EmptyReasonError,
    RequirementsService,
    can_archive,
    can_complete,
    can_restore,
    normalize_reason,
)

__all__ = [
    "RequirementsService",
    "EmptyReasonError",
    "normalize_reason",
    "can_complete",
    "can_archive",
    "can_restore",
]
