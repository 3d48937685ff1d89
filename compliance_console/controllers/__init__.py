"""Controllers wiring services, sync and collaborators for each screen."""

from .detail import DetailPending, RequirementDetailController
from .profile import ProfileController
from .requirements import (
    PaginationView,
    PendingFlags,
    RequirementListController,
    RequirementListView,
    RequirementRow,
    SelectionView,
)
from .selection import SelectAllState, SelectionManager

__all__ = [
    "RequirementListController",
    "RequirementListView",
    "RequirementRow",
    "PaginationView",
    "PendingFlags",
    "SelectionView",
    "RequirementDetailController",
    "DetailPending",
    "ProfileController",
    "SelectionManager",
    "SelectAllState",
]
