"""
Distribution des PDF

Règles couvertes:
- DIST_001-005 (Machine d'états, notifications)
- ACL_002 (PDF inexistant = NotFound)
"""

from .interfaces import (
    # Enums
    AssignedGroup,
    AssignmentStatus,
    DistributionState,
    # Data classes
    Assignment,
    Notification,
    DownloadGrant,
    # Interfaces
    IResourceStore,
    IDistributionStateMachine,
)
from .state_machine import DistributionStateMachine

__all__ = [
    # Enums
    "AssignedGroup",
    "AssignmentStatus",
    "DistributionState",
    # Data classes
    "Assignment",
    "Notification",
    "DownloadGrant",
    # Interfaces
    "IResourceStore",
    "IDistributionStateMachine",
    # Implementations
    "DistributionStateMachine",
]
