"""
Réseau

Bornage des appels aux stores externes.

Invariants couverts:
- ACL_004: Fail-closed
- ACL_005: Timeout ou panne store = StoreUnavailable (réessayable)
"""

from .interfaces import (
    # Data classes
    TimeoutConfig,
    # Interfaces
    ITimeoutManager,
)
from .timeout_manager import (
    TimeoutManager,
    InvalidTimeoutError,
    StoreError,
)

__all__ = [
    # Data classes
    "TimeoutConfig",
    # Interfaces
    "ITimeoutManager",
    # Implementations
    "TimeoutManager",
    # Exceptions
    "InvalidTimeoutError",
    "StoreError",
]
