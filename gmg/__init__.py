"""
gmg - Git repository and user access manager.

Provisions bare repositories and hosted accounts, and keeps OS group
membership, per-user symlink farms and cgit catalogs in sync.
"""

__version__ = "0.1.0"

from .config import Settings, get_settings
from .errors import (
    AlreadyExists,
    CompensationFailure,
    ExternalCommandFailure,
    GmgError,
    NotFound,
    ValidationFailure,
)

__all__ = [
    "AlreadyExists",
    "CompensationFailure",
    "ExternalCommandFailure",
    "GmgError",
    "NotFound",
    "Settings",
    "ValidationFailure",
    "get_settings",
]
