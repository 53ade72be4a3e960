"""
Domain models — pydantic types for brewsync.

All models are re-exported here for convenient access:

    from brewsync.core.models import Category, InstallJob, JobOutcome, DesiredState
"""

from brewsync.core.models.package import (
    CATEGORY_ORDER,
    Category,
    ErrorKind,
    InstallJob,
    JobOutcome,
    describe_kind,
)
from brewsync.core.models.state import DesiredState, InstalledState, PackageSets

__all__ = [
    "CATEGORY_ORDER",
    "Category",
    "DesiredState",
    "ErrorKind",
    "InstallJob",
    "InstalledState",
    "JobOutcome",
    "PackageSets",
    "describe_kind",
]
