"""Membership Lifecycle - time-limited group memberships.

Grants timed membership of configured groups, reminds members shortly
before their membership lapses, and revokes access at expiry.

Usage:
    membership-lifecycle run --config membership.yaml
    membership-lifecycle list
"""

from membership_lifecycle.catalog import GroupCatalog, GroupDefinition
from membership_lifecycle.enrollment import EnrollmentService
from membership_lifecycle.errors import (
    ConfigurationError,
    EnrollmentError,
    MemberNotFoundError,
    MembershipError,
    StoreCorruptedError,
    UnknownGroupError,
)
from membership_lifecycle.grants import Grant
from membership_lifecycle.store import GrantStore, JsonGrantStore
from membership_lifecycle.sweeper import LifecycleSweeper

__version__ = "1.0.0"

__all__ = [
    "__version__",
    "ConfigurationError",
    "EnrollmentError",
    "EnrollmentService",
    "Grant",
    "GrantStore",
    "GroupCatalog",
    "GroupDefinition",
    "JsonGrantStore",
    "LifecycleSweeper",
    "MemberNotFoundError",
    "MembershipError",
    "StoreCorruptedError",
    "UnknownGroupError",
]
