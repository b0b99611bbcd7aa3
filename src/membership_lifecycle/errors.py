# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Exception types for the membership lifecycle manager.

Configuration and storage errors are fatal at startup. Enrollment errors
are reported synchronously to whoever issued the enrollment.
"""


class MembershipError(Exception):
    """Base class for all membership lifecycle errors."""


class ConfigurationError(MembershipError):
    """A required setting is missing or a setting is malformed."""


class StoreCorruptedError(MembershipError):
    """The grant store exists but its contents cannot be parsed."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Grant store {path} is corrupted: {reason}")


class EnrollmentError(MembershipError):
    """An enrollment did not take effect and nothing was stored."""


class UnknownGroupError(EnrollmentError):
    """The requested group is not defined in the group catalog."""

    def __init__(self, group_id: str):
        self.group_id = group_id
        super().__init__(f"Group not found: {group_id}")


class MemberNotFoundError(EnrollmentError):
    """The subject could not be resolved to a member."""

    def __init__(self, subject_id: str):
        self.subject_id = subject_id
        super().__init__(f"Member not found: {subject_id}")
