# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""
Collaborator protocols consumed by the lifecycle core.

The sweeper and enrollment service only talk to the outside world through
these interfaces. The Discord adapter implements all of them; tests use
simple fakes.

Failure contract for side-effect methods (grant, revoke, notify):
- Return True when the effect took place
- Return False, or raise, when it did not
The core treats both failure forms the same way.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, runtime_checkable

from membership_lifecycle.notifications import ReminderNotice


@dataclass(frozen=True)
class MemberHandle:
    """
    A resolved member of the managed population.

    Attributes:
        subject_id: The subject ID the handle was resolved from
        display_name: Human-readable name used in audit messages
        native: Platform object backing the handle (e.g. discord.Member)
    """

    subject_id: str
    display_name: str
    native: Any = field(default=None, compare=False, repr=False)


@runtime_checkable
class MembershipResolver(Protocol):
    """Looks up a subject's current membership in the managed population."""

    async def resolve(self, subject_id: str) -> Optional[MemberHandle]:
        """
        Resolve a subject ID to a member.

        Args:
            subject_id: Stable identifier of the subject

        Returns:
            MemberHandle, or None if the subject cannot be found (e.g. left
            the server).
        """
        ...


@runtime_checkable
class MembershipGranter(Protocol):
    """Adds the externally held membership (e.g. a role) for a group."""

    async def grant(self, member: MemberHandle, group_id: str) -> bool:
        ...


@runtime_checkable
class RevocationAdapter(Protocol):
    """Removes the externally held membership for a group."""

    async def revoke(self, member: MemberHandle, group_id: str) -> bool:
        """
        Revoke the member's access to ``group_id``.

        Returns:
            True if access was removed, False otherwise.
        """
        ...


@runtime_checkable
class NotificationAdapter(Protocol):
    """Delivers the pre-expiry reminder to a member."""

    async def notify(self, member: MemberHandle, notice: ReminderNotice) -> bool:
        """
        Deliver a reminder.

        Args:
            member: Recipient
            notice: Group display metadata and absolute expiry time

        Returns:
            True if delivered, False if delivery failed (e.g. DMs closed).
        """
        ...


@runtime_checkable
class AuditSink(Protocol):
    """Receives human-readable audit messages for administrators."""

    async def record(self, message: str) -> None:
        ...
