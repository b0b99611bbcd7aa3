# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Enrollment: issuing a new time-limited membership.

An enrollment either takes full effect or none at all. The external
membership (the role) is granted first; only if that succeeds is the
grant written to the store, replacing any earlier grant for the subject.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from membership_lifecycle.audit import record_audit
from membership_lifecycle.catalog import GroupCatalog
from membership_lifecycle.errors import EnrollmentError, MemberNotFoundError, UnknownGroupError
from membership_lifecycle.grants import Grant, utc_now
from membership_lifecycle.protocols import AuditSink, MembershipGranter, MembershipResolver
from membership_lifecycle.store import GrantStore

logger = logging.getLogger(__name__)


class EnrollmentService:
    """Creates or overwrites grants.

    Example:
        >>> service = EnrollmentService(store, catalog, adapter, adapter, lock=lock)
        >>> grant = await service.enroll("123456789", "SmartFX Premium", 30)
        >>> grant.reminded
        False
    """

    def __init__(
        self,
        store: GrantStore,
        catalog: GroupCatalog,
        resolver: MembershipResolver,
        granter: MembershipGranter,
        audit_sink: Optional[AuditSink] = None,
        lock: Optional[asyncio.Lock] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Args:
            store: Grant store
            catalog: Group catalog; enrollment is limited to its groups
            resolver: Resolves the subject to a member
            granter: Adds the group's role
            audit_sink: Optional audit sink
            lock: Store lock shared with the sweeper
            clock: Source of the current time
        """
        self.store = store
        self.catalog = catalog
        self.resolver = resolver
        self.granter = granter
        self.audit_sink = audit_sink
        self.lock = lock or asyncio.Lock()
        self.clock = clock

    async def enroll(self, subject_id: str, group_id: str, duration_days: int) -> Grant:
        """Grant ``subject_id`` membership of ``group_id`` for ``duration_days``.

        Any existing grant for the subject is replaced entirely, including a
        reset of its reminder state.

        Args:
            subject_id: Subject to enroll
            group_id: Catalog group name
            duration_days: Length of the membership in days

        Returns:
            The stored Grant

        Raises:
            UnknownGroupError: If the group is not in the catalog
            MemberNotFoundError: If the subject cannot be resolved
            EnrollmentError: If the subject could not be looked up, the
                external grant did not succeed (nothing is stored), or the
                grant could not be saved
        """
        if group_id not in self.catalog:
            raise UnknownGroupError(group_id)

        async with self.lock:
            try:
                member = await self.resolver.resolve(subject_id)
            except Exception as e:
                logger.error(f"Resolving {subject_id} failed: {e}")
                raise EnrollmentError(f"Could not look up {subject_id}: {e}") from e
            if member is None:
                raise MemberNotFoundError(subject_id)

            try:
                granted = await self.granter.grant(member, group_id)
            except Exception as e:
                logger.error(f"Granting {group_id} to {member.display_name} failed: {e}")
                raise EnrollmentError(f"Could not grant {group_id} to {member.display_name}: {e}") from e
            if not granted:
                logger.error(f"Granting {group_id} to {member.display_name} was refused")
                raise EnrollmentError(f"Could not grant {group_id} to {member.display_name}")

            grant = Grant.issue(subject_id, group_id, duration_days, self.clock())
            try:
                self.store.upsert(grant)
            except Exception as e:
                logger.error(f"Could not store grant for {subject_id}: {e}")
                await record_audit(
                    self.audit_sink,
                    f"Granted {group_id} to {member.display_name} but could not save the "
                    "membership; remove the role manually.",
                )
                raise EnrollmentError(f"Membership for {member.display_name} could not be saved: {e}") from e

        logger.info(
            f"Enrolled {member.display_name} ({subject_id}) in {group_id} "
            f"for {duration_days} day(s), expires {grant.expires_at.isoformat()}"
        )
        await record_audit(
            self.audit_sink,
            f"Added {member.display_name} to **{group_id}** for {duration_days} day(s).",
        )
        return grant
