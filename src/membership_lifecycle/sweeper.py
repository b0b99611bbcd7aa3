# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Lifecycle sweeper: reconciles every grant against the clock.

Each sweep cycle walks a snapshot of the store and handles every grant
independently:

- Reminder: expiry is within the reminder window and no reminder has been
  attempted. One delivery attempt is made, then ``reminded`` is persisted
  whether or not delivery succeeded (at most one attempt per grant).
- Expiry: expiry has passed. One revocation attempt is made if the member
  can still be resolved, then the grant is deleted whatever the outcome.

Both transitions follow the same two-step protocol: attempt the external
side effect, then persist the resulting state. A failed side effect never
blocks the state transition.

Errors are isolated per grant; one grant's failure is logged, audited and
counted, and the cycle continues with the next grant.
"""

import asyncio
import logging
import time
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from membership_lifecycle.audit import record_audit
from membership_lifecycle.catalog import GroupCatalog
from membership_lifecycle.grants import Grant, utc_now
from membership_lifecycle.notifications import ReminderNotice
from membership_lifecycle.protocols import (
    AuditSink,
    MemberHandle,
    MembershipResolver,
    NotificationAdapter,
    RevocationAdapter,
)
from membership_lifecycle.store import GrantStore

logger = logging.getLogger(__name__)

DEFAULT_REMINDER_WINDOW = timedelta(hours=24)


class Transition(Enum):
    """What a sweep does with a grant."""

    NONE = "none"
    REMIND = "remind"
    EXPIRE = "expire"


def classify(grant: Grant, now: datetime, reminder_window: timedelta) -> Transition:
    """Decide which transition, if any, applies to ``grant`` at ``now``.

    Expiry always wins over reminding, so an expired grant that was never
    reminded goes straight to removal.
    """
    if grant.is_expired(now):
        return Transition.EXPIRE
    if not grant.reminded and grant.in_reminder_window(now, reminder_window):
        return Transition.REMIND
    return Transition.NONE


def _new_stats() -> Dict[str, Any]:
    return {
        "processed": 0,
        "reminders_sent": 0,
        "reminders_failed": 0,
        "expired": 0,
        "revocations_failed": 0,
        "skipped": 0,
        "errors": 0,
    }


class LifecycleSweeper:
    """Drives reminder and expiry transitions for all stored grants.

    Attributes:
        store: Grant store (single source of truth)
        catalog: Group catalog for display metadata and role lookups
        resolver: Membership resolver
        notifier: Notification adapter for reminders
        revoker: Revocation adapter for expiry
        audit_sink: Optional audit sink
        reminder_window: How long before expiry the reminder is sent
        lock: Serialises store access with the enrollment service

    Example:
        >>> sweeper = LifecycleSweeper(store, catalog, adapter, adapter, adapter)
        >>> stats = await sweeper.sweep()
        >>> print(f"Expired {stats['expired']} grants")
    """

    def __init__(
        self,
        store: GrantStore,
        catalog: GroupCatalog,
        resolver: MembershipResolver,
        notifier: NotificationAdapter,
        revoker: RevocationAdapter,
        audit_sink: Optional[AuditSink] = None,
        reminder_window: timedelta = DEFAULT_REMINDER_WINDOW,
        lock: Optional[asyncio.Lock] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.catalog = catalog
        self.resolver = resolver
        self.notifier = notifier
        self.revoker = revoker
        self.audit_sink = audit_sink
        self.reminder_window = reminder_window
        self.lock = lock or asyncio.Lock()
        self.clock = clock

    async def sweep(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Run one sweep cycle over every stored grant.

        Args:
            now: Fixed evaluation time for the whole cycle. If None, the
                clock is read afresh for each grant.

        Returns:
            Statistics for the cycle.
        """
        start_time = time.perf_counter()
        stats = _new_stats()

        for snapshot in self.store.all():
            stats["processed"] += 1
            try:
                async with self.lock:
                    current = self.store.get(snapshot.subject_id)
                    if current != snapshot:
                        # Replaced by an enrollment after the snapshot was taken
                        logger.debug(f"Grant for {snapshot.subject_id} changed during sweep, skipping")
                        stats["skipped"] += 1
                        continue
                    await self._process(current, now or self.clock(), stats)
            except Exception as e:
                stats["errors"] += 1
                logger.exception(f"Error processing grant for {snapshot.subject_id}: {e}")
                await record_audit(
                    self.audit_sink,
                    f"Error processing membership for {snapshot.subject_id} "
                    f"in {snapshot.group_id}: {e}",
                )

        stats["duration_ms"] = (time.perf_counter() - start_time) * 1000

        if stats["processed"]:
            logger.info(
                f"Sweep finished: {stats['processed']} processed, "
                f"{stats['reminders_sent']} reminded, {stats['reminders_failed']} reminder failures, "
                f"{stats['expired']} expired, {stats['revocations_failed']} revocation failures, "
                f"{stats['skipped']} skipped, {stats['errors']} errors"
            )
        else:
            logger.debug("Sweep finished: no grants stored")

        return stats

    async def _process(self, grant: Grant, now: datetime, stats: Dict[str, Any]) -> None:
        transition = classify(grant, now, self.reminder_window)
        if transition is Transition.REMIND:
            await self._remind(grant, now, stats)
        elif transition is Transition.EXPIRE:
            await self._expire(grant, stats)

    async def _remind(self, grant: Grant, now: datetime, stats: Dict[str, Any]) -> None:
        # Resolver errors propagate here (per-grant error, grant untouched,
        # retried next cycle). _expire treats them as "not found" instead.
        member = await self.resolver.resolve(grant.subject_id)
        if member is None:
            # Left for now; retried next cycle and removed once it expires
            logger.info(f"Member {grant.subject_id} not found, reminder deferred")
            stats["skipped"] += 1
            return

        notice = ReminderNotice(
            group=self.catalog.display_for(grant.group_id),
            expires_at=grant.expires_at,
            time_left=grant.time_left(now),
        )

        # 1. attempt the side effect
        delivered = await self._attempt(
            self.notifier.notify(member, notice), "Reminder delivery", member
        )
        # 2. persist the transition regardless of the outcome
        self.store.upsert(grant.mark_reminded())

        expires = _format_expiry(grant.expires_at)
        if delivered:
            stats["reminders_sent"] += 1
            logger.info(f"Reminder sent to {member.display_name} for {grant.group_id} (expires {expires})")
            await record_audit(
                self.audit_sink,
                f"Reminder sent to {member.display_name} for **{grant.group_id}** (expires {expires}).",
            )
        else:
            stats["reminders_failed"] += 1
            logger.warning(
                f"Could not deliver reminder to {member.display_name} for {grant.group_id}; "
                "marked as reminded"
            )
            await record_audit(
                self.audit_sink,
                f"Could not DM {member.display_name} for {grant.group_id}.",
            )

    async def _expire(self, grant: Grant, stats: Dict[str, Any]) -> None:
        try:
            member = await self.resolver.resolve(grant.subject_id)
        except Exception as e:
            logger.warning(f"Could not resolve {grant.subject_id} for expiry: {e}")
            member = None

        group = self.catalog.get(grant.group_id)

        # 1. attempt the side effect
        if member is None:
            logger.info(
                f"Member {grant.subject_id} not found at expiry of {grant.group_id}, "
                "removing grant without revocation"
            )
        elif group is None:
            logger.warning(
                f"Group {grant.group_id} is no longer configured, cannot revoke "
                f"access for {member.display_name}"
            )
            await record_audit(
                self.audit_sink,
                f"Membership of {member.display_name} in unknown group {grant.group_id} "
                "expired; remove access manually.",
            )
        else:
            revoked = await self._attempt(
                self.revoker.revoke(member, grant.group_id), "Revocation", member
            )
            if revoked:
                logger.info(f"Removed {grant.group_id} role from {member.display_name} (expired)")
                await record_audit(
                    self.audit_sink,
                    f"Removed {grant.group_id} role from {member.display_name} (expired).",
                )
            else:
                stats["revocations_failed"] += 1
                await record_audit(
                    self.audit_sink,
                    f"Failed to remove {grant.group_id} role for {member.display_name}.",
                )

        # 2. persist: the grant goes whether or not revocation worked
        self.store.delete(grant.subject_id)
        stats["expired"] += 1

    async def _attempt(self, call: Awaitable[bool], action: str, member: MemberHandle) -> bool:
        """Await a best-effort side effect; any exception counts as failure."""
        try:
            return bool(await call)
        except Exception as e:
            logger.warning(f"{action} failed for {member.display_name}: {e}")
            return False


def _format_expiry(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%d %H:%M UTC")
