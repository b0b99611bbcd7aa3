# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Grant record: one subject's time-bounded membership.

The persisted form keeps the established ``members.json`` layout so
existing data files load unchanged::

    {"<subject_id>": {"expiry": 1767225600000, "group": "VIP", "reminded": false}}

``expiry`` is milliseconds since the Unix epoch.
"""

import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_epoch_ms(moment: datetime) -> int:
    """Convert a datetime to integer milliseconds since the epoch."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - EPOCH) // timedelta(milliseconds=1)


def from_epoch_ms(value: int) -> datetime:
    """Convert milliseconds since the epoch to a UTC datetime."""
    return EPOCH + timedelta(milliseconds=value)


@dataclass(frozen=True)
class Grant:
    """A single subject's membership in a group until ``expires_at``.

    Attributes:
        subject_id: Stable identifier of the member.
        group_id: Name of the group, a key of the group catalog.
        expires_at: When access lapses (timezone-aware UTC).
        reminded: Whether the one reminder attempt has been made.
    """

    subject_id: str
    group_id: str
    expires_at: datetime
    reminded: bool = False

    def __post_init__(self):
        # Aware UTC, truncated to the millisecond precision of the stored form
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        expires_at = expires_at.astimezone(timezone.utc)
        expires_at = expires_at.replace(microsecond=expires_at.microsecond - expires_at.microsecond % 1000)
        object.__setattr__(self, "expires_at", expires_at)

    @classmethod
    def issue(
        cls,
        subject_id: str,
        group_id: str,
        duration_days: int,
        now: datetime,
    ) -> "Grant":
        """Create a fresh, not-yet-reminded grant lasting ``duration_days``."""
        return cls(
            subject_id=subject_id,
            group_id=group_id,
            expires_at=now + timedelta(days=duration_days),
            reminded=False,
        )

    def time_left(self, now: datetime) -> timedelta:
        """Time remaining until expiry; negative once expired."""
        return self.expires_at - now

    def is_expired(self, now: datetime) -> bool:
        return self.time_left(now) <= timedelta(0)

    def in_reminder_window(self, now: datetime, window: timedelta) -> bool:
        """True when expiry is still ahead but no further away than ``window``."""
        left = self.time_left(now)
        return timedelta(0) < left <= window

    def mark_reminded(self) -> "Grant":
        """Return a copy with ``reminded`` set. Never resets the flag."""
        return replace(self, reminded=True)

    def to_record(self) -> Dict[str, Any]:
        """Persisted form, without the subject ID (it is the mapping key)."""
        return {
            "expiry": to_epoch_ms(self.expires_at),
            "group": self.group_id,
            "reminded": self.reminded,
        }

    @classmethod
    def from_record(cls, subject_id: str, record: Dict[str, Any]) -> "Grant":
        """Build a grant from its persisted form.

        Raises:
            ValueError: If the record is missing fields or has wrong types.
        """
        if not isinstance(record, dict):
            raise ValueError(f"record for {subject_id} is not an object")

        expiry = record.get("expiry")
        group = record.get("group")
        reminded = record.get("reminded", False)

        # bool is an int subclass; reject it as an expiry
        if isinstance(expiry, bool) or not isinstance(expiry, (int, float)):
            raise ValueError(f"record for {subject_id} has invalid expiry: {expiry!r}")
        if not isinstance(group, str) or not group:
            raise ValueError(f"record for {subject_id} has invalid group: {group!r}")
        if not isinstance(reminded, bool):
            raise ValueError(f"record for {subject_id} has invalid reminded flag: {reminded!r}")

        # Infinity, NaN and anything past datetime.max
        try:
            if not math.isfinite(expiry):
                raise OverflowError("not a finite number")
            expires_at = from_epoch_ms(int(expiry))
        except OverflowError as e:
            raise ValueError(f"record for {subject_id} has out-of-range expiry: {expiry!r}") from e

        return cls(
            subject_id=subject_id,
            group_id=group,
            expires_at=expires_at,
            reminded=reminded,
        )
