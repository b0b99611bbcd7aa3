# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Reminder content, independent of the delivery transport.

The notification adapter turns a ReminderNotice into whatever its
platform sends (a Discord embed, an email, ...).
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Tuple

from membership_lifecycle.catalog import GroupDefinition
from membership_lifecycle.grants import to_epoch_ms

REMINDER_TITLE = "Membership Expiring Soon!"
REMINDER_FOOTER = "Please renew your membership to maintain access."


def discord_timestamp(moment: datetime, style: str = "f") -> str:
    """Discord timestamp markup, rendered in each reader's local time."""
    return f"<t:{to_epoch_ms(moment) // 1000}:{style}>"


def format_time_left(remaining: timedelta) -> str:
    """Humanise a remaining duration at hour granularity.

    Examples:
        >>> format_time_left(timedelta(hours=23, minutes=40))
        '23 hours'
        >>> format_time_left(timedelta(minutes=5))
        '5 minutes'
    """
    total_minutes = max(0, int(remaining.total_seconds() // 60))
    if total_minutes >= 48 * 60:
        days = total_minutes // (24 * 60)
        return f"{days} days"
    if total_minutes >= 60:
        hours = total_minutes // 60
        return "1 hour" if hours == 1 else f"{hours} hours"
    if total_minutes == 1:
        return "1 minute"
    return f"{total_minutes} minutes"


@dataclass(frozen=True)
class ReminderNotice:
    """
    Everything a reminder needs to say.

    Attributes:
        group: Display metadata of the group (fallback values if the group
            is no longer configured)
        expires_at: Absolute expiry time
        time_left: Remaining time when the reminder was produced
    """

    group: GroupDefinition
    expires_at: datetime
    time_left: timedelta

    @property
    def group_id(self) -> str:
        return self.group.name

    @property
    def title(self) -> str:
        return REMINDER_TITLE

    @property
    def description(self) -> str:
        return f"Your membership in **{self.group.name}** is expiring soon!"

    @property
    def footer(self) -> str:
        return REMINDER_FOOTER

    def fields(self) -> List[Tuple[str, str, bool]]:
        """Embed-style fields as ``(name, value, inline)`` tuples."""
        return [
            ("Expires", discord_timestamp(self.expires_at, "f"), True),
            ("Time Left", format_time_left(self.time_left), True),
            ("Contact for Payment", self.group.contact, False),
        ]

