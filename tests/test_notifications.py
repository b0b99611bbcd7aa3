# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Tests for reminder content."""

from datetime import datetime, timedelta, timezone

import pytest

from membership_lifecycle.catalog import GroupDefinition
from membership_lifecycle.notifications import (
    REMINDER_FOOTER,
    REMINDER_TITLE,
    ReminderNotice,
    discord_timestamp,
    format_time_left,
)


@pytest.mark.parametrize(
    "remaining,expected",
    [
        (timedelta(days=3), "3 days"),
        (timedelta(hours=47), "47 hours"),
        (timedelta(hours=23, minutes=40), "23 hours"),
        (timedelta(hours=1), "1 hour"),
        (timedelta(minutes=59), "59 minutes"),
        (timedelta(minutes=1), "1 minute"),
        (timedelta(seconds=20), "0 minutes"),
        (timedelta(minutes=-5), "0 minutes"),
    ],
)
def test_format_time_left(remaining, expected):
    assert format_time_left(remaining) == expected


def test_discord_timestamp():
    moment = datetime(2025, 1, 1, tzinfo=timezone.utc)

    assert discord_timestamp(moment) == "<t:1735689600:f>"
    assert discord_timestamp(moment, "R") == "<t:1735689600:R>"


class TestReminderNotice:
    @pytest.fixture
    def notice(self):
        return ReminderNotice(
            group=GroupDefinition("VIP", "111", color="#00BFFF", contact="Telegram @vip_support"),
            expires_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
            time_left=timedelta(hours=23),
        )

    def test_headline(self, notice):
        assert notice.group_id == "VIP"
        assert notice.title == REMINDER_TITLE
        assert notice.description == "Your membership in **VIP** is expiring soon!"
        assert notice.footer == REMINDER_FOOTER

    def test_fields(self, notice):
        assert notice.fields() == [
            ("Expires", "<t:1735689600:f>", True),
            ("Time Left", "23 hours", True),
            ("Contact for Payment", "Telegram @vip_support", False),
        ]
