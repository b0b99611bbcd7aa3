# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""
Root pytest configuration with shared fixtures and markers.

This file is automatically loaded by pytest and provides:
- Custom markers for test categories
- In-memory fakes for the lifecycle collaborator protocols
- Store, catalog and sweeper fixtures on a temporary directory
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

import pytest

from membership_lifecycle.catalog import GroupCatalog, GroupDefinition
from membership_lifecycle.notifications import ReminderNotice
from membership_lifecycle.protocols import MemberHandle
from membership_lifecycle.store import JsonGrantStore
from membership_lifecycle.sweeper import LifecycleSweeper


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: Mark test as integration test (cross-module)",
    )
    config.addinivalue_line(
        "markers",
        "slow: Mark test as slow-running (may be skipped in quick runs)",
    )


# ============================================================================
# Fakes
# ============================================================================


class FakePlatform:
    """
    Resolver, granter, revoker and notifier in one, backed by dicts.

    Each side effect is recorded. Set ``*_result`` to False to simulate a
    refused call, or put a subject ID in ``*_errors`` to make it raise.
    """

    def __init__(self, members: Optional[Dict[str, str]] = None):
        self.members: Dict[str, MemberHandle] = {
            sid: MemberHandle(subject_id=sid, display_name=name)
            for sid, name in (members or {}).items()
        }
        self.granted: List[Tuple[str, str]] = []
        self.revoked: List[Tuple[str, str]] = []
        self.notified: List[Tuple[str, ReminderNotice]] = []

        self.grant_result = True
        self.revoke_result = True
        self.notify_result = True

        self.resolve_errors: Dict[str, Exception] = {}
        self.grant_errors: Dict[str, Exception] = {}
        self.revoke_errors: Dict[str, Exception] = {}
        self.notify_errors: Dict[str, Exception] = {}

    async def resolve(self, subject_id: str) -> Optional[MemberHandle]:
        if subject_id in self.resolve_errors:
            raise self.resolve_errors[subject_id]
        return self.members.get(subject_id)

    async def grant(self, member: MemberHandle, group_id: str) -> bool:
        if member.subject_id in self.grant_errors:
            raise self.grant_errors[member.subject_id]
        self.granted.append((member.subject_id, group_id))
        return self.grant_result

    async def revoke(self, member: MemberHandle, group_id: str) -> bool:
        if member.subject_id in self.revoke_errors:
            raise self.revoke_errors[member.subject_id]
        self.revoked.append((member.subject_id, group_id))
        return self.revoke_result

    async def notify(self, member: MemberHandle, notice: ReminderNotice) -> bool:
        if member.subject_id in self.notify_errors:
            raise self.notify_errors[member.subject_id]
        self.notified.append((member.subject_id, notice))
        return self.notify_result


class RecordingAuditSink:
    """Collects audit messages."""

    def __init__(self):
        self.messages: List[str] = []

    async def record(self, message: str) -> None:
        self.messages.append(message)

    def contains(self, text: str) -> bool:
        return any(text in message for message in self.messages)


# ============================================================================
# Shared Fixtures
# ============================================================================


@pytest.fixture
def now():
    """Fixed evaluation time."""
    return datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def catalog():
    return GroupCatalog(
        [
            GroupDefinition(name="VIP", role_id="111", color="#00BFFF", contact="Telegram @vip_support"),
            GroupDefinition(name="Gold", role_id="222"),
        ]
    )


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "members.json"


@pytest.fixture
def store(store_path):
    return JsonGrantStore(store_path)


@pytest.fixture
def platform():
    return FakePlatform({"1001": "alice", "1002": "bob", "1003": "carol"})


@pytest.fixture
def audit():
    return RecordingAuditSink()


@pytest.fixture
def sweeper(store, catalog, platform, audit, now):
    return LifecycleSweeper(
        store=store,
        catalog=catalog,
        resolver=platform,
        notifier=platform,
        revoker=platform,
        audit_sink=audit,
        clock=lambda: now,
    )
