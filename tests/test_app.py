# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Tests for service wiring."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from membership_lifecycle.adapters.discord_adapter import DiscordChannelAuditSink
from membership_lifecycle.app import MembershipApp
from membership_lifecycle.audit import CompositeAuditSink, LoggingAuditSink
from membership_lifecycle.catalog import GroupDefinition
from membership_lifecycle.commands import AddMemberCommand
from membership_lifecycle.config import ManagerConfig
from membership_lifecycle.grants import Grant


@pytest.fixture
def manager_config(tmp_path):
    return ManagerConfig(
        token="bot-token",
        guild_id="100",
        application_id="200",
        admin_log_channel_id="300",
        data_file=tmp_path / "members.json",
        startup_delay_seconds=3600,
        groups=[GroupDefinition("VIP", "111")],
    )


@pytest.fixture
def adapter():
    adapter = MagicMock()
    adapter.start = AsyncMock()
    adapter.close = AsyncMock()
    return adapter


class TestMembershipApp:
    def test_wiring(self, manager_config, adapter):
        app = MembershipApp(manager_config, adapter=adapter)

        assert app.sweeper.lock is app.enrollment.lock
        assert app.sweeper.store is app.store
        assert app.enrollment.store is app.store
        assert app.sweeper.reminder_window == timedelta(hours=24)
        assert app.scheduler.startup_delay == timedelta(hours=1)
        assert adapter.on_ready == app._on_ready

        command = adapter.register_add_member.call_args.args[0]
        assert isinstance(command, AddMemberCommand)
        assert command.enrollment is app.enrollment

    def test_store_opened_from_config(self, manager_config, adapter):
        app = MembershipApp(manager_config, adapter=adapter)

        app.store.upsert(Grant("1001", "VIP", app.sweeper.clock() + timedelta(days=1)))

        assert manager_config.data_file.exists()

    def test_audit_goes_to_log_and_channel(self, manager_config, adapter):
        app = MembershipApp(manager_config, adapter=adapter)

        assert isinstance(app.audit_sink, CompositeAuditSink)
        kinds = [type(sink) for sink in app.audit_sink.sinks]
        assert kinds == [LoggingAuditSink, DiscordChannelAuditSink]
        assert app.audit_sink.sinks[1].channel_id == "300"

    def test_audit_without_channel(self, manager_config, adapter):
        manager_config.admin_log_channel_id = None

        app = MembershipApp(manager_config, adapter=adapter)

        assert [type(sink) for sink in app.audit_sink.sinks] == [LoggingAuditSink]

    @pytest.mark.asyncio
    async def test_ready_starts_schedule(self, manager_config, adapter):
        app = MembershipApp(manager_config, adapter=adapter)

        await app._on_ready()
        assert app.scheduler.running is True

        await app.scheduler.stop()
        assert app.scheduler.running is False

    @pytest.mark.asyncio
    async def test_run_cleans_up(self, manager_config, adapter):
        app = MembershipApp(manager_config, adapter=adapter)

        async def connect():
            await app._on_ready()

        adapter.start.side_effect = connect

        await app.run()

        assert app.scheduler.running is False
        adapter.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_run_cleans_up_after_connection_error(self, manager_config, adapter):
        app = MembershipApp(manager_config, adapter=adapter)
        adapter.start.side_effect = RuntimeError("Improper token")

        with pytest.raises(RuntimeError):
            await app.run()

        adapter.close.assert_awaited_once()
