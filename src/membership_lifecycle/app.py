# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Service wiring.

Builds the store, catalog, Discord adapter, sweeper, scheduler and
command handler from a ManagerConfig and runs them on one event loop.
"""

import asyncio
import logging
from typing import List, Optional

from membership_lifecycle.adapters.discord_adapter import (
    DiscordChannelAuditSink,
    DiscordConfig,
    DiscordMembershipAdapter,
)
from membership_lifecycle.audit import CompositeAuditSink, LoggingAuditSink
from membership_lifecycle.commands import AddMemberCommand
from membership_lifecycle.config import ManagerConfig
from membership_lifecycle.enrollment import EnrollmentService
from membership_lifecycle.protocols import AuditSink
from membership_lifecycle.scheduler import SweepScheduler
from membership_lifecycle.store import GrantStore, JsonGrantStore
from membership_lifecycle.sweeper import LifecycleSweeper

logger = logging.getLogger(__name__)


class MembershipApp:
    """The running membership manager.

    Attributes:
        store: Grant store
        adapter: Discord adapter (resolver, granter, revoker, notifier)
        sweeper: Lifecycle sweeper
        enrollment: Enrollment service
        scheduler: Periodic sweep schedule
    """

    def __init__(
        self,
        config: ManagerConfig,
        store: Optional[GrantStore] = None,
        adapter: Optional[DiscordMembershipAdapter] = None,
    ):
        """
        Args:
            config: Validated configuration
            store: Grant store (opens ``config.data_file`` if omitted)
            adapter: Discord adapter (created from ``config`` if omitted)

        Raises:
            StoreCorruptedError: If the data file cannot be parsed.
        """
        self.config = config
        self.catalog = config.build_catalog()
        self.store = store if store is not None else JsonGrantStore(config.data_file)
        self.adapter = adapter or DiscordMembershipAdapter(
            DiscordConfig.from_manager_config(config), self.catalog
        )
        self.audit_sink = self._build_audit_sink()

        # One lock serialises every store mutation
        self.lock = asyncio.Lock()

        self.sweeper = LifecycleSweeper(
            store=self.store,
            catalog=self.catalog,
            resolver=self.adapter,
            notifier=self.adapter,
            revoker=self.adapter,
            audit_sink=self.audit_sink,
            reminder_window=config.reminder_window,
            lock=self.lock,
        )
        self.enrollment = EnrollmentService(
            store=self.store,
            catalog=self.catalog,
            resolver=self.adapter,
            granter=self.adapter,
            audit_sink=self.audit_sink,
            lock=self.lock,
        )
        self.scheduler = SweepScheduler(
            self.sweeper.sweep,
            interval=config.sweep_interval,
            startup_delay=config.startup_delay,
        )

        self.adapter.register_add_member(AddMemberCommand(self.enrollment))
        self.adapter.on_ready = self._on_ready

    def _build_audit_sink(self) -> AuditSink:
        sinks: List[AuditSink] = [LoggingAuditSink()]
        if self.config.admin_log_channel_id:
            sinks.append(DiscordChannelAuditSink(self.adapter, self.config.admin_log_channel_id))
        return CompositeAuditSink(sinks)

    async def _on_ready(self) -> None:
        # Ready fires again on reconnect; start() is idempotent
        self.scheduler.start()

    async def run(self) -> None:
        """Connect and serve until the connection closes."""
        logger.info(
            f"Managing {len(self.catalog)} group(s), {len(self.store.all())} stored grant(s)"
        )
        try:
            await self.adapter.start()
        finally:
            await self.scheduler.stop()
            await self.adapter.close()
