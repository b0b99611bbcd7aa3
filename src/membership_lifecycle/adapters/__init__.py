# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Platform adapters implementing the lifecycle collaborator protocols."""

from membership_lifecycle.adapters.discord_adapter import (
    DiscordChannelAuditSink,
    DiscordConfig,
    DiscordMembershipAdapter,
)

__all__ = [
    "DiscordChannelAuditSink",
    "DiscordConfig",
    "DiscordMembershipAdapter",
]
