# Copyright 2024-2025 Amiable Development
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Discord platform adapter for the membership lifecycle manager.

This module implements every collaborator the lifecycle core needs on top
of discord.py:

- Membership resolution (guild member lookup)
- Granting and revoking group roles
- Reminder delivery by direct message embed
- Audit messages posted to an admin log channel
- The guild-scoped ``/addmember`` slash command

Design:
- Thin adapter; all decisions stay in the sweeper and enrollment service
- Side-effect methods return False on Discord API errors instead of raising

Version: 1.0.0
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional

import discord
from discord import app_commands

from membership_lifecycle.catalog import GroupCatalog
from membership_lifecycle.commands import MAX_DAYS, MIN_DAYS, AddMemberCommand
from membership_lifecycle.config import ManagerConfig
from membership_lifecycle.notifications import ReminderNotice
from membership_lifecycle.protocols import MemberHandle

logger = logging.getLogger(__name__)

# Discord's message length limit
MAX_MESSAGE_LENGTH = 2000

FAILURE_REPLY = "Failed to add member. Check the bot log for details."


# =============================================================================
# Discord Configuration
# =============================================================================


@dataclass
class DiscordConfig:
    """
    Configuration for the Discord adapter.

    Attributes:
        token: Discord bot token
        application_id: Discord application ID
        guild_id: Guild whose members and roles are managed
        intents: Discord intents to enable
    """

    token: str
    application_id: str
    guild_id: str
    intents: List[str] = field(
        default_factory=lambda: [
            "guilds",
            "members",
            "direct_messages",
        ]
    )

    @classmethod
    def from_manager_config(cls, config: ManagerConfig) -> "DiscordConfig":
        return cls(
            token=config.token,
            application_id=config.application_id,
            guild_id=config.guild_id,
        )


# =============================================================================
# Discord Adapter Implementation
# =============================================================================


class DiscordMembershipAdapter:
    """
    Discord implementation of the resolver, granter, revocation and
    notification protocols.

    Example:
        config = DiscordConfig(
            token="your-bot-token",
            application_id="your-app-id",
            guild_id="your-guild-id",
        )
        adapter = DiscordMembershipAdapter(config, catalog)
        adapter.register_add_member(AddMemberCommand(enrollment))

        async def started():
            scheduler.start()

        adapter.on_ready = started
        await adapter.start()
    """

    def __init__(
        self,
        config: DiscordConfig,
        catalog: GroupCatalog,
        client: Optional[Any] = None,
        tree: Optional[Any] = None,
    ):
        """
        Initialize the Discord adapter.

        Args:
            config: Discord configuration
            catalog: Group catalog used to map groups to roles
            client: Pre-built discord.Client (created from config if omitted)
            tree: Command tree for ``client`` (created if omitted)
        """
        self.config = config
        self.catalog = catalog
        self._commands_synced = False
        self._guild: Optional[Any] = None

        # Event callbacks
        self.on_ready: Optional[Callable[[], Awaitable[None]]] = None

        if client is None:
            self._discord_client = self._create_client()
        else:
            self._discord_client = client
        self.tree = tree if tree is not None else app_commands.CommandTree(self._discord_client)

    @property
    def guild_object(self) -> discord.Object:
        return discord.Object(id=int(self.config.guild_id))

    def _create_client(self) -> discord.Client:
        """Create Discord client with intents."""
        intents = discord.Intents.default()

        if "guilds" in self.config.intents:
            intents.guilds = True
        if "members" in self.config.intents:
            intents.members = True
        if "direct_messages" in self.config.intents:
            intents.dm_messages = True

        client = discord.Client(
            intents=intents,
            application_id=int(self.config.application_id),
        )

        # Set up event handlers
        @client.event
        async def on_ready():
            await self._handle_ready()

        return client

    async def start(self) -> None:
        """
        Connect to Discord and run until ``close()`` is called.

        Raises:
            discord.LoginFailure: If the token is rejected
        """
        try:
            await self._discord_client.start(self.config.token)
        except Exception as e:
            logger.error(f"Discord connection failed: {e}")
            raise

    async def close(self) -> None:
        """Disconnect from Discord."""
        await self._discord_client.close()
        logger.info("Disconnected from Discord")

    async def _handle_ready(self) -> None:
        """Handle Discord ready event (fires again after reconnects)."""
        logger.info(f"Logged in to Discord as {self._discord_client.user}")

        if not self._commands_synced:
            await self.sync_commands()

        if self.on_ready:
            await self.on_ready()

    async def _get_guild(self) -> Any:
        if self._guild is None:
            guild_id = int(self.config.guild_id)
            self._guild = self._discord_client.get_guild(guild_id)
            if self._guild is None:
                self._guild = await self._discord_client.fetch_guild(guild_id)
        return self._guild

    # =========================================================================
    # Lifecycle Collaborators
    # =========================================================================

    @staticmethod
    def _handle_for(member: Any) -> MemberHandle:
        return MemberHandle(
            subject_id=str(member.id),
            display_name=str(member),
            native=member,
        )

    async def resolve(self, subject_id: str) -> Optional[MemberHandle]:
        """
        Look up a guild member.

        Returns:
            MemberHandle, or None if the user is not in the guild.

        Raises:
            discord.HTTPException: For API errors other than "not found"
        """
        guild = await self._get_guild()
        try:
            member = await guild.fetch_member(int(subject_id))
        except discord.NotFound:
            return None
        return self._handle_for(member)

    def _role_for(self, group_id: str) -> Optional[discord.Object]:
        group = self.catalog.get(group_id)
        if group is None or not group.role_id:
            logger.warning(f"No role configured for group {group_id}")
            return None
        return discord.Object(id=int(group.role_id))

    async def grant(self, member: MemberHandle, group_id: str) -> bool:
        """Add the group's role to the member."""
        role = self._role_for(group_id)
        if role is None:
            return False

        try:
            await member.native.add_roles(role, reason=f"Membership in {group_id}")
        except discord.HTTPException as e:
            logger.error(f"Failed to add {group_id} role to {member.display_name}: {e}")
            return False
        return True

    async def revoke(self, member: MemberHandle, group_id: str) -> bool:
        """Remove the group's role from the member."""
        role = self._role_for(group_id)
        if role is None:
            return False

        try:
            await member.native.remove_roles(role, reason=f"Membership in {group_id} expired")
        except discord.HTTPException as e:
            logger.error(f"Failed to remove {group_id} role from {member.display_name}: {e}")
            return False
        return True

    async def notify(self, member: MemberHandle, notice: ReminderNotice) -> bool:
        """Send the reminder embed by direct message."""
        try:
            await member.native.send(embed=self.build_embed(notice))
        except discord.HTTPException as e:
            # Forbidden when the member has DMs closed
            logger.info(f"Could not DM {member.display_name}: {e}")
            return False
        return True

    @staticmethod
    def build_embed(notice: ReminderNotice) -> discord.Embed:
        """
        Render a reminder as a Discord embed.

        Args:
            notice: Reminder content

        Returns:
            Embed with title, description, fields and footer
        """
        embed = discord.Embed(
            title=notice.title,
            description=notice.description,
            colour=discord.Colour(notice.group.color_value),
        )
        for name, value, inline in notice.fields():
            embed.add_field(name=name, value=value, inline=inline)
        embed.set_footer(text=notice.footer)
        return embed

    # =========================================================================
    # Admin Log Channel
    # =========================================================================

    async def send_channel_message(self, channel_id: str, content: str) -> None:
        """
        Send a message to a channel, split to fit Discord's length limit.

        Raises:
            discord.HTTPException: If the channel cannot be fetched or sent to
        """
        channel = self._discord_client.get_channel(int(channel_id))
        if channel is None:
            channel = await self._discord_client.fetch_channel(int(channel_id))

        for chunk in self._split_message(content):
            await channel.send(content=chunk)

    def _split_message(self, content: str, max_length: int = MAX_MESSAGE_LENGTH) -> List[str]:
        """Split message into chunks for Discord's limit."""
        if len(content) <= max_length:
            return [content]

        chunks = []
        while content:
            if len(content) <= max_length:
                chunks.append(content)
                break

            # Find a good split point
            split_at = max_length
            for sep in ["\n", ". ", " "]:
                idx = content.rfind(sep, 0, max_length)
                if idx > 0:
                    split_at = idx + len(sep)
                    break

            chunks.append(content[:split_at])
            content = content[split_at:]

        return chunks

    # =========================================================================
    # Slash Command Support
    # =========================================================================

    def register_add_member(self, command: AddMemberCommand) -> app_commands.Command:
        """
        Register ``/addmember`` on the guild command tree.

        Args:
            command: Handler invoked for each use of the command

        Returns:
            The registered app command
        """
        choices = [app_commands.Choice(name=name, value=name) for name in command.group_choices()]

        @app_commands.command(name=command.name, description=command.description)
        @app_commands.describe(
            user="User to add",
            group="VIP group name",
            days="Days of membership",
        )
        @app_commands.choices(group=choices)
        @app_commands.default_permissions(manage_roles=True)
        @app_commands.guild_only()
        async def addmember(
            interaction: discord.Interaction,
            user: discord.Member,
            group: app_commands.Choice[str],
            days: app_commands.Range[int, MIN_DAYS, MAX_DAYS],
        ):
            await self.handle_add_member(interaction, command, user, group.value, days)

        self.tree.add_command(addmember, guild=self.guild_object)
        self._commands_synced = False
        return addmember

    async def sync_commands(self) -> None:
        """Push registered commands to the guild."""
        try:
            synced = await self.tree.sync(guild=self.guild_object)
        except discord.HTTPException as e:
            logger.error(f"Failed to register slash commands: {e}")
            return
        self._commands_synced = True
        logger.info(f"Registered {len(synced)} slash command(s)")

    async def handle_add_member(
        self,
        interaction: Any,
        command: AddMemberCommand,
        user: Any,
        group_id: str,
        days: int,
    ) -> None:
        """
        Run ``/addmember`` for an interaction and reply ephemerally.

        Args:
            interaction: Discord interaction object
            command: Command handler
            user: Member chosen in the command
            group_id: Chosen group
            days: Membership length
        """
        # Role and store updates can exceed the 3 second response window
        await self.defer_response(interaction, ephemeral=True)
        try:
            reply = await command.handle(str(user.id), str(user), group_id, days)
        except Exception as e:
            logger.exception(f"/{command.name} failed for {user}: {e}")
            await self.send_followup(interaction, FAILURE_REPLY, ephemeral=True)
            return
        await self.send_followup(interaction, reply.content, ephemeral=reply.ephemeral)

    async def defer_response(self, interaction: Any, ephemeral: bool = False) -> None:
        """
        Defer response for long-running operations.

        Args:
            interaction: Discord interaction object
            ephemeral: Whether final response is ephemeral
        """
        await interaction.response.defer(ephemeral=ephemeral, thinking=True)

    async def send_followup(
        self,
        interaction: Any,
        content: str,
        ephemeral: bool = False,
    ) -> None:
        """
        Send followup message after deferring.

        Args:
            interaction: Discord interaction object
            content: Followup content
            ephemeral: Whether message is ephemeral
        """
        await interaction.followup.send(content=content, ephemeral=ephemeral)


class DiscordChannelAuditSink:
    """Posts audit messages to an admin log channel."""

    def __init__(self, adapter: DiscordMembershipAdapter, channel_id: str):
        self.adapter = adapter
        self.channel_id = channel_id

    async def record(self, message: str) -> None:
        await self.adapter.send_channel_message(self.channel_id, message)
