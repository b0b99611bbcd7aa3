# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""
Configuration loading for the membership lifecycle manager.

This module provides:
- ManagerConfig dataclass with defaults for every optional setting
- load_config() to parse a YAML file and overlay environment variables

Environment variables take precedence over the YAML file. The bot token
is only ever read from the environment. Any problem with the resulting
configuration raises ConfigurationError, which is fatal at startup.

Example config file::

    discord:
      guild_id: "123456789012345678"
      application_id: "234567890123456789"
      admin_log_channel_id: "345678901234567890"
    storage:
      path: members.json
    sweep:
      interval_minutes: 60
      startup_delay_seconds: 10
      reminder_window_hours: 24
    groups:
      "SmartFX Premium":
        role_id: "456789012345678901"
        color: "#00BFFF"
        contact: "Telegram - [SmartFX Support](https://t.me/SmartFXSupport)"
"""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from membership_lifecycle.catalog import (
    DEFAULT_COLOR,
    DEFAULT_CONTACT,
    GroupCatalog,
    GroupDefinition,
    is_valid_color,
)
from membership_lifecycle.errors import ConfigurationError

DEFAULT_CONFIG_PATH = "membership.yaml"
DEFAULT_DATA_FILE = "members.json"

# Bounds applied to values from the config file
MIN_SWEEP_INTERVAL_MINUTES = 1
MAX_SWEEP_INTERVAL_MINUTES = 24 * 60
MAX_STARTUP_DELAY_SECONDS = 3600
MAX_REMINDER_WINDOW_HOURS = 30 * 24

# Discord allows at most 25 choices on a slash command option
MAX_GROUPS = 25

# Environment variable names shared with existing bot deployments
ENV_TOKEN = "TOKEN"
ENV_GUILD_ID = "GUILD_ID"
ENV_APPLICATION_ID = "CLIENT_ID"
ENV_ADMIN_LOG_CHANNEL = "ADMIN_LOG_CHANNEL"
ENV_DATA_FILE = "DATA_FILE"


@dataclass
class ManagerConfig:
    """Settings for one membership manager instance.

    Attributes:
        token: Discord bot token
        guild_id: Guild whose roles are managed
        application_id: Discord application ID (for command registration)
        admin_log_channel_id: Optional channel receiving audit messages
        data_file: Path of the JSON grant store
        sweep_interval_minutes: Minutes between sweep cycles
        startup_delay_seconds: Delay before the first sweep after startup
        reminder_window_hours: How long before expiry the reminder goes out
        groups: Group catalog entries
    """

    token: str
    guild_id: str
    application_id: str
    admin_log_channel_id: Optional[str] = None
    data_file: Path = field(default_factory=lambda: Path(DEFAULT_DATA_FILE))
    sweep_interval_minutes: int = 60
    startup_delay_seconds: int = 10
    reminder_window_hours: int = 24
    groups: List[GroupDefinition] = field(default_factory=list)

    @property
    def sweep_interval(self) -> timedelta:
        return timedelta(minutes=self.sweep_interval_minutes)

    @property
    def startup_delay(self) -> timedelta:
        return timedelta(seconds=self.startup_delay_seconds)

    @property
    def reminder_window(self) -> timedelta:
        return timedelta(hours=self.reminder_window_hours)

    def build_catalog(self) -> GroupCatalog:
        return GroupCatalog(self.groups)


def load_config(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
    require_credentials: bool = True,
) -> ManagerConfig:
    """Load configuration from a YAML file and the environment.

    Args:
        path: YAML file to read. A missing file is treated as empty.
        environ: Environment mapping (defaults to ``os.environ``)
        require_credentials: Whether TOKEN, GUILD_ID and CLIENT_ID must be
            set. Offline commands that only read the store pass False.

    Returns:
        Validated ManagerConfig

    Raises:
        ConfigurationError: If the file is malformed or a required
            setting is missing.
    """
    env = os.environ if environ is None else environ
    data = _read_yaml(Path(path or DEFAULT_CONFIG_PATH))

    discord_section = _section(data, "discord")
    storage_section = _section(data, "storage")
    sweep_section = _section(data, "sweep")

    token = env.get(ENV_TOKEN)
    guild_id = env.get(ENV_GUILD_ID) or _optional_str(discord_section.get("guild_id"))
    application_id = env.get(ENV_APPLICATION_ID) or _optional_str(discord_section.get("application_id"))
    admin_log_channel_id = env.get(ENV_ADMIN_LOG_CHANNEL) or _optional_str(
        discord_section.get("admin_log_channel_id")
    )

    missing = [
        name
        for name, value in (
            (ENV_TOKEN, token),
            (ENV_GUILD_ID, guild_id),
            (ENV_APPLICATION_ID, application_id),
        )
        if not value
    ]
    if missing and require_credentials:
        raise ConfigurationError(
            f"Missing required settings: {', '.join(missing)}. "
            "Set TOKEN in the environment and GUILD_ID/CLIENT_ID in the "
            "environment or the discord section of the config file."
        )

    for name, value in (
        ("guild_id", guild_id),
        ("application_id", application_id),
        ("admin_log_channel_id", admin_log_channel_id),
    ):
        _check_snowflake(name, value)

    data_file = env.get(ENV_DATA_FILE) or storage_section.get("path") or DEFAULT_DATA_FILE
    if not isinstance(data_file, str):
        raise ConfigurationError(f"storage.path must be a string, got {data_file!r}")

    return ManagerConfig(
        token=token or "",
        guild_id=guild_id or "",
        application_id=application_id or "",
        admin_log_channel_id=admin_log_channel_id,
        data_file=Path(data_file),
        sweep_interval_minutes=_clamped_int(
            sweep_section, "interval_minutes", 60,
            MIN_SWEEP_INTERVAL_MINUTES, MAX_SWEEP_INTERVAL_MINUTES,
        ),
        startup_delay_seconds=_clamped_int(
            sweep_section, "startup_delay_seconds", 10, 0, MAX_STARTUP_DELAY_SECONDS,
        ),
        reminder_window_hours=_clamped_int(
            sweep_section, "reminder_window_hours", 24, 0, MAX_REMINDER_WINDOW_HOURS,
        ),
        groups=_parse_groups(data.get("groups")),
    )


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return data


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Config section '{name}' must be a mapping")
    return section


def _optional_str(value: Any) -> Optional[str]:
    # YAML turns unquoted snowflake IDs into ints
    if value is None or value == "":
        return None
    return str(value)


def _check_snowflake(name: str, value: Optional[str]) -> None:
    if value is not None and not value.isdigit():
        raise ConfigurationError(f"{name} must be a numeric Discord ID, got {value!r}")


def _clamped_int(section: Dict[str, Any], key: str, default: int, low: int, high: int) -> int:
    raw = section.get(key, default)
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raw = default
    return max(low, min(int(raw), high))


def _parse_groups(raw: Any) -> List[GroupDefinition]:
    if not raw:
        raise ConfigurationError("No groups configured. Add at least one entry under 'groups'.")
    if not isinstance(raw, dict):
        raise ConfigurationError("'groups' must map group names to their settings")
    if len(raw) > MAX_GROUPS:
        raise ConfigurationError(f"At most {MAX_GROUPS} groups can be configured, got {len(raw)}")

    groups = []
    for name, entry in raw.items():
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Group '{name}' must be a mapping")

        role_id = _optional_str(entry.get("role_id"))
        if not role_id:
            raise ConfigurationError(f"Group '{name}' has no role_id")
        _check_snowflake(f"role_id of group '{name}'", role_id)

        color = entry.get("color", DEFAULT_COLOR)
        if not is_valid_color(color):
            raise ConfigurationError(f"Group '{name}' has invalid color {color!r}, expected #RRGGBB")

        contact = entry.get("contact", DEFAULT_CONTACT)
        if not isinstance(contact, str):
            raise ConfigurationError(f"Group '{name}' contact must be a string")

        groups.append(
            GroupDefinition(name=str(name), role_id=role_id, color=color, contact=contact)
        )
    return groups
