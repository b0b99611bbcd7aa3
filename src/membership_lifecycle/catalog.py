# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Static catalog of membership groups.

Each group maps a display name to the role that carries the membership
and the metadata shown in reminders. The catalog is read-only once built.
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

DEFAULT_COLOR = "#FFFF00"
DEFAULT_CONTACT = "Contact support"

_HEX_COLOR_PATTERN = re.compile(r"^#[0-9A-Fa-f]{6}$")


def is_valid_color(value: str) -> bool:
    """Check that ``value`` is a ``#RRGGBB`` hex colour."""
    return isinstance(value, str) and bool(_HEX_COLOR_PATTERN.match(value))


@dataclass(frozen=True)
class GroupDefinition:
    """
    A membership group.

    Attributes:
        name: Group name shown to users; also the group ID stored on grants
        role_id: Platform role that carries the membership
        color: Hex colour used for reminder embeds
        contact: Where members go to renew
    """

    name: str
    role_id: Optional[str]
    color: str = DEFAULT_COLOR
    contact: str = DEFAULT_CONTACT

    @property
    def color_value(self) -> int:
        """Colour as an integer, e.g. 0xFFD700."""
        return int(self.color.lstrip("#"), 16)


class GroupCatalog:
    """Read-only mapping of group name to GroupDefinition.

    Example:
        >>> catalog = GroupCatalog([GroupDefinition("VIP", role_id="42")])
        >>> catalog.get("VIP").role_id
        '42'
        >>> catalog.display_for("Gone").contact
        'Contact support'
    """

    def __init__(self, groups: List[GroupDefinition]):
        self._groups: Dict[str, GroupDefinition] = {}
        for group in groups:
            if group.name in self._groups:
                raise ValueError(f"Duplicate group name: {group.name}")
            self._groups[group.name] = group

    def get(self, group_id: str) -> Optional[GroupDefinition]:
        return self._groups.get(group_id)

    def display_for(self, group_id: str) -> GroupDefinition:
        """Definition for display purposes, falling back to defaults.

        Grants may outlive their group's removal from configuration; their
        reminders still go out with the default colour and contact.
        """
        group = self._groups.get(group_id)
        if group is not None:
            return group
        return GroupDefinition(name=group_id, role_id=None)

    def names(self) -> List[str]:
        return list(self._groups.keys())

    def __contains__(self, group_id: object) -> bool:
        return group_id in self._groups

    def __iter__(self) -> Iterator[GroupDefinition]:
        return iter(self._groups.values())

    def __len__(self) -> int:
        return len(self._groups)
