# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""
The ``/addmember`` command.

Validates command input, calls the enrollment service and turns the
outcome into the reply shown to the invoking administrator. The Discord
adapter registers the slash command and forwards invocations here.
"""

import logging
from dataclasses import dataclass
from typing import List

from membership_lifecycle.errors import EnrollmentError, MemberNotFoundError, UnknownGroupError
from membership_lifecycle.enrollment import EnrollmentService

logger = logging.getLogger(__name__)

COMMAND_NAME = "addmember"
COMMAND_DESCRIPTION = "Add a user to a VIP membership"

MIN_DAYS = 1
MAX_DAYS = 3650


@dataclass
class CommandReply:
    """
    Reply to a command invocation.

    Attributes:
        content: Message text
        success: Whether the enrollment took effect
        ephemeral: Whether only the invoker sees the reply
    """

    content: str
    success: bool
    ephemeral: bool = True


class AddMemberCommand:
    """Handles ``/addmember user group days``."""

    name = COMMAND_NAME
    description = COMMAND_DESCRIPTION

    def __init__(self, enrollment: EnrollmentService):
        self.enrollment = enrollment

    def group_choices(self) -> List[str]:
        """Group names offered as command choices."""
        return self.enrollment.catalog.names()

    async def handle(self, subject_id: str, subject_tag: str, group_id: str, days: int) -> CommandReply:
        """
        Run the command.

        Args:
            subject_id: ID of the user to enroll
            subject_tag: User's display tag for the reply
            group_id: Group name chosen by the invoker
            days: Membership length in days

        Returns:
            CommandReply describing the outcome. Never raises for
            expected failures.
        """
        if isinstance(days, bool) or not isinstance(days, int) or not MIN_DAYS <= days <= MAX_DAYS:
            return CommandReply(
                content=f"Days must be a whole number between {MIN_DAYS} and {MAX_DAYS}.",
                success=False,
            )

        try:
            await self.enrollment.enroll(subject_id, group_id, days)
        except UnknownGroupError:
            return CommandReply(
                content="Group not found. Check the groups section of the configuration.",
                success=False,
            )
        except MemberNotFoundError:
            return CommandReply(
                content=f"{subject_tag} is not a member of this server.",
                success=False,
            )
        except EnrollmentError as e:
            logger.error(f"/{self.name} failed for {subject_tag}: {e}")
            return CommandReply(
                content=(
                    "Failed to add member. Make sure the bot has Manage Roles "
                    "and the role ID is correct."
                ),
                success=False,
            )

        return CommandReply(
            content=f"Added {subject_tag} to **{group_id}** for {days} day(s).",
            success=True,
        )
