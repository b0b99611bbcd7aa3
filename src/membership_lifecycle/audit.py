# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Audit sinks.

Audit messages tell administrators what the manager did (reminders sent,
roles removed, failures needing manual follow-up). The sink is optional:
with no sink configured, recording is a no-op. A failing sink is logged
and never interrupts the caller.
"""

import logging
from typing import List, Optional

from membership_lifecycle.protocols import AuditSink

logger = logging.getLogger(__name__)

audit_logger = logging.getLogger("membership_lifecycle.audit")


class LoggingAuditSink:
    """Writes audit messages to the ``membership_lifecycle.audit`` logger."""

    def __init__(self, level: int = logging.INFO):
        self.level = level

    async def record(self, message: str) -> None:
        audit_logger.log(self.level, message)


class CompositeAuditSink:
    """Fans each message out to several sinks; one failing sink does not stop the others."""

    def __init__(self, sinks: List[AuditSink]):
        self.sinks = list(sinks)

    async def record(self, message: str) -> None:
        for sink in self.sinks:
            await record_audit(sink, message)


async def record_audit(sink: Optional[AuditSink], message: str) -> None:
    """Record ``message`` on ``sink`` if there is one.

    Args:
        sink: Audit sink, or None for no auditing
        message: Human-readable audit message
    """
    if sink is None:
        return

    try:
        await sink.record(message)
    except Exception as e:
        logger.error(f"Audit sink {type(sink).__name__} failed: {e}")
