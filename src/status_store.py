# Copyright (c) 2025 Stephen Clau
#
# This file is part of GameStatus Bot.
#
# GameStatus Bot is dual-licensed:
#
# 1. GNU Affero General Public License v3.0 (AGPL-3.0)
#    See LICENSE file for full terms
#
# 2. Commercial License
#    For proprietary use without AGPL requirements
#    Contact: licensing@laudiversified.com
#
# SPDX-License-Identifier: AGPL-3.0-only OR Commercial


"""
In-memory mapping from server address to its status message in the channel.

Nothing here is persisted: a restart forgets every association and the
scheduler relinks by posting fresh messages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

import structlog

try:
    from .query import ServerStatus
except ImportError:
    from query import ServerStatus  # type: ignore

logger = structlog.get_logger()


@dataclass
class ChannelMessageRecord:
    """Link between a server and the message currently showing its status."""

    server_key: str
    """Server address (host[:port]). Game type is not part of the key."""

    message_id: int
    """Discord message ID."""

    last_data: Optional[ServerStatus] = None
    """Last status rendered into the message, None after an error post."""

    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class StatusMessageStore:
    """Server address -> ChannelMessageRecord."""

    def __init__(self) -> None:
        self._records: Dict[str, ChannelMessageRecord] = {}

    def get(self, server_key: str) -> Optional[ChannelMessageRecord]:
        return self._records.get(server_key)

    def set(
        self,
        server_key: str,
        message_id: int,
        data: Optional[ServerStatus] = None,
    ) -> ChannelMessageRecord:
        """Create or overwrite the record for a server."""
        previous = self._records.get(server_key)
        record = ChannelMessageRecord(
            server_key=server_key,
            message_id=message_id,
            last_data=data,
        )
        self._records[server_key] = record

        logger.debug(
            "status_record_set",
            server=server_key,
            message_id=message_id,
            replaced_message_id=previous.message_id if previous else None,
        )
        return record

    def update_data(self, server_key: str, data: Optional[ServerStatus]) -> Optional[ChannelMessageRecord]:
        """Refresh the stored data of an existing record; no-op when there is none."""
        record = self._records.get(server_key)
        if record is None:
            return None

        record.last_data = data
        record.updated_at = datetime.now(timezone.utc)
        return record

    def clear(self) -> None:
        self._records.clear()

    def records(self) -> List[ChannelMessageRecord]:
        return list(self._records.values())

    def __contains__(self, server_key: object) -> bool:
        return server_key in self._records

    def __len__(self) -> int:
        return len(self._records)
