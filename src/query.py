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
Game server query adapter built on the python-a2s library.

Wraps a single server query (A2S_INFO + A2S_PLAYER) and normalizes address
parsing and error reporting into a QueryResult value. Callers never see an
exception from this module's query path: every failure becomes a QueryFailure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple, Union

import a2s
import structlog

try:
    from .games import GameDefinition, get_game
except ImportError:
    from games import GameDefinition, get_game  # type: ignore

logger = structlog.get_logger()

DEFAULT_QUERY_RETRIES = 3
DEFAULT_QUERY_TIMEOUT = 3.0


class InvalidAddressError(ValueError):
    """Raised when a server address cannot be parsed as host[:port]."""


@dataclass
class PlayerInfo:
    """A player currently on the server."""

    name: str = ""


@dataclass
class ServerStatus:
    """Normalized snapshot of a game server."""

    name: str
    map: str = ""
    players: List[PlayerInfo] = field(default_factory=list)
    max_players: int = 0
    connect: Optional[str] = None
    ping_ms: Optional[int] = None
    password_protected: Optional[bool] = None
    version: Optional[str] = None
    game_type: Optional[str] = None

    @property
    def player_count(self) -> int:
        return len(self.players)


@dataclass
class QuerySuccess:
    """Query completed. ``data`` may still be None if the server sent nothing usable."""

    data: Optional[ServerStatus]
    success: bool = field(default=True, init=False)


@dataclass
class QueryFailure:
    """Query failed; ``error`` carries the underlying message verbatim."""

    error: str
    success: bool = field(default=False, init=False)


QueryResult = Union[QuerySuccess, QueryFailure]


def parse_address(address: str) -> Tuple[str, Optional[int]]:
    """
    Split an address into host and optional port.

    Args:
        address: Address in ``host`` or ``host:port`` form

    Returns:
        Tuple of (host, port); port is None when the address has no port

    Raises:
        InvalidAddressError: If the host is empty or the port is not a valid port number
    """
    parts = (address or "").strip().split(":")
    host = parts[0].strip()
    if not host:
        raise InvalidAddressError("Invalid address format")

    port_text = parts[1].strip() if len(parts) > 1 else ""
    if not port_text:
        return host, None

    try:
        port = int(port_text)
    except ValueError:
        raise InvalidAddressError(f"Invalid port in address '{address}'") from None

    if not 1 <= port <= 65535:
        raise InvalidAddressError(f"Port out of range in address '{address}'")

    return host, port


class ServerQueryAdapter:
    """Query game servers over A2S with a bounded number of attempts."""

    def __init__(
        self,
        retries: int = DEFAULT_QUERY_RETRIES,
        timeout: float = DEFAULT_QUERY_TIMEOUT,
    ) -> None:
        """
        Initialize the adapter.

        Args:
            retries: Total attempts per query (minimum 1)
            timeout: Per-request timeout in seconds
        """
        self.retries = max(1, retries)
        self.timeout = timeout

    async def query(self, game_type: str, address: str) -> QueryResult:
        """
        Query a server and return its status.

        Args:
            game_type: Game identifier from the catalog (e.g., 'css')
            address: Server address as host[:port]

        Returns:
            QuerySuccess with the server status, or QueryFailure with the error message
        """
        try:
            game = get_game(game_type)
            if game is None:
                raise ValueError(f"Unknown game type '{game_type}'")

            host, port = parse_address(address)
            query_port = port if port is not None else game.default_port

            logger.info(
                "querying_server",
                game_type=game.id,
                host=host,
                port=query_port,
            )

            status = await self._query_with_retries(game, host, query_port)
            return QuerySuccess(data=status)

        except Exception as e:
            error = str(e) or type(e).__name__
            logger.warning(
                "server_query_failed",
                game_type=game_type,
                address=address,
                error=error,
            )
            return QueryFailure(error=error)

    async def _query_with_retries(
        self,
        game: GameDefinition,
        host: str,
        port: int,
    ) -> ServerStatus:
        """Run A2S_INFO + A2S_PLAYER, retrying the pair up to ``self.retries`` times."""
        last_error: Optional[Exception] = None

        for attempt in range(1, self.retries + 1):
            try:
                info = await a2s.ainfo((host, port), timeout=self.timeout)
                players = await a2s.aplayers((host, port), timeout=self.timeout)
                return self._build_status(game, host, port, info, players)
            except Exception as e:
                last_error = e
                logger.debug(
                    "server_query_attempt_failed",
                    game_type=game.id,
                    host=host,
                    port=port,
                    attempt=attempt,
                    max_attempts=self.retries,
                    error=str(e) or type(e).__name__,
                )

        assert last_error is not None
        raise last_error

    @staticmethod
    def _build_status(
        game: GameDefinition,
        host: str,
        port: int,
        info: Any,
        players: List[Any],
    ) -> ServerStatus:
        ping = getattr(info, "ping", None)
        # Game port players join on; servers that omit it are joined on the query port
        game_port = getattr(info, "port", None) or port
        return ServerStatus(
            name=getattr(info, "server_name", "") or "",
            map=getattr(info, "map_name", "") or "",
            players=[PlayerInfo(name=(getattr(p, "name", "") or "").strip()) for p in players],
            max_players=int(getattr(info, "max_players", 0) or 0),
            connect=f"{host}:{game_port}",
            ping_ms=int(ping * 1000) if isinstance(ping, (int, float)) else None,
            password_protected=getattr(info, "password_protected", None),
            version=getattr(info, "version", None),
            game_type=game.id,
        )
