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
Slash command handlers for GameStatus Bot.

Each handler encapsulates one command's business logic with explicit
dependency injection and returns a CommandResult; the registry turns that
result into a Discord reply. Handlers share one shape:

    name          Command name as registered with Discord
    description   Command description shown in the client
    execute       async (interaction, **options) -> CommandResult
    autocomplete  async (interaction, current) -> choices, or None

Handlers:
    /check  Query any supported game server on demand
    /ping   Liveness check
"""

from typing import Any, ClassVar, List, Optional, Protocol
from dataclasses import dataclass
import discord
from discord import app_commands
import structlog

try:
    from games import game_display_name, search_games
    from query import QueryResult
except ImportError:
    from src.games import game_display_name, search_games  # type: ignore
    from src.query import QueryResult  # type: ignore

logger = structlog.get_logger()

MAX_AUTOCOMPLETE_CHOICES = 25
MAX_CHOICE_NAME_LENGTH = 100


# ═════════════════════════════════════════════════════════════════════════════
# DEPENDENCY PROTOCOLS
# ═════════════════════════════════════════════════════════════════════════════


class QueryAdapterProvider(Protocol):
    """Interface for game server queries."""

    async def query(self, game_type: str, address: str) -> QueryResult:
        """Query a server; never raises for query-level problems."""
        ...


class RateLimiter(Protocol):
    """Interface for rate limiting."""

    def is_rate_limited(self, user_id: int) -> tuple[bool, Optional[int]]:
        """Check if user is rate limited. Returns (is_limited, retry_after)."""
        ...


class EmbedBuilderType(Protocol):
    """Interface for embed building utilities."""

    COLOR_SUCCESS: ClassVar[int]
    COLOR_ERROR: ClassVar[int]

    @staticmethod
    def status_embed(status: Any, *, address: str, title: Optional[str] = None,
                     footer: Optional[str] = None, timestamp: bool = False) -> discord.Embed:
        """Create server status embed."""
        ...

    @staticmethod
    def cooldown_embed(retry_seconds: int) -> discord.Embed:
        """Create rate limit embed."""
        ...


# ═════════════════════════════════════════════════════════════════════════════
# RESULT TYPE
# ═════════════════════════════════════════════════════════════════════════════


@dataclass
class CommandResult:
    """Result of a command handler, sent back by send_command_response."""

    success: bool
    embed: Optional[discord.Embed] = None
    content: Optional[str] = None
    ephemeral: bool = False
    followup: bool = False  # If True, use interaction.followup.send()


# ═════════════════════════════════════════════════════════════════════════════
# HANDLERS
# ═════════════════════════════════════════════════════════════════════════════


class CheckCommandHandler:
    """Query a game server on demand and reply with its status."""

    name = "check"
    description = "Check the status of a game server"

    def __init__(
        self,
        query_adapter: QueryAdapterProvider,
        rate_limiter: RateLimiter,
        embed_builder_type: type[EmbedBuilderType],
        bot_name: str,
    ):
        self.query_adapter = query_adapter
        self.rate_limiter = rate_limiter
        self.embed_builder = embed_builder_type
        self.bot_name = bot_name

    async def execute(
        self,
        interaction: discord.Interaction,
        game_type: str,
        address: str,
    ) -> CommandResult:
        """
        Execute check command.

        Args:
            interaction: Discord interaction
            game_type: Game identifier chosen by the user
            address: Server address as host[:port]

        Returns:
            CommandResult with a status embed or a plain-text outcome
        """
        logger.info(
            "handler_invoked",
            handler="CheckCommandHandler",
            user=interaction.user.name,
            user_id=interaction.user.id,
            game_type=game_type,
            address=address,
        )

        is_limited, retry = self.rate_limiter.is_rate_limited(interaction.user.id)
        if is_limited:
            return CommandResult(
                success=False,
                embed=self.embed_builder.cooldown_embed(int(retry or 0)),
                ephemeral=True,
            )

        if not interaction.response.is_done():
            await interaction.response.defer(ephemeral=True)

        result = await self.query_adapter.query(game_type, address)

        if not result.success:
            logger.info("check_command_query_failed", address=address, error=result.error)
            return CommandResult(
                success=False,
                content=f"Error querying server: {result.error}",
                ephemeral=True,
                followup=True,
            )

        status = result.data
        if status is None:
            return CommandResult(
                success=False,
                content="No data received from server.",
                ephemeral=True,
                followup=True,
            )

        embed = self.embed_builder.status_embed(
            status,
            address=address,
            title=f"{status.name or address} Server Status",
            footer=f"{game_display_name(game_type)} - {self.bot_name}",
        )

        logger.info(
            "check_command_executed",
            address=address,
            players=status.player_count,
        )
        return CommandResult(success=True, embed=embed, ephemeral=True, followup=True)

    async def autocomplete(
        self,
        interaction: discord.Interaction,
        current: str,
    ) -> List[app_commands.Choice[str]]:
        """Suggest game identifiers matching the typed text."""
        return [
            app_commands.Choice(
                name=f"{game.id} ({game.name})"[:MAX_CHOICE_NAME_LENGTH],
                value=game.id,
            )
            for game in search_games(current, limit=MAX_AUTOCOMPLETE_CHOICES)
        ]


class PingCommandHandler:
    """Liveness check."""

    name = "ping"
    description = "Replies with Meow!"
    autocomplete = None

    async def execute(self, interaction: discord.Interaction) -> CommandResult:
        logger.info("handler_invoked", handler="PingCommandHandler", user=interaction.user.name)
        return CommandResult(success=True, content="Meow!")
