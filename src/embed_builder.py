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
Discord embed rendering for server status.

The scheduled status messages and the /check reply share the same field
layout: one summary field (map, player count, connect command) followed by
one inline field per player.
"""

from __future__ import annotations

from typing import Optional

import discord

try:
    from .query import ServerStatus
except ImportError:
    from query import ServerStatus  # type: ignore

# Discord rejects empty field names; a zero-width space renders as blank.
BLANK_FIELD_NAME = "\u200b"

# Discord allows at most 25 fields per embed (1 summary + 24 players).
MAX_EMBED_FIELDS = 25


def format_summary(status: ServerStatus, fallback_address: str) -> str:
    """Summary line: map, player count and the console connect command."""
    return (
        f"Playing **{status.map or 'N/A'}** with "
        f"**{status.player_count}/{status.max_players}** players\n"
        f"Connect via Console: `connect {status.connect or fallback_address}`"
    )


class EmbedBuilder:
    """Helper class for creating status embeds."""

    COLOR_SUCCESS: int = 0x00FF00      # Green
    COLOR_ERROR: int = 0xFF0000        # Red
    COLOR_WARNING: int = 0xFFA500      # Orange

    @staticmethod
    def status_embed(
        status: ServerStatus,
        *,
        address: str,
        title: Optional[str] = None,
        footer: Optional[str] = None,
        timestamp: bool = False,
    ) -> discord.Embed:
        """
        Create a server status embed.

        Args:
            status: Server snapshot to render
            address: Configured address, used when the server reports no connect string
            title: Embed title (defaults to the server name, then the address)
            footer: Footer text, usually the game's display name
            timestamp: Stamp the embed with the current time (scheduled updates)

        Returns:
            discord.Embed with one summary field and one inline field per player
        """
        embed = discord.Embed(
            title=title or status.name or address,
            color=EmbedBuilder.COLOR_SUCCESS,
            timestamp=discord.utils.utcnow() if timestamp else None,
        )

        embed.add_field(
            name=BLANK_FIELD_NAME,
            value=format_summary(status, address),
            inline=False,
        )

        players = status.players
        player_slots = MAX_EMBED_FIELDS - 1
        if len(players) > player_slots:
            shown = players[: player_slots - 1]
            overflow = len(players) - len(shown)
        else:
            shown = players
            overflow = 0

        for player in shown:
            embed.add_field(
                name=BLANK_FIELD_NAME,
                value=player.name or "Unknown player",
                inline=True,
            )

        if overflow:
            embed.add_field(
                name=BLANK_FIELD_NAME,
                value=f"…and {overflow} more",
                inline=True,
            )

        if footer:
            embed.set_footer(text=footer)

        return embed

    @staticmethod
    def query_error_embed(address: str, error: str) -> discord.Embed:
        """Create the placeholder shown while a server cannot be queried."""
        embed = discord.Embed(
            title=f"Failed to query server {address}",
            description=f"Error: {error}",
            color=EmbedBuilder.COLOR_ERROR,
        )
        embed.set_footer(text="Last successful data may be outdated.")
        return embed

    @staticmethod
    def cooldown_embed(retry_seconds: int) -> discord.Embed:
        """Create rate limit embed."""
        return discord.Embed(
            title="⏱️ Slow Down!",
            description=f"You're using commands too quickly.\nTry again in {retry_seconds} seconds.",
            color=EmbedBuilder.COLOR_WARNING,
        )
