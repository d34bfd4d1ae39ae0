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
Game catalog for servers speaking the Valve A2S query protocol.

Maps short game identifiers (the ones used in config.yaml and /check) to a
display name and the default query port used when an address has no port.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass(frozen=True)
class GameDefinition:
    """A queryable game type."""

    id: str
    """Short identifier (e.g., 'css', 'tf2')."""

    name: str
    """Human readable game name shown in embeds and autocomplete."""

    default_port: int = 27015
    """A2S query port used when the address does not carry one."""


_CATALOG: List[GameDefinition] = [
    GameDefinition("7d2d", "7 Days to Die", 26900),
    GameDefinition("arkse", "ARK: Survival Evolved", 27015),
    GameDefinition("arma3", "ARMA 3", 2303),
    GameDefinition("bm", "Black Mesa", 27015),
    GameDefinition("conanexiles", "Conan Exiles", 27015),
    GameDefinition("cs16", "Counter-Strike 1.6", 27015),
    GameDefinition("cs2", "Counter-Strike 2", 27015),
    GameDefinition("csco", "Counter-Strike: Condition Zero", 27015),
    GameDefinition("csgo", "Counter-Strike: Global Offensive", 27015),
    GameDefinition("css", "Counter-Strike: Source", 27015),
    GameDefinition("dayz", "DayZ", 27016),
    GameDefinition("dod", "Day of Defeat", 27015),
    GameDefinition("dods", "Day of Defeat: Source", 27015),
    GameDefinition("fof", "Fistful of Frags", 27015),
    GameDefinition("garrysmod", "Garry's Mod", 27015),
    GameDefinition("hl2dm", "Half-Life 2: Deathmatch", 27015),
    GameDefinition("hldm", "Half-Life Deathmatch", 27015),
    GameDefinition("hurtworld", "Hurtworld", 12871),
    GameDefinition("insurgency", "Insurgency", 27015),
    GameDefinition("insurgencysandstorm", "Insurgency: Sandstorm", 27131),
    GameDefinition("killingfloor2", "Killing Floor 2", 27015),
    GameDefinition("l4d", "Left 4 Dead", 27015),
    GameDefinition("l4d2", "Left 4 Dead 2", 27015),
    GameDefinition("nmrih", "No More Room in Hell", 27015),
    GameDefinition("ns2", "Natural Selection 2", 27016),
    GameDefinition("pixark", "PixARK", 27015),
    GameDefinition("projectzomboid", "Project Zomboid", 16261),
    GameDefinition("rust", "Rust", 28015),
    GameDefinition("spaceengineers", "Space Engineers", 27016),
    GameDefinition("squad", "Squad", 27165),
    GameDefinition("svencoop", "Sven Co-op", 27015),
    GameDefinition("synergy", "Synergy", 27015),
    GameDefinition("tf2", "Team Fortress 2", 27015),
    GameDefinition("tfc", "Team Fortress Classic", 27015),
    GameDefinition("theforest", "The Forest", 27016),
    GameDefinition("unturned", "Unturned", 27016),
    GameDefinition("valheim", "Valheim", 2457),
    GameDefinition("zps", "Zombie Panic! Source", 27015),
]

GAMES: Dict[str, GameDefinition] = {game.id: game for game in _CATALOG}


def get_game(game_id: str) -> Optional[GameDefinition]:
    """Look up a game by identifier (case-insensitive)."""
    if not game_id:
        return None
    return GAMES.get(game_id.strip().lower())


def game_display_name(game_id: str) -> str:
    """Display name for a game identifier, falling back to the identifier itself."""
    game = get_game(game_id)
    return game.name if game else game_id


def search_games(current: str, limit: int = 25) -> List[GameDefinition]:
    """
    Find games whose identifier contains the typed text.

    Args:
        current: Partial input from the user (matched case-insensitively)
        limit: Maximum number of results (Discord allows 25 choices)

    Returns:
        Matching games in catalog order
    """
    needle = (current or "").strip().lower()
    matches = [game for game in _CATALOG if needle in game.id]
    return matches[:limit]
