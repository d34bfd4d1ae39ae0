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
General-purpose utilities for GameStatus Bot.

Framework-agnostic tools shared by the scheduler and the slash commands.
"""

from .rate_limiting import CommandCooldown, RequestThrottle, QUERY_COOLDOWN

__all__ = [
    # Rate limiting
    "CommandCooldown",
    "RequestThrottle",
    "QUERY_COOLDOWN",
]
