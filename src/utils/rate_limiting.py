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
Rate limiting utilities (framework-agnostic).

- CommandCooldown: sliding-window per-user limit for slash commands.
- RequestThrottle: minimum spacing between outbound operations (message
  deletes, per-server reconciliation) to stay under platform rate limits.
"""

import asyncio
import time
from collections import defaultdict, deque
from typing import Awaitable, Callable, Dict, Optional

import structlog

logger = structlog.get_logger()


class CommandCooldown:
    """Sliding-window rate limit keyed by user ID."""

    def __init__(self, rate: int = 3, per: float = 60.0):
        """
        Initialize cooldown manager.

        Args:
            rate: Number of uses allowed
            per: Time window in seconds
        """
        self.rate = rate
        self.per = per
        self.cooldowns: Dict[int, deque] = defaultdict(lambda: deque(maxlen=rate))
        logger.debug("cooldown_initialized", rate=rate, per=per)

    def is_rate_limited(self, user_id: int) -> tuple[bool, Optional[int]]:
        """
        Check if user is rate limited, recording the use when they are not.

        Returns:
            Tuple of (is_limited, retry_seconds); retry_seconds is None when not limited
        """
        now = time.time()
        bucket = self.cooldowns[user_id]

        while bucket and bucket[0] < now - self.per:
            bucket.popleft()

        if len(bucket) >= self.rate:
            retry_after = self.per - (now - bucket[0])
            retry_seconds = max(0, int(retry_after) + 1)
            logger.debug(
                "rate_limited",
                user_id=user_id,
                retry_seconds=retry_seconds,
                rate=self.rate,
                per=self.per,
            )
            return True, retry_seconds

        bucket.append(now)
        return False, None

    def reset(self, user_id: int) -> None:
        """Reset cooldown for a specific user."""
        if user_id in self.cooldowns:
            del self.cooldowns[user_id]
            logger.debug("cooldown_reset", user_id=user_id)

    def reset_all(self) -> None:
        """Reset all cooldowns."""
        self.cooldowns.clear()
        logger.debug("all_cooldowns_reset")


class RequestThrottle:
    """
    Enforce a minimum delay between consecutive operations.

    ``await throttle.acquire()`` returns immediately the first time and
    afterwards waits until ``delay`` seconds have passed since the previous
    operation. Calling ``release()`` when an operation finishes measures the
    delay from its end instead of its start. The clock and sleep function are
    injectable so tests can run without real waiting.
    """

    def __init__(
        self,
        delay: float,
        *,
        name: str = "throttle",
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        if delay < 0:
            raise ValueError(f"Throttle delay must be >= 0, got {delay}")

        self.delay = delay
        self.name = name
        self._sleep = sleep or asyncio.sleep
        self._clock = clock or time.monotonic
        self._last_acquired: Optional[float] = None

    async def acquire(self) -> float:
        """
        Wait for the next slot.

        Returns:
            Seconds actually waited (0.0 when no wait was needed)
        """
        waited = 0.0
        if self._last_acquired is not None and self.delay > 0:
            remaining = self.delay - (self._clock() - self._last_acquired)
            if remaining > 0:
                logger.debug("throttle_waiting", throttle=self.name, seconds=round(remaining, 3))
                await self._sleep(remaining)
                waited = remaining

        self._last_acquired = self._clock()
        return waited

    def release(self) -> None:
        """Mark the current operation finished; the next acquire waits a full delay from now."""
        self._last_acquired = self._clock()

    def reset(self) -> None:
        """Forget the previous acquire so the next one is immediate."""
        self._last_acquired = None


# Global cooldown for the on-demand /check command
QUERY_COOLDOWN = CommandCooldown(rate=5, per=30.0)    # 5 queries per 30s
