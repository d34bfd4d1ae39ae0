"""Periodic reconciliation of server status messages.

Every tick re-reads config.yaml, queries each configured server in order and
makes the status channel hold exactly one up-to-date message per server
address: edit the remembered message when it still exists, otherwise post a
new one and remember it. The very first tick after startup also clears the
channel so messages from a previous process do not linger.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

import discord
import structlog

try:
    from config import ServerConfig, load_status_config
    from embed_builder import EmbedBuilder
    from games import game_display_name
    from query import ServerStatus
    from utils.rate_limiting import RequestThrottle
except ImportError:
    from src.config import ServerConfig, load_status_config  # type: ignore
    from src.embed_builder import EmbedBuilder  # type: ignore
    from src.games import game_display_name  # type: ignore
    from src.query import ServerStatus  # type: ignore
    from src.utils.rate_limiting import RequestThrottle  # type: ignore

logger = structlog.get_logger()


class StatusChannelError(RuntimeError):
    """The configured status channel is missing or cannot hold messages."""


@dataclass
class TickSummary:
    """Outcome counters for one reconciliation pass."""

    servers: int = 0
    posted: int = 0
    updated: int = 0
    errors_posted: int = 0
    skipped: int = 0
    failed: int = 0
    purged: int = 0


class StatusScheduler:
    """Reconcile one status message per configured server on a fixed interval."""

    def __init__(
        self,
        client: Any,
        context: Any,
        *,
        purge_throttle: Optional[RequestThrottle] = None,
        server_throttle: Optional[RequestThrottle] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        """
        Initialize the scheduler.

        Args:
            client: discord.Client used to resolve the status channel
            context: BotContext with config, store and query_adapter
            purge_throttle: Spacing between deletions in the first-run purge
            server_throttle: Spacing between servers within a tick
            sleep: Coroutine used to wait between ticks (asyncio.sleep by default)
            clock: Monotonic clock used to keep the tick period fixed
        """
        self.client = client
        self.context = context

        config = context.config
        self.interval = config.update_interval
        self.purge_throttle = purge_throttle or RequestThrottle(config.purge_delay, name="purge")
        self.server_throttle = server_throttle or RequestThrottle(config.server_delay, name="server")
        self._sleep = sleep or asyncio.sleep
        self._clock = clock or time.monotonic

        self._first_run = True
        self._tick_lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None

        self.tick_count = 0
        self.last_tick_started: Optional[datetime] = None
        self.last_tick_completed: Optional[datetime] = None
        self.last_tick_error: Optional[str] = None

    # ========================================================================
    # Lifecycle
    # ========================================================================

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the timer loop (first tick runs immediately)."""
        if self.is_running:
            logger.debug("status_scheduler_already_running")
            return

        self._task = asyncio.create_task(self._run_loop())
        logger.info("status_scheduler_started", interval=self.interval)

    async def stop(self) -> None:
        """Cancel the timer loop, interrupting a tick in progress."""
        if self._task is None:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("status_scheduler_stopped", ticks=self.tick_count)

    async def _run_loop(self) -> None:
        """Run a tick every interval, measured start to start. Tick failures never end the loop."""
        logger.info("status_scheduler_loop_started")
        try:
            while True:
                started = self._clock()
                try:
                    await self.run_tick()
                except Exception as e:
                    self.last_tick_error = str(e)
                    logger.error("status_tick_failed", error=str(e), exc_info=True)

                elapsed = self._clock() - started
                if elapsed >= self.interval:
                    logger.warning(
                        "status_tick_overran_interval",
                        elapsed=round(elapsed, 3),
                        interval=self.interval,
                    )
                await self._sleep(max(0.0, self.interval - elapsed))
        except asyncio.CancelledError:
            logger.info("status_scheduler_loop_cancelled")
            raise

    def get_status(self) -> Dict[str, Any]:
        """Snapshot for the health endpoint."""
        return {
            "running": self.is_running,
            "interval_seconds": self.interval,
            "ticks": self.tick_count,
            "first_run_pending": self._first_run,
            "last_tick_started": self.last_tick_started.isoformat() if self.last_tick_started else None,
            "last_tick_completed": self.last_tick_completed.isoformat() if self.last_tick_completed else None,
            "last_tick_error": self.last_tick_error,
            "tracked_messages": len(self.context.store),
        }

    # ========================================================================
    # Tick
    # ========================================================================

    async def run_tick(self) -> Optional[TickSummary]:
        """
        Run one reconciliation pass.

        Returns:
            TickSummary, or None when another tick was still running

        Raises:
            FileNotFoundError, ValueError, yaml.YAMLError: status config cannot be loaded
            StatusChannelError: status channel cannot be resolved
        """
        if self._tick_lock.locked():
            logger.warning("status_tick_skipped_overlap")
            return None

        async with self._tick_lock:
            self.last_tick_started = datetime.now(timezone.utc)
            logger.info("status_tick_started", tick=self.tick_count + 1)

            status_config = load_status_config(self.context.config.status_config_path)
            channel = await self._resolve_channel(status_config.channel_id)

            summary = TickSummary(servers=len(status_config.servers))

            if self._first_run:
                self._first_run = False
                summary.purged = await self._purge_channel(channel)

            self.server_throttle.reset()
            for server in status_config.servers:
                await self.server_throttle.acquire()
                try:
                    outcome = await self._reconcile_server(channel, server)
                except Exception as e:
                    summary.failed += 1
                    logger.error(
                        "status_server_processing_failed",
                        server=server.address,
                        game_type=server.type,
                        error=str(e),
                        exc_info=True,
                    )
                    continue
                finally:
                    self.server_throttle.release()

                if outcome == "posted":
                    summary.posted += 1
                elif outcome == "updated":
                    summary.updated += 1
                elif outcome == "skipped":
                    summary.skipped += 1
                else:
                    summary.errors_posted += 1

            self.tick_count += 1
            self.last_tick_completed = datetime.now(timezone.utc)
            self.last_tick_error = None

            logger.info(
                "status_tick_completed",
                tick=self.tick_count,
                servers=summary.servers,
                posted=summary.posted,
                updated=summary.updated,
                errors_posted=summary.errors_posted,
                skipped=summary.skipped,
                failed=summary.failed,
                purged=summary.purged,
            )
            return summary

    async def _resolve_channel(self, channel_id: int) -> Any:
        """Find the status channel in the cache, falling back to the API."""
        channel = self.client.get_channel(channel_id)
        if channel is None:
            try:
                channel = await self.client.fetch_channel(channel_id)
            except discord.HTTPException as e:
                raise StatusChannelError(
                    f"Status channel {channel_id} could not be fetched: {e}"
                ) from e

        if not isinstance(channel, discord.abc.Messageable):
            raise StatusChannelError(
                f"Status channel {channel_id} cannot hold messages "
                f"({type(channel).__name__})"
            )

        return channel

    async def _purge_channel(self, channel: Any) -> int:
        """Delete recent messages one by one. Failures are logged and skipped."""
        limit = self.context.config.purge_limit

        try:
            messages = [message async for message in channel.history(limit=limit)]
        except discord.HTTPException as e:
            logger.error("status_purge_history_failed", error=str(e))
            return 0

        deleted = 0
        self.purge_throttle.reset()
        for message in messages:
            await self.purge_throttle.acquire()
            try:
                await message.delete()
                deleted += 1
            except discord.HTTPException as e:
                logger.error(
                    "status_purge_delete_failed",
                    message_id=message.id,
                    error=str(e),
                )
            finally:
                self.purge_throttle.release()

        logger.info(
            "status_channel_purged",
            found=len(messages),
            deleted=deleted,
            failed=len(messages) - deleted,
        )
        return deleted

    # ========================================================================
    # Per-server reconciliation
    # ========================================================================

    async def _reconcile_server(self, channel: Any, server: ServerConfig) -> str:
        """
        Bring the server's message in line with a fresh query.

        Returns:
            'posted', 'updated', 'skipped' or 'error'
        """
        result = await self.context.query_adapter.query(server.type, server.address)

        if not result.success:
            await self._reconcile_failure(channel, server, result.error)
            return "error"

        status = result.data
        if status is None:
            logger.warning("status_no_data_received", server=server.address)
            return "skipped"

        return await self._reconcile_success(channel, server, status)

    async def _reconcile_success(self, channel: Any, server: ServerConfig, status: ServerStatus) -> str:
        store = self.context.store
        embed = EmbedBuilder.status_embed(
            status,
            address=server.address,
            footer=game_display_name(server.type),
            timestamp=True,
        )

        message = None
        record = store.get(server.address)
        if record is not None:
            message = await self._fetch_message(channel, record.message_id, server)

        if message is None:
            message = await channel.send(embed=embed)
            store.set(server.address, message.id, status)
            logger.info(
                "status_message_posted",
                server=server.address,
                message_id=message.id,
            )
            return "posted"

        await message.edit(embed=embed)
        store.update_data(server.address, status)
        logger.info(
            "status_message_updated",
            server=server.address,
            message_id=message.id,
        )
        return "updated"

    async def _reconcile_failure(self, channel: Any, server: ServerConfig, error: str) -> None:
        store = self.context.store
        embed = EmbedBuilder.query_error_embed(server.address, error)

        record = store.get(server.address)
        if record is not None:
            try:
                message = await channel.fetch_message(record.message_id)
                await message.edit(embed=embed)
                logger.info(
                    "status_error_message_updated",
                    server=server.address,
                    message_id=record.message_id,
                )
                return
            except discord.HTTPException as e:
                logger.warning(
                    "status_error_message_unavailable",
                    server=server.address,
                    message_id=record.message_id,
                    error=str(e),
                )

        message = await channel.send(embed=embed)
        store.set(server.address, message.id, None)
        logger.info(
            "status_error_message_posted",
            server=server.address,
            message_id=message.id,
        )

    async def _fetch_message(self, channel: Any, message_id: int, server: ServerConfig) -> Optional[Any]:
        """Fetch a remembered message; None when it is gone or unreadable."""
        try:
            return await channel.fetch_message(message_id)
        except discord.HTTPException as e:
            logger.warning(
                "status_message_unavailable",
                server=server.address,
                message_id=message_id,
                error=str(e),
            )
            return None
