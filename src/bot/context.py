"""Shared runtime state for the bot.

BotContext is built once at startup and handed to the scheduler and the
command handlers. It owns the status message store and the query adapter;
nothing in it is persisted, and it is discarded at shutdown.
"""

from typing import Any, Optional
import structlog

try:
    from config import Config
    from query import ServerQueryAdapter
    from status_store import StatusMessageStore
except ImportError:
    from src.config import Config  # type: ignore
    from src.query import ServerQueryAdapter  # type: ignore
    from src.status_store import StatusMessageStore  # type: ignore

logger = structlog.get_logger()


class BotContext:
    """Process-wide state passed explicitly to scheduler and commands."""

    def __init__(
        self,
        config: Config,
        *,
        store: Optional[StatusMessageStore] = None,
        query_adapter: Optional[Any] = None,
    ) -> None:
        """
        Initialize bot context.

        Args:
            config: Process configuration
            store: Status message store (a fresh empty one by default)
            query_adapter: Object with ``async query(game_type, address)``
                (a ServerQueryAdapter built from config by default)
        """
        self.config = config
        self.store = store if store is not None else StatusMessageStore()
        self.query_adapter = query_adapter if query_adapter is not None else ServerQueryAdapter(
            retries=config.query_retries,
            timeout=config.query_timeout,
        )

        logger.debug(
            "bot_context_initialized",
            status_config=str(config.status_config_path),
            query_retries=config.query_retries,
            query_timeout=config.query_timeout,
        )

    def close(self) -> None:
        """Drop all in-memory message associations."""
        tracked = len(self.store)
        self.store.clear()
        logger.info("bot_context_closed", tracked_messages_dropped=tracked)
