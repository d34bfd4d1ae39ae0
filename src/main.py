"""
GameStatus Bot - Main Entry Point

Keeps one status message per configured game server up to date in a Discord
channel, and answers /check and /ping slash commands.

- config.yaml (servers + status channel) is re-read on every update tick
- Process settings come from environment variables / Docker secrets
- Optional /health endpoint for container orchestration
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Any, Optional

import structlog

# Import helpers with support for package vs. flat layout
try:
    # Package-style imports (python -m src.main)
    from .config import Config, load_config, validate_config  # type: ignore
    from .health import HealthCheckServer  # type: ignore
    from .discord_bot import DiscordBot  # type: ignore
    from .bot.context import BotContext  # type: ignore
except ImportError:
    # Flat layout (tests and direct execution)
    from config import Config, load_config, validate_config  # type: ignore
    from health import HealthCheckServer  # type: ignore
    from discord_bot import DiscordBot  # type: ignore
    from bot.context import BotContext  # type: ignore

logger = structlog.get_logger()


def setup_logging(log_level: str, log_format: str, log_file: Optional[Path] = None) -> None:
    """
    Configure structured logging.

    structlog events and discord.py's stdlib logs share the same handlers:
    the console (colorized unless JSON) and, when log_file is set, a plain
    file.

    Args:
        log_level: Logging level (debug, info, warning, error, critical)
        log_format: Output format ("json" or "console")
        log_file: Log file path, or None for console only
    """
    level_map: dict[str, int] = {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
        "critical": logging.CRITICAL,
    }

    min_level = level_map.get(log_level.lower(), logging.INFO)

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if log_format == "json":
        console_renderer: Any = structlog.processors.JSONRenderer()
        file_renderer: Any = structlog.processors.JSONRenderer()
    else:
        console_renderer = structlog.dev.ConsoleRenderer(colors=True)
        file_renderer = structlog.dev.ConsoleRenderer(colors=False)

    def _formatter(renderer: Any) -> structlog.stdlib.ProcessorFormatter:
        return structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                renderer,
            ],
        )

    handlers: list[logging.Handler] = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(_formatter(console_renderer))
    handlers.append(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(_formatter(file_renderer))
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)
        existing.close()
    for handler in handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(min_level)

    logger.info(
        "logging_configured",
        level=log_level,
        format=log_format,
        log_file=str(log_file) if log_file else None,
    )


class Application:
    """Main application orchestrator."""

    def __init__(self) -> None:
        """Initialize application components."""
        self.config: Optional[Config] = None
        self.context: Optional[BotContext] = None
        self.health_server: Optional[HealthCheckServer] = None
        self.bot: Optional[DiscordBot] = None
        self.shutdown_event: asyncio.Event = asyncio.Event()

    async def setup(self) -> None:
        """Load configuration and initialize core components."""
        logger.info("application_starting")

        # Load and validate configuration
        try:
            self.config = load_config()
            assert self.config is not None, "Config loading returned None"
        except Exception as e:
            logger.error("config_load_failed", error=str(e))
            raise

        # Configure logging before validation so its messages use the real handlers
        setup_logging(self.config.log_level, self.config.log_format, self.config.log_file)

        if not validate_config(self.config):
            raise ValueError("Configuration validation failed")

        self.context = BotContext(self.config)
        self.bot = DiscordBot(self.context)

        if self.config.health_check_enabled:
            self.health_server = HealthCheckServer(
                host=self.config.health_check_host,
                port=self.config.health_check_port,
                status_provider=self.bot.scheduler.get_status,
            )

        logger.info(
            "application_configured",
            status_config=str(self.config.status_config_path),
            update_interval=self.config.update_interval,
            health_enabled=self.config.health_check_enabled,
            health_port=self.config.health_check_port,
        )

    async def start(self) -> None:
        """Start all application components."""
        logger.info("application_starting_components")
        assert self.config is not None, "Config not loaded"
        assert self.bot is not None, "Bot not initialized"

        if self.health_server is not None:
            await self.health_server.start()
            logger.info(
                "health_endpoint_available",
                url=f"http://{self.config.health_check_host}:"
                f"{self.config.health_check_port}/health",
            )

        # Scheduler starts from on_ready once the gateway is up
        await self.bot.connect_bot()

        logger.info("application_running")

    async def stop(self) -> None:
        """Gracefully stop all components."""
        logger.info("application_stopping")

        if self.bot is not None:
            try:
                await self.bot.disconnect_bot()
            except Exception as e:
                logger.error("discord_disconnect_failed", error=str(e))

            logger.debug("discord_disconnected")

        if self.health_server is not None:
            try:
                await self.health_server.stop()
            except Exception as e:
                logger.error("health_server_stop_failed", error=str(e))

            logger.debug("health_server_stopped")

        if self.context is not None:
            self.context.close()

        logger.info("application_stopped")

    async def run(self) -> None:
        """Main application run loop."""
        try:
            await self.setup()
            await self.start()
            await self.shutdown_event.wait()
        except KeyboardInterrupt:
            logger.info("received_keyboard_interrupt")
        except Exception as e:
            logger.error("application_error", error=str(e), exc_info=True)
            raise
        finally:
            await self.stop()


async def main() -> None:
    """Main async entry point."""
    app = Application()

    # Signal handlers for graceful shutdown
    def _signal_handler(signum: int, frame: Any) -> None:
        logger.info("received_signal", signal=signal.Signals(signum).name)
        app.shutdown_event.set()

    # Only register signals on real OS (not always available on Windows/threads)
    try:
        signal.signal(signal.SIGINT, _signal_handler)
        signal.signal(signal.SIGTERM, _signal_handler)
    except ValueError:
        logger.debug("signal_handlers_unavailable")

    try:
        await app.run()
    except Exception as e:
        logger.error("fatal_error", error=str(e), exc_info=True)
        sys.exit(1)


def run() -> None:
    """Console script entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nShutdown complete.")
        sys.exit(0)


if __name__ == "__main__":
    run()
