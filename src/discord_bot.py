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

"""Discord bot client.

Delegates concerns to specialized modules:
- bot.context: Shared runtime state (config, message store, query adapter)
- bot.status_scheduler: Periodic status message reconciliation
- bot.commands: /check and /ping handlers and their registration
"""

import asyncio
from typing import Any, Dict, List, Optional

import discord
from discord import app_commands
import structlog

try:
    from bot.context import BotContext
    from bot.status_scheduler import StatusScheduler
    from bot.commands import build_command_registry, register_commands, send_command_response
except ImportError:
    try:
        from src.bot.context import BotContext  # type: ignore
        from src.bot.status_scheduler import StatusScheduler  # type: ignore
        from src.bot.commands import build_command_registry, register_commands, send_command_response  # type: ignore
    except ImportError:
        raise ImportError("Could not import bot modules from bot/ or src/bot/")

logger = structlog.get_logger()

COMMAND_ERROR_MESSAGE = "There was an error while executing this command!"
CONNECT_TIMEOUT = 30.0


class DiscordBot(discord.Client):
    """Discord bot client hosting the slash commands and the status scheduler."""

    def __init__(
        self,
        context: BotContext,
        *,
        registry: Optional[Dict[str, Any]] = None,
        scheduler: Optional[StatusScheduler] = None,
        intents: Optional[discord.Intents] = None,
    ):
        """
        Initialize Discord bot.

        Args:
            context: Shared runtime state
            registry: Command name -> handler (built from context if None)
            scheduler: Status scheduler (built from context if None)
            intents: Discord intents (guilds only if None)
        """
        if intents is None:
            intents = discord.Intents.none()
            intents.guilds = True

        super().__init__(intents=intents, application_id=context.config.application_id)

        self.context = context
        self.token = context.config.discord_token
        self.bot_name = context.config.bot_name
        self.guild_id = context.config.guild_id

        self.tree = app_commands.CommandTree(self)
        self.tree.error(self.on_app_command_error)
        self.registry = registry if registry is not None else build_command_registry(context)
        self.scheduler = scheduler if scheduler is not None else StatusScheduler(self, context)

        self._ready_event = asyncio.Event()
        self._connected = False
        self._connection_task: Optional[asyncio.Task] = None

        logger.info(
            "discord_bot_initialized",
            bot_name=self.bot_name,
            guild_id=self.guild_id,
            commands=sorted(self.registry),
        )

    # ========================================================================
    # Bot Lifecycle
    # ========================================================================

    async def setup_hook(self) -> None:
        """Called when the bot is starting up. Set up commands here."""
        register_commands(self)
        logger.info("discord_bot_setup_complete")

    async def sync_commands(self) -> List[app_commands.AppCommand]:
        """
        Publish the registered commands.

        Syncing replaces the full command set, so commands removed from the
        registry disappear from Discord. With a guild id the commands are
        published to that guild only, otherwise globally.
        """
        if self.guild_id:
            guild = discord.Object(id=self.guild_id)
            self.tree.copy_global_to(guild=guild)
            synced = await self.tree.sync(guild=guild)
            logger.info(
                "commands_synced_to_guild",
                guild_id=self.guild_id,
                count=len(synced),
                commands=[cmd.name for cmd in synced],
            )
        else:
            synced = await self.tree.sync()
            logger.info(
                "commands_synced_globally",
                count=len(synced),
                commands=[cmd.name for cmd in synced],
            )
        return synced

    # ========================================================================
    # Discord Event Handlers
    # ========================================================================

    async def on_ready(self) -> None:
        """Called when bot is ready (fires on initial connect AND reconnects)."""
        if self.user is None:
            logger.error("discord_bot_ready_but_no_user")
            return

        logger.info(
            "discord_bot_ready",
            bot_name=self.user.name,
            bot_id=self.user.id,
            guilds=len(self.guilds),
        )

        self._connected = True
        self._ready_event.set()

        try:
            await self.sync_commands()
        except Exception as e:
            logger.error("command_sync_failed", error=str(e), exc_info=True)

        # No-op when already running (reconnects)
        await self.scheduler.start()

    async def on_disconnect(self) -> None:
        """Called when the gateway connection drops; discord.py reconnects on its own."""
        self._connected = False
        logger.warning("discord_bot_gateway_disconnected")

    async def on_error(self, event: str, *args, **kwargs) -> None:
        """Called when an error occurs."""
        logger.error("discord_bot_error", event=event, exc_info=True)

    async def on_app_command_error(
        self,
        interaction: discord.Interaction,
        error: app_commands.AppCommandError,
    ) -> None:
        """Errors raised by the command tree itself (checks, transformers)."""
        command = interaction.command.name if interaction.command else None
        logger.error("app_command_error", command=command, error=str(error), exc_info=error)
        await self._send_command_error(interaction)

    # ========================================================================
    # Interaction Dispatch
    # ========================================================================

    async def dispatch_command(
        self,
        interaction: discord.Interaction,
        name: str,
        **options: Any,
    ) -> None:
        """Route a slash command to its handler and send the result."""
        handler = self.registry.get(name)
        if handler is None:
            logger.error("command_handler_not_found", command=name)
            await self._send_command_error(interaction)
            return

        try:
            result = await handler.execute(interaction, **options)
            await send_command_response(interaction, result)
        except Exception as e:
            logger.error(
                "command_execution_failed",
                command=name,
                user=interaction.user.name,
                error=str(e),
                exc_info=True,
            )
            await self._send_command_error(interaction)

    async def dispatch_autocomplete(
        self,
        interaction: discord.Interaction,
        name: str,
        current: str,
    ) -> List[app_commands.Choice[str]]:
        """Route an autocomplete request; failures answer with no choices."""
        handler = self.registry.get(name)
        autocomplete = getattr(handler, "autocomplete", None) if handler else None
        if autocomplete is None:
            logger.warning("autocomplete_handler_not_found", command=name)
            return []

        try:
            return await autocomplete(interaction, current)
        except Exception as e:
            logger.error("autocomplete_failed", command=name, error=str(e), exc_info=True)
            return []

    async def _send_command_error(self, interaction: discord.Interaction) -> None:
        try:
            if interaction.response.is_done():
                await interaction.followup.send(COMMAND_ERROR_MESSAGE, ephemeral=True)
            else:
                await interaction.response.send_message(COMMAND_ERROR_MESSAGE, ephemeral=True)
        except discord.HTTPException as e:
            logger.error("command_error_reply_failed", error=str(e))

    # ========================================================================
    # Connection Management
    # ========================================================================

    async def connect_bot(self) -> None:
        """Log in, open the gateway connection and wait until ready."""
        try:
            logger.info("connecting_to_discord")
            await self.login(self.token)
            self._connection_task = asyncio.create_task(self.connect())

            try:
                await asyncio.wait_for(self._ready_event.wait(), timeout=CONNECT_TIMEOUT)
                logger.info("discord_bot_connected")
                self._connected = True
            except asyncio.TimeoutError:
                logger.error("discord_bot_connection_timeout")
                if self._connection_task is not None:
                    self._connection_task.cancel()
                    try:
                        await self._connection_task
                    except asyncio.CancelledError:
                        pass
                raise ConnectionError(
                    f"Discord bot connection timed out after {CONNECT_TIMEOUT:.0f} seconds"
                )
        except discord.errors.LoginFailure as e:
            logger.error("discord_login_failed", error=str(e))
            raise ConnectionError(f"Discord login failed: {e}")
        except Exception as e:
            logger.error("discord_bot_connection_failed", error=str(e), exc_info=True)
            raise

    async def disconnect_bot(self) -> None:
        """Stop the scheduler and disconnect from Discord."""
        await self.scheduler.stop()

        if self._connected or self._connection_task is not None:
            logger.info("disconnecting_from_discord")
            self._connected = False

            if self._connection_task is not None:
                if not self._connection_task.done():
                    self._connection_task.cancel()
                    try:
                        await self._connection_task
                    except asyncio.CancelledError:
                        pass
                self._connection_task = None

            if not self.is_closed():
                await self.close()
            logger.info("discord_bot_disconnected")

    @property
    def is_connected(self) -> bool:
        """Check if bot is connected to Discord."""
        return self._connected
