"""Slash command registry and registration.

The registry is an explicit name -> handler mapping built once at startup.
Registered app commands are thin closures that hand the interaction back to
the bot, which looks the handler up by name and owns error handling.
"""

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable
import discord
from discord import app_commands
import structlog

try:
    from bot.commands.command_handlers import (
        CheckCommandHandler,
        CommandResult,
        PingCommandHandler,
    )
    from embed_builder import EmbedBuilder
    from utils.rate_limiting import QUERY_COOLDOWN
except ImportError:
    from src.bot.commands.command_handlers import (  # type: ignore
        CheckCommandHandler,
        CommandResult,
        PingCommandHandler,
    )
    from src.embed_builder import EmbedBuilder  # type: ignore
    from src.utils.rate_limiting import QUERY_COOLDOWN  # type: ignore

logger = structlog.get_logger()


@runtime_checkable
class CommandBot(Protocol):
    """Protocol defining the bot attributes command registration relies on."""

    tree: app_commands.CommandTree
    registry: Dict[str, Any]

    async def dispatch_command(self, interaction: discord.Interaction, name: str, **options: Any) -> None:
        ...

    async def dispatch_autocomplete(
        self, interaction: discord.Interaction, name: str, current: str
    ) -> List[app_commands.Choice[str]]:
        ...


def build_command_registry(context: Any, rate_limiter: Optional[Any] = None) -> Dict[str, Any]:
    """
    Build the name -> handler mapping.

    Args:
        context: BotContext providing the query adapter and config
        rate_limiter: Per-user cooldown for /check (QUERY_COOLDOWN by default)

    Returns:
        Dict of command name to handler
    """
    handlers = [
        CheckCommandHandler(
            query_adapter=context.query_adapter,
            rate_limiter=rate_limiter or QUERY_COOLDOWN,
            embed_builder_type=EmbedBuilder,
            bot_name=context.config.bot_name,
        ),
        PingCommandHandler(),
    ]
    registry = {handler.name: handler for handler in handlers}
    logger.debug("command_registry_built", commands=sorted(registry))
    return registry


async def send_command_response(
    interaction: discord.Interaction,
    result: CommandResult,
) -> None:
    """Send a handler result as the interaction reply, or as a followup once deferred."""
    kwargs: Dict[str, Any] = {"ephemeral": result.ephemeral}
    if result.content is not None:
        kwargs["content"] = result.content
    if result.embed is not None:
        kwargs["embed"] = result.embed

    if "content" not in kwargs and "embed" not in kwargs:
        logger.warning("command_result_empty", success=result.success)
        kwargs["content"] = "An unexpected error occurred. Please try again later."

    if result.followup or interaction.response.is_done():
        await interaction.followup.send(**kwargs)
    else:
        await interaction.response.send_message(**kwargs)


def register_commands(bot: CommandBot) -> None:
    """
    Register the registry's commands on the bot's command tree.

    Args:
        bot: Bot exposing tree, registry and the dispatch coroutines
    """
    check = bot.registry["check"]
    ping = bot.registry["ping"]

    async def game_type_autocomplete(
        interaction: discord.Interaction,
        current: str,
    ) -> List[app_commands.Choice[str]]:
        return await bot.dispatch_autocomplete(interaction, check.name, current)

    @bot.tree.command(name=check.name, description=check.description)
    @app_commands.rename(game_type="type")
    @app_commands.describe(
        game_type="Game type (start typing to search, e.g. css, tf2, rust)",
        address="Server address as host or host:port",
    )
    @app_commands.autocomplete(game_type=game_type_autocomplete)
    async def check_command(
        interaction: discord.Interaction,
        game_type: str,
        address: str,
    ) -> None:
        await bot.dispatch_command(interaction, check.name, game_type=game_type, address=address)

    @bot.tree.command(name=ping.name, description=ping.description)
    async def ping_command(interaction: discord.Interaction) -> None:
        await bot.dispatch_command(interaction, ping.name)

    logger.info("commands_registered", commands=[check.name, ping.name])
