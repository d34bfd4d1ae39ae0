"""Discord slash commands.

Exports the command registry builder and register_commands(), which binds
the registry's /check and /ping handlers to a bot's command tree.
"""

from .command_handlers import CheckCommandHandler, CommandResult, PingCommandHandler
from .registry import build_command_registry, register_commands, send_command_response

__all__ = [
    "CheckCommandHandler",
    "CommandResult",
    "PingCommandHandler",
    "build_command_registry",
    "register_commands",
    "send_command_response",
]
