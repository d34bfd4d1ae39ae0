"""Discord bot components: shared context and the status scheduler."""

from .context import BotContext
from .status_scheduler import StatusChannelError, StatusScheduler, TickSummary

__all__ = [
    "BotContext",
    "StatusChannelError",
    "StatusScheduler",
    "TickSummary",
]
