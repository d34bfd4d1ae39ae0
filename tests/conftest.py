"""Shared pytest configuration and fakes for GameStatus Bot tests.

This module provides:
- src/ on sys.path so tests import modules flat (``from query import ...``)
- A Config fixture pointing at a temporary config.yaml
- FakeStatusChannel: an in-memory text channel that behaves like Discord for
  send / fetch_message / edit / delete / history
- ScriptedQueryAdapter: returns queued QueryResults per address
- A mock discord.Interaction for slash command tests
"""

from unittest.mock import MagicMock, AsyncMock
from typing import Any, Callable, Dict, List, Optional
from pathlib import Path
import sys
import pytest
import discord
import yaml

# Add src/ to Python path for absolute imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from config import Config  # noqa: E402
from query import PlayerInfo, QueryFailure, QueryResult, QuerySuccess, ServerStatus  # noqa: E402
from bot.context import BotContext  # noqa: E402


CHANNEL_ID = 987654321


def http_error(status: int = 500, text: str = "Error") -> discord.HTTPException:
    """Build a discord HTTP error the way the client raises them."""
    response = MagicMock(status=status, reason=text)
    if status == 404:
        return discord.errors.NotFound(response, text)
    if status == 403:
        return discord.errors.Forbidden(response, text)
    return discord.errors.HTTPException(response, text)


def make_status(name: str = "Test Server", players: Optional[List[str]] = None, **kwargs: Any) -> ServerStatus:
    names = players if players is not None else ["alice", "bob"]
    defaults: Dict[str, Any] = {
        "map": "de_dust2",
        "max_players": 24,
        "connect": "203.0.113.10:27015",
    }
    defaults.update(kwargs)
    return ServerStatus(name=name, players=[PlayerInfo(name=n) for n in names], **defaults)


class FakeClock:
    """Monotonic clock advanced by the fake sleep."""

    def __init__(self) -> None:
        self.now = 100.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


# ════════════════════════════════════════════════════════════════════════════
# FAKE DISCORD CHANNEL
# ════════════════════════════════════════════════════════════════════════════


class FakeStatusChannel:
    """In-memory status channel.

    ``channel`` is an ``AsyncMock(spec=discord.TextChannel)`` whose send,
    fetch_message and history act on ``self.messages`` (id -> message mock).
    Deleted messages raise NotFound on fetch, like Discord.
    """

    def __init__(self, channel_id: int = CHANNEL_ID, existing: int = 0) -> None:
        self.messages: Dict[int, MagicMock] = {}
        self.sent: List[MagicMock] = []
        self._next_id = 1000

        self.channel = AsyncMock(spec=discord.TextChannel)
        self.channel.id = channel_id
        self.channel.send = AsyncMock(side_effect=self._send)
        self.channel.fetch_message = AsyncMock(side_effect=self._fetch)
        self.channel.history = MagicMock(side_effect=self._history)

        for _ in range(existing):
            self._add_message(embed=None)

    def _add_message(self, embed: Optional[discord.Embed]) -> MagicMock:
        self._next_id += 1
        message_id = self._next_id

        message = MagicMock(spec=discord.Message)
        message.id = message_id
        message.embed = embed
        message.edits = []

        async def edit(**kwargs: Any) -> MagicMock:
            if message_id not in self.messages:
                raise http_error(404, "Unknown Message")
            message.edits.append(kwargs)
            if "embed" in kwargs:
                message.embed = kwargs["embed"]
            return message

        async def delete() -> None:
            if self.messages.pop(message_id, None) is None:
                raise http_error(404, "Unknown Message")

        message.edit = AsyncMock(side_effect=edit)
        message.delete = AsyncMock(side_effect=delete)
        self.messages[message_id] = message
        return message

    async def _send(self, content: Optional[str] = None, *, embed: Optional[discord.Embed] = None, **kwargs: Any) -> MagicMock:
        message = self._add_message(embed)
        self.sent.append(message)
        return message

    async def _fetch(self, message_id: int) -> MagicMock:
        message = self.messages.get(message_id)
        if message is None:
            raise http_error(404, "Unknown Message")
        return message

    def _history(self, limit: Optional[int] = 100, **kwargs: Any) -> Any:
        snapshot = sorted(self.messages.values(), key=lambda m: m.id, reverse=True)[:limit]

        async def iterate() -> Any:
            for message in snapshot:
                yield message

        return iterate()

    def delete_externally(self, message_id: int) -> None:
        """Simulate a moderator deleting a message."""
        self.messages.pop(message_id, None)


@pytest.fixture
def fake_channel() -> FakeStatusChannel:
    return FakeStatusChannel()


# ════════════════════════════════════════════════════════════════════════════
# FAKE QUERY ADAPTER
# ════════════════════════════════════════════════════════════════════════════


class ScriptedQueryAdapter:
    """Query adapter returning scripted results per address.

    ``script(address, *results)`` queues results; the last one repeats once
    the queue is exhausted. Unscripted addresses succeed with make_status().
    """

    def __init__(self) -> None:
        self.calls: List[tuple] = []
        self._scripts: Dict[str, List[QueryResult]] = {}
        self.hook: Optional[Callable[[str, str], Any]] = None

    def script(self, address: str, *results: QueryResult) -> None:
        self._scripts[address] = list(results)

    async def query(self, game_type: str, address: str) -> QueryResult:
        self.calls.append((game_type, address))
        if self.hook is not None:
            await self.hook(game_type, address)
        queue = self._scripts.get(address)
        if not queue:
            return QuerySuccess(data=make_status())
        if len(queue) > 1:
            return queue.pop(0)
        return queue[0]


@pytest.fixture
def query_adapter() -> ScriptedQueryAdapter:
    return ScriptedQueryAdapter()


# ════════════════════════════════════════════════════════════════════════════
# CONFIG / CONTEXT
# ════════════════════════════════════════════════════════════════════════════


def write_status_config(path: Path, servers: List[Dict[str, str]], channel_id: Any = CHANNEL_ID) -> Path:
    path.write_text(
        yaml.safe_dump({
            "discord": {"serverStatusChannelId": str(channel_id)},
            "servers": servers,
        })
    )
    return path


@pytest.fixture
def status_config_path(tmp_path: Path) -> Path:
    return write_status_config(
        tmp_path / "config.yaml",
        [
            {"type": "css", "address": "203.0.113.10:27015"},
            {"type": "tf2", "address": "203.0.113.11"},
        ],
    )


@pytest.fixture
def config(status_config_path: Path) -> Config:
    return Config(
        discord_token="test-token",
        application_id=111,
        guild_id=222,
        bot_name="Test Bot",
        status_config_path=status_config_path,
        purge_delay=0.0,
        server_delay=0.0,
        log_file=None,
    )


@pytest.fixture
def bot_context(config: Config, query_adapter: ScriptedQueryAdapter) -> BotContext:
    return BotContext(config, query_adapter=query_adapter)


@pytest.fixture
def mock_client(fake_channel: FakeStatusChannel) -> MagicMock:
    """discord.Client stand-in resolving CHANNEL_ID to the fake channel from cache."""
    client = MagicMock()
    client.get_channel = MagicMock(
        side_effect=lambda cid: fake_channel.channel if cid == fake_channel.channel.id else None
    )
    client.fetch_channel = AsyncMock(side_effect=http_error(404, "Unknown Channel"))
    return client


# ════════════════════════════════════════════════════════════════════════════
# INTERACTIONS
# ════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def mock_interaction() -> MagicMock:
    """Create a mock Discord interaction.

    Type Contract:
        - user.id: int = 123456789, user.name: str = "testuser"
        - response.send_message / response.defer: AsyncMock
        - response.is_done(): False until defer or send_message is awaited
        - followup.send: AsyncMock
    """
    interaction: MagicMock = MagicMock(spec=discord.Interaction)

    interaction.user = MagicMock()
    interaction.user.id = 123456789
    interaction.user.name = "testuser"

    state = {"done": False}

    async def _respond(*args: Any, **kwargs: Any) -> None:
        state["done"] = True

    interaction.response = MagicMock()
    interaction.response.is_done = MagicMock(side_effect=lambda: state["done"])
    interaction.response.send_message = AsyncMock(side_effect=_respond)
    interaction.response.defer = AsyncMock(side_effect=_respond)

    interaction.followup = MagicMock()
    interaction.followup.send = AsyncMock()

    interaction.command = None
    return interaction
