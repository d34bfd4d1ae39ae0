"""Tests for address parsing and the A2S query adapter."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from query import (
    InvalidAddressError,
    PlayerInfo,
    QueryFailure,
    QuerySuccess,
    ServerQueryAdapter,
    ServerStatus,
    parse_address,
)


def a2s_info(**overrides):
    info = {
        "server_name": "Dust Only",
        "map_name": "de_dust2",
        "max_players": 32,
        "ping": 0.042,
        "password_protected": False,
        "version": "1.0.0.70",
    }
    info.update(overrides)
    return SimpleNamespace(**info)


def a2s_player(name):
    return SimpleNamespace(name=name, score=0, duration=12.5)


@pytest.fixture
def adapter():
    return ServerQueryAdapter(retries=3, timeout=0.1)


# ============================================================================
# parse_address
# ============================================================================

class TestParseAddress:
    """host[:port] parsing."""

    @pytest.mark.parametrize("address,expected", [
        ("1.2.3.4:27015", ("1.2.3.4", 27015)),
        ("play.example.com:28015", ("play.example.com", 28015)),
        (" 10.0.0.5 : 2457 ", ("10.0.0.5", 2457)),
    ])
    def test_host_and_port(self, address, expected):
        assert parse_address(address) == expected

    def test_host_without_port(self):
        assert parse_address("1.2.3.4") == ("1.2.3.4", None)

    def test_trailing_colon_means_no_port(self):
        assert parse_address("1.2.3.4:") == ("1.2.3.4", None)

    @pytest.mark.parametrize("address", ["", ":27015", "   "])
    def test_empty_host_rejected(self, address):
        with pytest.raises(InvalidAddressError, match="Invalid address format"):
            parse_address(address)

    @pytest.mark.parametrize("address", ["1.2.3.4:abc", "1.2.3.4:0", "1.2.3.4:70000"])
    def test_bad_port_rejected(self, address):
        with pytest.raises(InvalidAddressError):
            parse_address(address)

    def test_invalid_address_is_value_error(self):
        assert issubclass(InvalidAddressError, ValueError)


# ============================================================================
# ServerQueryAdapter
# ============================================================================

class TestServerQueryAdapter:
    """Adapter results and error containment."""

    @pytest.mark.asyncio
    async def test_successful_query(self, adapter):
        with patch("query.a2s.ainfo", new=AsyncMock(return_value=a2s_info())) as ainfo, \
                patch("query.a2s.aplayers", new=AsyncMock(return_value=[a2s_player("alice"), a2s_player(" bob ")])):
            result = await adapter.query("css", "1.2.3.4:27016")

        assert isinstance(result, QuerySuccess)
        assert result.success is True
        status = result.data
        assert status.name == "Dust Only"
        assert status.map == "de_dust2"
        assert status.max_players == 32
        assert [p.name for p in status.players] == ["alice", "bob"]
        assert status.connect == "1.2.3.4:27016"
        assert status.ping_ms == 42
        assert status.game_type == "css"
        ainfo.assert_awaited_once_with(("1.2.3.4", 27016), timeout=0.1)

    @pytest.mark.asyncio
    async def test_default_port_from_catalog(self, adapter):
        with patch("query.a2s.ainfo", new=AsyncMock(return_value=a2s_info())) as ainfo, \
                patch("query.a2s.aplayers", new=AsyncMock(return_value=[])):
            result = await adapter.query("rust", "198.51.100.7")

        assert result.success
        ainfo.assert_awaited_once_with(("198.51.100.7", 28015), timeout=0.1)
        assert result.data.connect == "198.51.100.7:28015"

    @pytest.mark.asyncio
    async def test_connect_uses_reported_game_port(self, adapter):
        with patch("query.a2s.ainfo", new=AsyncMock(return_value=a2s_info(port=2456))) as ainfo, \
                patch("query.a2s.aplayers", new=AsyncMock(return_value=[])):
            result = await adapter.query("valheim", "198.51.100.9")

        ainfo.assert_awaited_once_with(("198.51.100.9", 2457), timeout=0.1)
        assert result.data.connect == "198.51.100.9:2456"

    @pytest.mark.asyncio
    async def test_connect_falls_back_to_query_port(self, adapter):
        with patch("query.a2s.ainfo", new=AsyncMock(return_value=a2s_info(port=None))), \
                patch("query.a2s.aplayers", new=AsyncMock(return_value=[])):
            result = await adapter.query("valheim", "198.51.100.9")

        assert result.data.connect == "198.51.100.9:2457"

    @pytest.mark.asyncio
    async def test_game_type_is_case_insensitive(self, adapter):
        with patch("query.a2s.ainfo", new=AsyncMock(return_value=a2s_info())), \
                patch("query.a2s.aplayers", new=AsyncMock(return_value=[])):
            result = await adapter.query("TF2", "1.2.3.4")

        assert result.success

    @pytest.mark.asyncio
    async def test_unknown_game_type(self, adapter):
        with patch("query.a2s.ainfo", new=AsyncMock()) as ainfo:
            result = await adapter.query("notagame", "1.2.3.4")

        assert isinstance(result, QueryFailure)
        assert result.error == "Unknown game type 'notagame'"
        ainfo.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_address_becomes_failure(self, adapter):
        result = await adapter.query("css", ":27015")

        assert result.success is False
        assert result.error == "Invalid address format"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("exc", [
        asyncio.TimeoutError(),
        ConnectionRefusedError("Connection refused"),
        OSError("Name or service not known"),
        RuntimeError("Malformed packet"),
    ])
    async def test_exceptions_never_escape(self, adapter, exc):
        with patch("query.a2s.ainfo", new=AsyncMock(side_effect=exc)):
            result = await adapter.query("css", "1.2.3.4")

        assert isinstance(result, QueryFailure)
        assert result.error

    @pytest.mark.asyncio
    async def test_empty_message_uses_exception_name(self, adapter):
        with patch("query.a2s.ainfo", new=AsyncMock(side_effect=asyncio.TimeoutError())):
            result = await adapter.query("css", "1.2.3.4")

        assert result.error == "TimeoutError"

    @pytest.mark.asyncio
    async def test_message_passed_through(self, adapter):
        with patch("query.a2s.ainfo", new=AsyncMock(side_effect=ConnectionRefusedError("Connection refused"))):
            result = await adapter.query("css", "1.2.3.4")

        assert result.error == "Connection refused"

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self, adapter):
        ainfo = AsyncMock(side_effect=[asyncio.TimeoutError(), asyncio.TimeoutError(), a2s_info()])
        with patch("query.a2s.ainfo", new=ainfo), \
                patch("query.a2s.aplayers", new=AsyncMock(return_value=[])):
            result = await adapter.query("css", "1.2.3.4")

        assert result.success
        assert ainfo.await_count == 3

    @pytest.mark.asyncio
    async def test_attempts_are_bounded(self):
        adapter = ServerQueryAdapter(retries=2, timeout=0.1)
        ainfo = AsyncMock(side_effect=asyncio.TimeoutError())
        with patch("query.a2s.ainfo", new=ainfo):
            result = await adapter.query("css", "1.2.3.4")

        assert not result.success
        assert ainfo.await_count == 2

    def test_retries_floor_is_one(self):
        assert ServerQueryAdapter(retries=0).retries == 1


class TestServerStatus:
    """Status value helpers."""

    def test_player_count(self):
        status = ServerStatus(name="x", players=[PlayerInfo("a"), PlayerInfo("b")])
        assert status.player_count == 2

    def test_result_flags(self):
        assert QuerySuccess(data=None).success is True
        assert QueryFailure(error="boom").success is False
