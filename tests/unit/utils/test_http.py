"""Unit tests for utils.http module.

Tests:
- read_bounded() helper
  - Single-read and chunked responses
  - Size enforcement across chunks
- fetch_json() async function
  - Valid JSON parsing within the size limit
  - Query parameters and disabled redirects
  - HTTP error propagation
  - Invalid JSON handling
"""

from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from nostrfeed.utils.http import fetch_json, read_bounded


def _mock_response(*chunks: bytes) -> MagicMock:
    """Build a mock aiohttp.ClientResponse that yields chunks then EOF."""
    resp = MagicMock()
    content = MagicMock()
    content.read = AsyncMock(side_effect=[*chunks, b""])
    resp.content = content
    return resp


def _mock_session(*chunks: bytes, status: int = 200) -> tuple[MagicMock, MagicMock]:
    """Build a mock aiohttp.ClientSession context and the inner session."""
    response = _mock_response(*chunks)
    response.raise_for_status = MagicMock()
    if status >= 400:
        response.raise_for_status.side_effect = aiohttp.ClientResponseError(
            request_info=MagicMock(), history=(), status=status
        )

    context_response = AsyncMock()
    context_response.__aenter__ = AsyncMock(return_value=response)
    context_response.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.get = MagicMock(return_value=context_response)

    context_session = AsyncMock()
    context_session.__aenter__ = AsyncMock(return_value=session)
    context_session.__aexit__ = AsyncMock(return_value=False)

    return context_session, session


# =============================================================================
# read_bounded() Tests
# =============================================================================


class TestReadBounded:
    """Tests for read_bounded()."""

    @pytest.mark.asyncio
    async def test_returns_full_body(self) -> None:
        assert await read_bounded(_mock_response(b"hello world"), max_size=1024) == b"hello world"

    @pytest.mark.asyncio
    async def test_accepts_body_at_exact_limit(self) -> None:
        body = b"x" * 100
        assert await read_bounded(_mock_response(body), max_size=100) == body

    @pytest.mark.asyncio
    async def test_rejects_one_byte_over_limit(self) -> None:
        with pytest.raises(ValueError, match="Response body too large"):
            await read_bounded(_mock_response(b"x" * 101), max_size=100)

    @pytest.mark.asyncio
    async def test_chunks_joined(self) -> None:
        resp = _mock_response(b"ab", b"cd", b"ef")
        assert await read_bounded(resp, max_size=10) == b"abcdef"

    @pytest.mark.asyncio
    async def test_limit_enforced_across_chunks(self) -> None:
        resp = _mock_response(b"x" * 60, b"x" * 60)
        with pytest.raises(ValueError, match="too large"):
            await read_bounded(resp, max_size=100)

    @pytest.mark.asyncio
    async def test_read_size_shrinks(self) -> None:
        resp = _mock_response(b"x" * 40)
        await read_bounded(resp, max_size=100)
        sizes = [c.args[0] for c in resp.content.read.call_args_list]
        assert sizes == [101, 61]


# =============================================================================
# fetch_json() Tests
# =============================================================================


class TestFetchJson:
    """Tests for fetch_json()."""

    @pytest.mark.asyncio
    async def test_parses_json(self) -> None:
        context, _ = _mock_session(b'{"names": {"bob": "ab"}}')
        with patch("nostrfeed.utils.http.aiohttp.ClientSession", return_value=context):
            assert await fetch_json("https://example.com/x") == {"names": {"bob": "ab"}}

    @pytest.mark.asyncio
    async def test_params_and_no_redirects(self) -> None:
        context, session = _mock_session(b"{}")
        with patch("nostrfeed.utils.http.aiohttp.ClientSession", return_value=context):
            await fetch_json("https://example.com/x", params={"name": "bob"})
        session.get.assert_called_once_with(
            "https://example.com/x", params={"name": "bob"}, allow_redirects=False
        )

    @pytest.mark.asyncio
    async def test_http_error(self) -> None:
        context, _ = _mock_session(b"", status=404)
        with patch("nostrfeed.utils.http.aiohttp.ClientSession", return_value=context):
            with pytest.raises(aiohttp.ClientResponseError):
                await fetch_json("https://example.com/x")

    @pytest.mark.asyncio
    async def test_invalid_json(self) -> None:
        context, _ = _mock_session(b"<html>")
        with patch("nostrfeed.utils.http.aiohttp.ClientSession", return_value=context):
            with pytest.raises(ValueError, match="Invalid JSON"):
                await fetch_json("https://example.com/x")

    @pytest.mark.asyncio
    async def test_oversized(self) -> None:
        context, _ = _mock_session(b"[" + b"1," * 100 + b"1]")
        with patch("nostrfeed.utils.http.aiohttp.ClientSession", return_value=context):
            with pytest.raises(ValueError, match="too large"):
                await fetch_json("https://example.com/x", max_size=50)
