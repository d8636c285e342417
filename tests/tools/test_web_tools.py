"""Tests for the engine-side web tools."""

from unittest.mock import patch

import httpx
import pytest
import respx
from httpx import Response

from conduit.tools.web import MAX_CONTENT_CHARS, create_web_tools, fetch_url, html_to_text, web_search


class TestWebSearch:
    @pytest.mark.asyncio
    async def test_successful_search(self):
        """Results are mapped to title/url/snippet."""
        mock_results = [
            {"title": "Python Docs", "href": "https://python.org", "body": "Python programming"},
            {"title": "Learn Python", "href": "https://learn.python.org", "body": "Free tutorials"},
        ]

        with patch("conduit.tools.web.DDGS") as mock_ddgs:
            instance = mock_ddgs.return_value.__enter__.return_value
            instance.text.return_value = mock_results

            result = await web_search("python tutorials", time_range="week", language="fr")

        assert result["query"] == "python tutorials"
        assert result["resultCount"] == 2
        assert result["results"][0] == {
            "title": "Python Docs",
            "url": "https://python.org",
            "snippet": "Python programming",
        }
        _, kwargs = instance.text.call_args
        assert kwargs["timelimit"] == "w"
        assert kwargs["region"] == "fr-fr"
        assert kwargs["max_results"] == 5

    @pytest.mark.asyncio
    async def test_max_results_is_clamped(self):
        with patch("conduit.tools.web.DDGS") as mock_ddgs:
            instance = mock_ddgs.return_value.__enter__.return_value
            instance.text.return_value = []

            result = await web_search("anything", max_results=50)

        assert result["resultCount"] == 0
        assert instance.text.call_args.kwargs["max_results"] == 10

    @pytest.mark.asyncio
    async def test_search_error_is_raised(self):
        with patch("conduit.tools.web.DDGS") as mock_ddgs:
            instance = mock_ddgs.return_value.__enter__.return_value
            instance.text.side_effect = Exception("Rate limited")

            with pytest.raises(RuntimeError, match="Web search failed: Rate limited"):
                await web_search("test query")


class TestFetchUrl:
    @pytest.mark.asyncio
    @respx.mock
    async def test_fetch_extracts_text(self):
        respx.get("https://example.com/page").mock(
            return_value=Response(
                200,
                text="<html><head><style>p{}</style></head>"
                "<body><script>x()</script><p>Hello &amp; welcome</p></body></html>",
            )
        )

        result = await fetch_url("https://example.com/page")

        assert result == {
            "url": "https://example.com/page",
            "contentLength": len("Hello & welcome"),
            "content": "Hello & welcome",
        }

    @pytest.mark.asyncio
    @respx.mock
    async def test_fetch_truncates_long_pages(self):
        respx.get("https://example.com/long").mock(
            return_value=Response(200, text="a" * (MAX_CONTENT_CHARS + 100))
        )

        result = await fetch_url("https://example.com/long")

        assert result["content"].endswith("...")
        assert len(result["content"]) == MAX_CONTENT_CHARS + 3

    @pytest.mark.asyncio
    @respx.mock
    async def test_fetch_http_error(self):
        respx.get("https://example.com/missing").mock(return_value=Response(404))

        with pytest.raises(RuntimeError, match="HTTP 404"):
            await fetch_url("https://example.com/missing")

    @pytest.mark.asyncio
    @respx.mock
    async def test_fetch_connection_error(self):
        respx.get("https://down.example.com/").mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(RuntimeError, match="URL fetch failed"):
            await fetch_url("https://down.example.com/")


def test_html_to_text_collapses_whitespace():
    assert html_to_text("<div>\n  one <b>two</b>\n</div>") == "one two"


def test_create_web_tools():
    tools = create_web_tools()
    assert [t.id for t in tools] == ["web_search", "fetch_url"]
    assert all(t.fn is not None for t in tools)


def test_html_to_text_drops_comments_and_noscript():
    markup = "<p>keep</p><!-- a > b --><noscript>enable js</noscript><p>x</p>"

    assert html_to_text(markup) == "keep x"
