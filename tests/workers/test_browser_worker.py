"""Tests for the browser worker, against a mocked HTTP transport."""

import httpx
import pytest

from agentpilot.core.types import ActionRequest
from agentpilot.workers.browser import SEARCH_URL, BrowserWorker, html_to_text

PAGE = """
<html><head><title>Example Domain</title><style>p {color: red}</style></head>
<body><nav>Menu</nav><h1>Example</h1><p>This domain is for examples.</p>
<script>alert(1)</script></body></html>
"""

SEARCH_PAGE = """
<div class="result">
  <a class="result__a" href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fpython.org%2F&rut=abc">Python</a>
  <a class="result__snippet">The official home of Python.</a>
</div>
<div class="result">
  <a class="result__a" href="https://docs.python.org/">Docs</a>
</div>
"""


def _req(operation, **params):
    return ActionRequest(
        type="browser",
        operation=operation,
        params=params,
        session_id="s1",
        channel_type="cli",
        channel_id="direct",
        user_id="me",
    )


def _worker_with(handler, **kwargs) -> BrowserWorker:
    worker = BrowserWorker(**kwargs)
    worker._client = lambda: httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)
    return worker


def test_html_to_text_drops_scripts_and_navigation():
    text, title = html_to_text(PAGE)

    assert title == "Example Domain"
    assert "This domain is for examples." in text
    assert "alert" not in text
    assert "Menu" not in text


@pytest.mark.asyncio
async def test_browse_web_extracts_readable_text():
    def handler(request):
        return httpx.Response(200, text=PAGE, headers={"content-type": "text/html; charset=utf-8"})

    result = await _worker_with(handler).execute(_req("browse_web", url="https://example.com"))

    assert result.success is True
    assert result.data["title"] == "Example Domain"
    assert result.data["status"] == 200
    assert "This domain is for examples." in result.data["content"]


@pytest.mark.asyncio
async def test_browse_web_truncates_long_pages():
    def handler(request):
        return httpx.Response(200, text="x" * 100, headers={"content-type": "text/plain"})

    result = await _worker_with(handler, max_chars=10).execute(_req("browse_web", url="https://example.com"))

    assert result.data["truncated"] is True
    assert result.data["content"] == "x" * 10 + "\n\n[truncated]"


@pytest.mark.asyncio
async def test_browse_web_reports_http_errors():
    def handler(request):
        return httpx.Response(404, text="missing", headers={"content-type": "text/plain"})

    result = await _worker_with(handler).execute(_req("browse_web", url="https://example.com/x"))

    assert result.success is False
    assert result.error == "HTTP 404"


@pytest.mark.asyncio
async def test_browse_web_rejects_other_schemes():
    result = await BrowserWorker().execute(_req("browse_web", url="file:///etc/passwd"))
    assert result.error == "Only HTTP/HTTPS URLs are supported"


@pytest.mark.asyncio
async def test_connection_errors_become_failures():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    result = await _worker_with(handler).execute(_req("browse_web", url="https://example.com"))

    assert result.success is False
    assert result.error.startswith("ConnectError")


@pytest.mark.asyncio
async def test_web_search_parses_results():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = request.content.decode()
        return httpx.Response(200, text=SEARCH_PAGE, headers={"content-type": "text/html"})

    result = await _worker_with(handler).execute(_req("web_search", query="python"))

    assert seen["url"] == SEARCH_URL
    assert seen["body"] == "q=python"
    assert result.data["count"] == 2
    assert result.data["results"][0] == {
        "title": "Python",
        "url": "https://python.org/",
        "snippet": "The official home of Python.",
    }
    assert result.data["results"][1]["url"] == "https://docs.python.org/"
    assert result.data["results"][1]["snippet"] == ""


@pytest.mark.asyncio
async def test_web_search_limits_results():
    def handler(request):
        return httpx.Response(200, text=SEARCH_PAGE, headers={"content-type": "text/html"})

    result = await _worker_with(handler, max_results=1).execute(_req("web_search", query="python"))

    assert result.data["count"] == 1
