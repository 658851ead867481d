"""Web access worker: page fetch and search."""

from urllib.parse import parse_qs, unquote, urlparse

import httpx
from bs4 import BeautifulSoup

from agentpilot.core.types import ActionRequest, ActionResult, PermissionLevel, ToolDefinition
from agentpilot.workers.base import ActionWorker

USER_AGENT = "AgentPilot/1.0 (AI Assistant)"
SEARCH_URL = "https://html.duckduckgo.com/html/"


def html_to_text(html: str) -> tuple[str, str]:
    """Readable text and title of an HTML page."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "nav", "footer", "header", "noscript"]):
        tag.decompose()
    title = soup.title.get_text(strip=True) if soup.title else ""
    return soup.get_text(separator="\n", strip=True), title


def _unwrap_result_link(href: str) -> str:
    # DuckDuckGo wraps targets as //duckduckgo.com/l/?uddg=<encoded url>
    parsed = urlparse(href)
    target = parse_qs(parsed.query).get("uddg")
    return unquote(target[0]) if target else href


class BrowserWorker(ActionWorker):
    """Read-only web access over httpx."""

    type = "browser"
    required_level = PermissionLevel.READ_ONLY

    def __init__(self, max_chars: int = 8000, timeout: float = 30.0, max_results: int = 5):
        self.max_chars = max_chars
        self.timeout = timeout
        self.max_results = max_results

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        )

    async def _op_browse_web(self, request: ActionRequest) -> ActionResult:
        url = self._param(request, "url")
        if not url:
            return ActionResult.fail("Missing url")
        if urlparse(url).scheme not in ("http", "https"):
            return ActionResult.fail("Only HTTP/HTTPS URLs are supported")

        try:
            async with self._client() as client:
                resp = await client.get(url)
        except httpx.TimeoutException:
            return ActionResult.fail(f"Request timed out after {self.timeout:g}s")
        except httpx.HTTPError as e:
            return ActionResult.fail(f"{type(e).__name__}: {e}")

        content_type = resp.headers.get("content-type", "")
        title = ""
        if "html" in content_type:
            text, title = html_to_text(resp.text)
        else:
            text = resp.text

        truncated = len(text) > self.max_chars
        if truncated:
            text = text[: self.max_chars] + "\n\n[truncated]"

        return ActionResult(
            success=resp.is_success,
            data={
                "url": str(resp.url),
                "status": resp.status_code,
                "title": title,
                "content": text,
                "truncated": truncated,
            },
            error=None if resp.is_success else f"HTTP {resp.status_code}",
        )

    async def _op_web_search(self, request: ActionRequest) -> ActionResult:
        query = self._param(request, "query")
        if not query:
            return ActionResult.fail("Missing search query")

        try:
            async with self._client() as client:
                resp = await client.post(SEARCH_URL, data={"q": query})
                resp.raise_for_status()
        except httpx.HTTPError as e:
            return ActionResult.fail(f"Search failed: {e}")

        soup = BeautifulSoup(resp.text, "html.parser")
        results = []
        for item in soup.select(".result"):
            link = item.select_one("a.result__a")
            if link is None:
                continue
            snippet = item.select_one(".result__snippet")
            results.append({
                "title": link.get_text(strip=True),
                "url": _unwrap_result_link(link.get("href", "")),
                "snippet": snippet.get_text(strip=True) if snippet else "",
            })
            if len(results) >= self.max_results:
                break

        return ActionResult.ok({"query": query, "results": results, "count": len(results)})

    def get_tools(self) -> list[ToolDefinition]:
        return [
            ToolDefinition(
                name="browse_web",
                description="Navigate to a URL and extract page content",
                parameters={
                    "type": "object",
                    "properties": {
                        "url": {"type": "string", "description": "URL to navigate to"},
                        "extract": {"type": "string", "description": "What to extract from the page"},
                    },
                    "required": ["url"],
                },
            ),
            ToolDefinition(
                name="web_search",
                description="Search the web for information",
                parameters={
                    "type": "object",
                    "properties": {
                        "query": {"type": "string", "description": "Search query"},
                    },
                    "required": ["query"],
                },
            ),
        ]
