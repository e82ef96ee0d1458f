"""Web search tool scraping a search engine results page."""

import re
from dataclasses import dataclass
from urllib.parse import parse_qs, urlparse

from bs4 import BeautifulSoup
import httpx
from pydantic import Field, field_validator

from agentloop.exceptions import ToolExecutionError
from agentloop.logging import get_logger
from agentloop.tools.registry import Tool, ToolInput

log = get_logger(__name__)

DEFAULT_SEARCH_URL = "https://www.google.com/search"
SNIPPET_MAX_CHARS = 300


@dataclass
class SearchResult:
    title: str
    url: str
    snippet: str


def _clean_text(value: str, max_chars: int = SNIPPET_MAX_CHARS) -> str:
    cleaned = re.sub(r"\s+", " ", value or "").strip()
    return cleaned[:max_chars]


def _target_url(href: str) -> str | None:
    """Unwrap a ``/url?q=<target>`` redirect link into its target."""
    parsed = urlparse(href)
    if parsed.path != "/url":
        return None
    targets = parse_qs(parsed.query).get("q")
    if not targets:
        return None
    target = targets[0]
    if not re.match(r"^https?:", target, flags=re.IGNORECASE):
        return None
    return target


def parse_search_results(html: str, limit: int = 5) -> list[SearchResult]:
    """Pull organic results out of a results page.

    Results pages change layout often; this only relies on redirect anchors
    and the first reasonably long span that follows each one.
    """
    soup = BeautifulSoup(html, "html.parser")
    results: list[SearchResult] = []
    seen: set[str] = set()

    for anchor in soup.find_all("a", href=True):
        if len(results) >= limit:
            break
        url = _target_url(anchor["href"])
        if not url or url in seen:
            continue
        title = _clean_text(anchor.get_text(" ", strip=True))
        if not title:
            continue

        snippet = ""
        for span in anchor.find_all_next("span", limit=10):
            text = _clean_text(span.get_text(" ", strip=True))
            if len(text) >= 20 and text != title:
                snippet = text
                break

        seen.add(url)
        results.append(SearchResult(title=title, url=url, snippet=snippet))
    return results


def format_results(results: list[SearchResult]) -> str:
    if not results:
        return "No results found."
    blocks = [
        f"{idx}. {item.title}\nURL: {item.url}\nSnippet: {item.snippet or '(no snippet)'}\n"
        for idx, item in enumerate(results, start=1)
    ]
    return "\n".join(blocks)


class WebSearchInput(ToolInput):
    query: str = Field(min_length=1, description="Search query text")

    @field_validator("query")
    @classmethod
    def check_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("query cannot be empty")
        return value.strip()


class WebSearchTool(Tool):
    """Search the web and return the top result links."""

    name = "web_search"
    description = (
        "Search the web for a query and return top result links with titles "
        "and snippets. Use before url_fetch."
    )
    input_model = WebSearchInput

    def __init__(
        self,
        base_url: str = DEFAULT_SEARCH_URL,
        max_results: int = 5,
        timeout: float = 10.0,
    ):
        self.base_url = base_url
        self.max_results = max(1, int(max_results))
        self.client = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers={
                "User-Agent": "Mozilla/5.0 (compatible; agentloop web search)",
                "Accept-Language": "en-US,en;q=0.9",
            },
        )

    async def execute(self, args: WebSearchInput) -> str:
        log.info("Searching web", query=args.query)
        try:
            response = await self.client.get(
                self.base_url,
                params={"q": args.query, "hl": "en"},
            )
        except httpx.TimeoutException as e:
            raise ToolExecutionError(self.name, "web_search timeout") from e
        except httpx.HTTPError as e:
            log.error("Web search failed", query=args.query, error=str(e))
            raise ToolExecutionError(self.name, f"web_search failed: {e}") from e

        if response.status_code >= 400:
            raise ToolExecutionError(self.name, f"web_search HTTP status {response.status_code}")

        results = parse_search_results(response.text, limit=self.max_results)
        log.debug("Parsed search results", query=args.query, count=len(results))
        return format_results(results)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
