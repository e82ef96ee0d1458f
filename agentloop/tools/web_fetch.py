"""URL fetch tool for retrieving web page content."""

import re
from typing import Literal
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup
import httpx
from pydantic import Field, field_validator

from agentloop import __version__
from agentloop.exceptions import ToolExecutionError
from agentloop.logging import get_logger
from agentloop.tools.registry import Tool, ToolInput
from agentloop.tools.safety import TRUNCATION_MARKER

log = get_logger(__name__)


class UrlFetchInput(ToolInput):
    url: str = Field(min_length=1, description="The http(s) URL to fetch")
    format: Literal["raw", "text"] = Field(
        default="raw",
        description="raw returns the response body as-is; text extracts readable text from HTML",
    )

    @field_validator("url")
    @classmethod
    def check_scheme(cls, value: str) -> str:
        parsed = urlparse(value.strip())
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("must be an http or https URL")
        return value.strip()


class UrlFetchTool(Tool):
    """Fetch a URL over HTTP(S)."""

    name = "url_fetch"
    description = (
        "Fetch the contents of a URL over HTTP(S) and return the response body "
        "as text (HTML or plain). Use format=text to extract readable text. 10s timeout."
    )
    input_model = UrlFetchInput

    def __init__(self, timeout: float = 10.0, max_chars: int = 100000):
        self.max_chars = max(1, int(max_chars))
        self.client = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": f"agentloop/{__version__} (URL Fetch Tool)"},
        )

    async def execute(self, args: UrlFetchInput) -> str:
        log.info("Fetching URL", url=args.url, format=args.format)
        try:
            response = await self.client.get(args.url)
        except httpx.TimeoutException as e:
            raise ToolExecutionError(self.name, "request timeout") from e
        except httpx.HTTPError as e:
            log.error("HTTP fetch failed", url=args.url, error=str(e))
            raise ToolExecutionError(self.name, f"request failed: {e}") from e

        if response.status_code >= 400:
            raise ToolExecutionError(self.name, f"request failed: {response.status_code}")

        content = response.text
        if args.format == "text":
            content = extract_readable_text(content, base_url=args.url)

        if len(content) > self.max_chars:
            content = content[: self.max_chars] + TRUNCATION_MARKER
        return content

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()


def extract_readable_text(html: str, base_url: str | None = None) -> str:
    """Extract human-readable text from raw HTML."""
    soup = BeautifulSoup(html, "html.parser")

    for tag in soup(["script", "style", "noscript", "template", "svg", "canvas"]):
        tag.decompose()

    # Keep link targets visible so the model can follow them with another fetch.
    for anchor in soup.find_all("a"):
        href = (anchor.get("href") or "").strip()
        if not href:
            continue
        label = anchor.get_text(" ", strip=True)
        absolute = urljoin(base_url, href) if base_url else href
        anchor.replace_with(f"{label} ({absolute})" if label else absolute)

    title = ""
    if soup.title and soup.title.string:
        title = soup.title.string.strip()

    lines = []
    for line in soup.get_text(separator="\n").splitlines():
        cleaned = re.sub(r"\s+", " ", line).strip()
        if cleaned:
            lines.append(cleaned)

    text = "\n".join(lines)
    if title and not text.startswith(title):
        return f"{title}\n\n{text}" if text else title
    return text
