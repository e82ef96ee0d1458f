"""Inference gateway - direct HTTP calls to the Anthropic Messages API."""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import httpx

from agentloop.conversation import (
    ContentSegment,
    ConversationEntry,
    ToolInvocationResult,
    segment_from_dict,
)
from agentloop.exceptions import LLMAPIError, LLMError
from agentloop.logging import get_logger

log = get_logger(__name__)


ANTHROPIC_BASE_URL = "https://api.anthropic.com"
ANTHROPIC_VERSION = "2023-06-01"


@dataclass
class InferenceResponse:
    """One model turn as returned by the gateway."""

    segments: list[ContentSegment] = field(default_factory=list)
    model: str = ""
    stop_reason: str | None = None
    usage: dict[str, int] = field(default_factory=dict)


class InferenceGateway(ABC):
    """Abstract base class for inference gateways.

    A gateway is stateless with respect to the conversation: every call
    receives the complete history.
    """

    @abstractmethod
    async def complete(
        self,
        conversation: tuple[ConversationEntry, ...],
        tools: list[dict[str, Any]],
    ) -> InferenceResponse:
        pass

    async def close(self) -> None:
        """Release any held resources."""
        return None


class AnthropicGateway(InferenceGateway):
    """Anthropic Messages API gateway."""

    def __init__(
        self,
        model: str,
        max_tokens: int = 1024,
        api_key: str | None = None,
        base_url: str = ANTHROPIC_BASE_URL,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the gateway.

        Args:
            model: Model identifier sent with every request
            max_tokens: Upper bound on generated tokens per turn
            api_key: API key sent as ``x-api-key``
            base_url: API base URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use MockTransport)
        """
        self.model = model
        self.max_tokens = max_tokens
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

        self.client = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )

    def _build_body(
        self,
        conversation: tuple[ConversationEntry, ...],
        tools: list[dict[str, Any]],
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [entry.to_dict() for entry in conversation],
        }
        if tools:
            body["tools"] = list(tools)
        return body

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "anthropic-version": ANTHROPIC_VERSION,
        }
        if self.api_key:
            headers["x-api-key"] = self.api_key
        return headers

    @staticmethod
    def _parse_response(data: Any) -> InferenceResponse:
        if not isinstance(data, dict):
            raise LLMError("Inference response is not a JSON object")

        segments: list[ContentSegment] = []
        for block in data.get("content") or []:
            if not isinstance(block, dict):
                continue
            segment = segment_from_dict(block)
            # Only text and tool_use are valid on the model side.
            if segment is None or isinstance(segment, ToolInvocationResult):
                log.debug("Ignoring unknown content block", block_type=block.get("type"))
                continue
            segments.append(segment)

        raw_usage = data.get("usage") or {}
        usage = {
            key: int(value)
            for key, value in raw_usage.items()
            if isinstance(value, (int, float))
        }
        return InferenceResponse(
            segments=segments,
            model=str(data.get("model", "")),
            stop_reason=data.get("stop_reason"),
            usage=usage,
        )

    async def complete(
        self,
        conversation: tuple[ConversationEntry, ...],
        tools: list[dict[str, Any]],
    ) -> InferenceResponse:
        """Send the full conversation and tool descriptors, return one model turn."""
        url = f"{self.base_url}/v1/messages"
        body = self._build_body(conversation, tools)

        try:
            log.debug("Calling inference API", model=self.model, url=url, msg_count=len(conversation))
            response = await self.client.post(url, json=body, headers=self._headers())
        except httpx.HTTPError as e:
            raise LLMAPIError(f"Inference HTTP error: {e}") from e

        log.debug("Inference response status", status=response.status_code)
        if not response.is_success:
            raise LLMAPIError(
                f"Inference API error {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except json.JSONDecodeError as e:
            raise LLMError(f"Inference response decode error: {e}") from e

        result = self._parse_response(data)
        log.info(
            "Inference completed",
            model=result.model or self.model,
            stop_reason=result.stop_reason,
            segments=len(result.segments),
            usage=result.usage,
        )
        return result

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()


def create_gateway(config: Any = None) -> InferenceGateway:
    """Create the inference gateway described by ``config.model``."""
    if config is None:
        from agentloop.config import get_config
        config = get_config()
    model_cfg = config.model
    return AnthropicGateway(
        model=model_cfg.model,
        max_tokens=model_cfg.max_tokens,
        api_key=model_cfg.api_key or None,
        base_url=model_cfg.base_url or ANTHROPIC_BASE_URL,
        timeout=model_cfg.timeout,
    )


# Global gateway instance
_gateway: InferenceGateway | None = None


def get_gateway() -> InferenceGateway:
    """Get the global inference gateway instance."""
    global _gateway
    if _gateway is None:
        _gateway = create_gateway()
    return _gateway


def set_gateway(gateway: InferenceGateway | None) -> None:
    """Set the global inference gateway instance."""
    global _gateway
    _gateway = gateway
