"""Provider-neutral LLM adapter contract."""

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator
from typing import Any

import httpx
from pydantic import BaseModel

from minion.models import LLMEvent, Message, ToolDef

logger = logging.getLogger(__name__)


class LLMConfig(BaseModel):
    """Credentials and endpoint for one provider."""

    provider: str
    model: str
    api_key: str = ""
    base_url: str | None = None
    timeout: float = 300.0
    max_tokens: int = 8192


class LLMAdapter(ABC):
    """Translate a conversation into one provider's wire protocol.

    ``chat`` yields a lazy, finite sequence of normalized events:
    ``text_delta``, ``tool_call``, ``done`` and ``error``.
    """

    provider: str = ""

    @abstractmethod
    def chat(self, messages: list[Message], tools: list[ToolDef]) -> Iterator[LLMEvent]:
        """Send messages and yield the normalized response events."""


class HTTPAdapter(LLMAdapter):
    """Base for adapters that speak JSON over HTTP with a single request."""

    default_base_url: str = ""
    path: str = ""

    def __init__(self, config: LLMConfig, client: httpx.Client | None = None):
        self.config = config
        self._client = client

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self.config.timeout)
        return self._client

    @property
    def base_url(self) -> str:
        return (self.config.base_url or self.default_base_url).rstrip("/")

    def endpoint(self) -> str:
        return f"{self.base_url}{self.path}"

    def headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    @abstractmethod
    def build_payload(self, messages: list[Message], tools: list[ToolDef]) -> dict[str, Any]:
        """Encode the conversation into the provider's request body."""

    @abstractmethod
    def parse_response(
        self, data: dict[str, Any], messages: list[Message]
    ) -> Iterator[LLMEvent]:
        """Decode the provider's response body into normalized events."""

    def chat(self, messages: list[Message], tools: list[ToolDef]) -> Iterator[LLMEvent]:
        payload = self.build_payload(messages, tools)
        logger.debug(
            f"[{self.provider}] request model={self.config.model} "
            f"messages={len(messages)} tools={len(tools)}"
        )

        try:
            response = self.client.post(self.endpoint(), json=payload, headers=self.headers())
        except httpx.HTTPError as e:
            yield LLMEvent.failure(f"{self.provider} request failed: {e}")
            return

        if response.is_error:
            yield LLMEvent.failure(
                f"{self.provider} API error: {response.status_code} {response.text}"
            )
            return

        try:
            data = response.json()
        except ValueError:
            yield LLMEvent.failure(f"{self.provider} returned invalid JSON: {response.text[:500]}")
            return

        yield from self.parse_response(data, messages)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


def parse_arguments(arguments: str) -> dict[str, Any]:
    """Decode serialized tool arguments, keeping undecodable text under ``raw``."""
    if not arguments:
        return {}
    try:
        value = json.loads(arguments)
    except json.JSONDecodeError:
        return {"raw": arguments}
    return value if isinstance(value, dict) else {"value": value}


def synthesize_call_id(prefix: str, messages: list[Message], index: int) -> str:
    """Deterministic id for a provider that does not issue call ids.

    The id is derived from the number of assistant turns already in the
    conversation and the call's position in the current response, so it is
    unique within one conversation and stable for identical input.
    """
    turn = sum(1 for m in messages if m.role == "assistant")
    return f"{prefix}-{turn}-{index}"


def collect_text(adapter: LLMAdapter, messages: list[Message]) -> str:
    """Run a tool-less exchange and return the concatenated text.

    Raises:
        RuntimeError: If the adapter reports an error event
    """
    parts: list[str] = []
    for event in adapter.chat(messages, []):
        if event.type == "text_delta":
            parts.append(event.content)
        elif event.type == "error":
            raise RuntimeError(event.error)
    return "".join(parts)


def parse_json_reply(text: str) -> Any:
    """Decode a JSON reply, tolerating a surrounding markdown code fence."""
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        text = text.rsplit("```", 1)[0]
    return json.loads(text)
