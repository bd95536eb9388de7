"""Anthropic messages API adapter."""

import json
import logging
from collections.abc import Iterator
from typing import Any

from minion.llm.base import HTTPAdapter, parse_arguments
from minion.models import LLMEvent, Message, ToolDef, Usage

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicAdapter(HTTPAdapter):
    """System prompt as a top-level field, tool calls as ``tool_use``
    content blocks, tool results as ``tool_result`` blocks in user turns.
    """

    provider = "anthropic"
    default_base_url = "https://api.anthropic.com/v1"
    path = "/messages"

    def headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self.config.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def build_payload(self, messages: list[Message], tools: list[ToolDef]) -> dict[str, Any]:
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        payload: dict[str, Any] = {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "messages": self.encode_messages([m for m in messages if m.role != "system"]),
        }
        if system:
            payload["system"] = system
        if tools:
            payload["tools"] = [
                {"name": t.name, "description": t.description, "input_schema": t.parameters}
                for t in tools
            ]
        return payload

    def encode_messages(self, messages: list[Message]) -> list[dict[str, Any]]:
        encoded: list[dict[str, Any]] = []
        for message in messages:
            if message.role == "tool":
                block = {
                    "type": "tool_result",
                    "tool_use_id": message.tool_call_id,
                    "content": message.content,
                }
                # Results of one assistant turn must share a single user turn
                previous = encoded[-1] if encoded else None
                if (
                    previous
                    and previous["role"] == "user"
                    and isinstance(previous["content"], list)
                    and all(b.get("type") == "tool_result" for b in previous["content"])
                ):
                    previous["content"].append(block)
                else:
                    encoded.append({"role": "user", "content": [block]})
            elif message.role == "assistant":
                encoded.append({"role": "assistant", "content": self.encode_assistant(message)})
            else:
                encoded.append({"role": "user", "content": message.content})
        return encoded

    @staticmethod
    def encode_assistant(message: Message) -> list[dict[str, Any]]:
        blocks: list[dict[str, Any]] = []
        if message.content:
            blocks.append({"type": "text", "text": message.content})
        for tc in message.tool_calls or []:
            blocks.append(
                {
                    "type": "tool_use",
                    "id": tc.id,
                    "name": tc.name,
                    "input": parse_arguments(tc.arguments),
                }
            )
        return blocks

    def parse_response(
        self, data: dict[str, Any], messages: list[Message]
    ) -> Iterator[LLMEvent]:
        if data.get("type") == "error":
            error = data.get("error") or {}
            yield LLMEvent.failure(f"{self.provider} API error: {error.get('message', error)}")
            return

        for block in data.get("content") or []:
            kind = block.get("type")
            if kind == "text" and block.get("text"):
                yield LLMEvent.text(block["text"])
            elif kind == "tool_use":
                yield LLMEvent.tool_call(
                    id=block.get("id", ""),
                    name=block.get("name", ""),
                    arguments=json.dumps(block.get("input") or {}),
                )
            elif kind == "thinking":
                logger.debug(f"[{self.provider}] thinking: {block.get('thinking', '')[:200]}")

        usage = data.get("usage")
        yield LLMEvent.done(
            Usage(
                input_tokens=usage.get("input_tokens", 0),
                output_tokens=usage.get("output_tokens", 0),
            )
            if usage
            else None
        )
