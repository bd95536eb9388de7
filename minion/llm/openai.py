"""OpenAI chat-completions adapter (also serves OpenAI-compatible vendors)."""

import logging
from collections.abc import Iterator
from typing import Any

from minion.llm.base import HTTPAdapter, synthesize_call_id
from minion.models import LLMEvent, Message, ToolDef, Usage

logger = logging.getLogger(__name__)


class OpenAIAdapter(HTTPAdapter):
    """System prompt as a ``system`` message, tool calls as a structured
    ``tool_calls`` array next to plain-text content, results as ``tool`` role.
    """

    provider = "openai"
    default_base_url = "https://api.openai.com/v1"
    path = "/chat/completions"

    def headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.config.api_key}",
        }

    def build_payload(self, messages: list[Message], tools: list[ToolDef]) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.config.model,
            "messages": [self._encode_message(m) for m in messages],
            "max_tokens": self.config.max_tokens,
        }
        if tools:
            payload["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": t.name,
                        "description": t.description,
                        "parameters": t.parameters,
                    },
                }
                for t in tools
            ]
        return payload

    @staticmethod
    def _encode_message(message: Message) -> dict[str, Any]:
        if message.role == "tool":
            return {
                "role": "tool",
                "tool_call_id": message.tool_call_id,
                "content": message.content,
            }

        if message.role == "assistant" and message.tool_calls:
            return {
                "role": "assistant",
                "content": message.content or None,
                "tool_calls": [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {"name": tc.name, "arguments": tc.arguments},
                    }
                    for tc in message.tool_calls
                ],
            }

        return {"role": message.role, "content": message.content}

    def parse_response(
        self, data: dict[str, Any], messages: list[Message]
    ) -> Iterator[LLMEvent]:
        choices = data.get("choices") or []
        if not choices:
            yield LLMEvent.failure(f"{self.provider} response has no choices")
            return

        message = choices[0].get("message") or {}
        # Reasoning models put their answer in reasoning_content
        text = message.get("content") or message.get("reasoning_content")
        if text:
            yield LLMEvent.text(text)

        for index, call in enumerate(message.get("tool_calls") or []):
            function = call.get("function") or {}
            yield LLMEvent.tool_call(
                id=call.get("id") or synthesize_call_id(self.provider, messages, index),
                name=function.get("name", ""),
                arguments=function.get("arguments") or "{}",
            )

        usage = data.get("usage")
        yield LLMEvent.done(
            Usage(
                input_tokens=usage.get("prompt_tokens", 0),
                output_tokens=usage.get("completion_tokens", 0),
            )
            if usage
            else None
        )
