"""Ollama local model server adapter."""

import json
import logging
from collections.abc import Iterator
from typing import Any

from minion.llm.base import HTTPAdapter, parse_arguments, synthesize_call_id
from minion.models import LLMEvent, Message, ToolDef, Usage

logger = logging.getLogger(__name__)


class OllamaAdapter(HTTPAdapter):
    """``/api/chat`` without streaming.

    Ollama issues no tool-call ids, so ids are synthesized per call and
    mapped back to the tool name when results are threaded back. The
    system prompt is folded into the first user message.
    """

    provider = "ollama"
    default_base_url = "http://localhost:11434"
    path = "/api/chat"

    def build_payload(self, messages: list[Message], tools: list[ToolDef]) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.config.model,
            "messages": self._encode_messages(messages),
            "stream": False,
            "options": {"num_predict": self.config.max_tokens},
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
    def _encode_messages(messages: list[Message]) -> list[dict[str, Any]]:
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        call_names: dict[str, str] = {}
        encoded: list[dict[str, Any]] = []

        for message in messages:
            if message.role == "system":
                continue

            if message.role == "user":
                content = message.content
                if system:
                    content = f"{system}\n\n{content}"
                    system = ""
                encoded.append({"role": "user", "content": content})
            elif message.role == "assistant":
                entry: dict[str, Any] = {"role": "assistant", "content": message.content}
                if message.tool_calls:
                    entry["tool_calls"] = [
                        {"function": {"name": tc.name, "arguments": parse_arguments(tc.arguments)}}
                        for tc in message.tool_calls
                    ]
                    call_names.update({tc.id: tc.name for tc in message.tool_calls})
                encoded.append(entry)
            else:
                entry = {"role": "tool", "content": message.content}
                name = call_names.get(message.tool_call_id or "")
                if name:
                    entry["tool_name"] = name
                encoded.append(entry)

        if system:
            # No user message at all: send the system prompt on its own
            encoded.insert(0, {"role": "user", "content": system})
        return encoded

    def parse_response(
        self, data: dict[str, Any], messages: list[Message]
    ) -> Iterator[LLMEvent]:
        if data.get("error"):
            yield LLMEvent.failure(f"{self.provider} error: {data['error']}")
            return

        message = data.get("message") or {}
        text = message.get("content") or message.get("thinking")
        if text:
            yield LLMEvent.text(text)

        for index, call in enumerate(message.get("tool_calls") or []):
            function = call.get("function") or {}
            arguments = function.get("arguments") or {}
            yield LLMEvent.tool_call(
                id=synthesize_call_id(self.provider, messages, index),
                name=function.get("name", ""),
                arguments=arguments if isinstance(arguments, str) else json.dumps(arguments),
            )

        if "prompt_eval_count" in data or "eval_count" in data:
            yield LLMEvent.done(
                Usage(
                    input_tokens=data.get("prompt_eval_count", 0),
                    output_tokens=data.get("eval_count", 0),
                )
            )
        else:
            yield LLMEvent.done()
