"""Z.ai / Zhipu GLM adapter over its Anthropic-compatible endpoint."""

from typing import Any

from minion.llm.anthropic import AnthropicAdapter
from minion.models import Message


class ZhipuAdapter(AnthropicAdapter):
    """Anthropic wire shape without a tool-result block.

    The endpoint rejects ``tool_result`` content, so each result is sent
    as an ordinary user message prefixed with the id of the call it answers.
    Authentication is a bearer token.
    """

    provider = "zai"
    default_base_url = "https://api.z.ai/api/anthropic"

    @property
    def base_url(self) -> str:
        base = super().base_url
        return base if base.endswith("/v1") else f"{base}/v1"

    def headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.config.api_key}",
            "anthropic-version": "2023-06-01",
        }

    def encode_messages(self, messages: list[Message]) -> list[dict[str, Any]]:
        encoded: list[dict[str, Any]] = []
        for message in messages:
            if message.role == "tool":
                encoded.append(
                    {
                        "role": "user",
                        "content": f"[Tool Result for {message.tool_call_id}]:\n{message.content}",
                    }
                )
            elif message.role == "assistant":
                encoded.append({"role": "assistant", "content": self.encode_assistant(message)})
            else:
                encoded.append({"role": "user", "content": message.content})
        return encoded
