from minion.llm import LLMConfig
from minion.llm.anthropic import AnthropicAdapter


def make_adapter(http_client):
    config = LLMConfig(provider="anthropic", model="claude", api_key="ak-test", max_tokens=1024)
    return AnthropicAdapter(config, client=http_client)


def test_payload_shape(recorder, http_client, conversation, tools):
    """Test top-level system, tool_use blocks and merged tool_result turns."""
    list(make_adapter(http_client).chat(conversation, tools))

    request = recorder.requests[0]
    assert str(request.url) == "https://api.anthropic.com/v1/messages"
    assert request.headers["x-api-key"] == "ak-test"
    assert request.headers["anthropic-version"] == "2023-06-01"

    payload = recorder.payload
    assert payload["system"] == "You are a coding agent."
    assert payload["max_tokens"] == 1024
    assert payload["tools"][0]["input_schema"]["properties"]["path"] == {"type": "string"}

    messages = payload["messages"]
    assert [m["role"] for m in messages] == ["user", "assistant", "user"]
    assert messages[1]["content"] == [
        {"type": "text", "text": "Looking around."},
        {"type": "tool_use", "id": "call-a", "name": "read", "input": {"path": "a.py"}},
        {"type": "tool_use", "id": "call-b", "name": "bash", "input": {"command": "ls"}},
    ]
    assert [b["tool_use_id"] for b in messages[2]["content"]] == ["call-a", "call-b"]
    assert messages[2]["content"][0]["type"] == "tool_result"


def test_parse_content_blocks(recorder, http_client, conversation):
    """Test that text and tool_use blocks become events and thinking is skipped."""
    recorder.body = {
        "content": [
            {"type": "thinking", "thinking": "hmm"},
            {"type": "text", "text": "Editing"},
            {"type": "tool_use", "id": "tu_1", "name": "edit", "input": {"path": "a.py"}},
        ],
        "usage": {"input_tokens": 7, "output_tokens": 3},
    }

    events = list(make_adapter(http_client).chat(conversation, []))

    assert [e.type for e in events] == ["text_delta", "tool_call", "done"]
    assert events[1].id == "tu_1"
    assert events[1].arguments == '{"path": "a.py"}'
    assert events[2].usage.input_tokens == 7


def test_error_body_yields_error_event(recorder, http_client, conversation):
    """Test that an error document becomes an error event."""
    recorder.body = {"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}}

    events = list(make_adapter(http_client).chat(conversation, []))

    assert events[0].type == "error"
    assert "Overloaded" in events[0].error


def test_invalid_json_yields_error_event(recorder, http_client, conversation):
    """Test that a non-JSON body becomes an error event."""
    recorder.body = "<html>bad gateway</html>"

    events = list(make_adapter(http_client).chat(conversation, []))

    assert events[0].type == "error"
