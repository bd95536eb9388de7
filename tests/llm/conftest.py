import json

import httpx
import pytest


class Recorder:
    """MockTransport handler returning a canned response and keeping requests."""

    def __init__(self, body=None, status_code=200):
        self.body = body if body is not None else {}
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.body, str):
            return httpx.Response(self.status_code, text=self.body)
        return httpx.Response(self.status_code, json=self.body)

    @property
    def payload(self) -> dict:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def http_client(recorder):
    with httpx.Client(transport=httpx.MockTransport(recorder)) as client:
        yield client


@pytest.fixture
def conversation():
    """System prompt, a task, one assistant turn with two calls and their results."""
    from minion.models import Message, ToolCall

    return [
        Message(role="system", content="You are a coding agent."),
        Message(role="user", content="Fix the bug"),
        Message(
            role="assistant",
            content="Looking around.",
            tool_calls=[
                ToolCall(id="call-a", name="read", arguments='{"path": "a.py"}'),
                ToolCall(id="call-b", name="bash", arguments='{"command": "ls"}'),
            ],
        ),
        Message(role="tool", content="print('a')", tool_call_id="call-a"),
        Message(role="tool", content="a.py", tool_call_id="call-b"),
    ]


@pytest.fixture
def tools():
    from minion.models import ToolDef

    return [
        ToolDef(
            name="read",
            description="Read a file",
            parameters={"type": "object", "properties": {"path": {"type": "string"}}},
        )
    ]
