"""Agent loop: LLM response -> tool execution -> feedback, bounded."""

import json
import logging
import time
from dataclasses import dataclass, field

from minion.agent.watchdog import Watchdog
from minion.llm.base import LLMAdapter
from minion.models import Message, ToolCall, Usage
from minion.tools.base import ToolContext
from minion.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


@dataclass
class AgentLoopResult:
    output: str
    iterations: int
    messages: list[Message]
    stop_reason: str = "completed"  # completed | max_iterations | watchdog | error
    error: str | None = None
    usage: Usage = field(default_factory=Usage)


def _preview(text: str, limit: int = 200) -> str:
    text = text.replace("\n", " ")
    return text if len(text) <= limit else f"{text[:limit]}..."


class AgentLoop:
    """Drive one conversation until the LLM stops calling tools.

    Tool calls of a response are executed sequentially in emission order.
    Unknown tools and tool faults are fed back to the LLM as ``Error: ...``
    results. The loop ends on a response without tool calls, on an adapter
    error, when the iteration budget is spent, or when the optional
    watchdog trips.
    """

    def __init__(
        self,
        llm: LLMAdapter,
        registry: ToolRegistry,
        max_iterations: int,
        watchdog: Watchdog | None = None,
    ):
        self.llm = llm
        self.registry = registry
        self.max_iterations = max_iterations
        self.watchdog = watchdog

    def run(
        self,
        prompt: str,
        ctx: ToolContext,
        system_prompt: str | None = None,
        tool_names: list[str] | None = None,
    ) -> AgentLoopResult:
        messages: list[Message] = []
        if system_prompt:
            messages.append(Message(role="system", content=system_prompt))
        messages.append(Message(role="user", content=prompt))

        tool_defs = self.registry.get_tool_defs(tool_names)
        logger.info(
            f"Starting agent loop (max {self.max_iterations} iterations), "
            f"tools: {', '.join(t.name for t in tool_defs)}"
        )

        result = AgentLoopResult(output="", iterations=0, messages=messages)

        while result.iterations < self.max_iterations:
            result.iterations += 1
            iteration = result.iterations
            logger.info(f"[ITER:{iteration:03d}] Sending {len(messages)} messages to LLM")

            text, calls, usage, error = self._complete(messages, tool_defs)
            result.usage.input_tokens += usage.input_tokens
            result.usage.output_tokens += usage.output_tokens

            if error is not None:
                logger.error(f"[ITER:{iteration:03d}] LLM error: {error}")
                result.output = text or result.output
                result.stop_reason = "error"
                result.error = error
                return result

            if not calls:
                logger.info(f"[ITER:{iteration:03d}] No tool calls, LLM finished")
                messages.append(Message(role="assistant", content=text))
                result.output = text
                result.stop_reason = "completed"
                return result

            messages.append(Message(role="assistant", content=text, tool_calls=calls))
            result.output = text
            for call in calls:
                messages.append(
                    Message(role="tool", content=self._execute(call, ctx, iteration), tool_call_id=call.id)
                )

            if self.watchdog is not None:
                self.watchdog.tick(usage.total)
                if self.watchdog.tripped():
                    logger.warning(f"[ITER:{iteration:03d}] Watchdog tripped: {self.watchdog.reason}")
                    result.stop_reason = "watchdog"
                    return result

        logger.warning(f"Agent loop exhausted its budget of {self.max_iterations} iterations")
        result.stop_reason = "max_iterations"
        return result

    def _complete(self, messages, tool_defs) -> tuple[str, list[ToolCall], Usage, str | None]:
        """Consume one response: (text, tool calls, usage, error)."""
        parts: list[str] = []
        calls: list[ToolCall] = []
        usage = Usage()
        try:
            for event in self.llm.chat(messages, tool_defs):
                if event.type == "text_delta":
                    parts.append(event.content)
                elif event.type == "tool_call":
                    logger.info(f"Tool call requested: {event.name}")
                    calls.append(
                        ToolCall(id=event.id or "", name=event.name or "", arguments=event.arguments or "{}")
                    )
                elif event.type == "done":
                    if event.usage is not None:
                        usage = event.usage
                elif event.type == "error":
                    return "".join(parts), calls, usage, event.error or "unknown LLM error"
        except Exception as e:
            logger.exception("LLM call failed")
            return "".join(parts), calls, usage, str(e)

        text = "".join(parts)
        if text:
            logger.info(f"LLM response: {_preview(text)}")
        return text, calls, usage, None

    def _execute(self, call: ToolCall, ctx: ToolContext, iteration: int) -> str:
        tool = self.registry.get(call.name)
        if tool is None:
            logger.warning(f"[ITER:{iteration:03d}] Unknown tool: {call.name}")
            return f'Error: unknown tool "{call.name}"'

        try:
            params = json.loads(call.arguments or "{}")
        except json.JSONDecodeError as e:
            return f"Error: invalid JSON arguments for {call.name}: {e}"
        if not isinstance(params, dict):
            return f"Error: arguments for {call.name} must be a JSON object"

        logger.info(f"[ITER:{iteration:03d}] -> {call.name}({_preview(json.dumps(params), 100)})")
        started = time.monotonic()
        try:
            outcome = tool.execute(params, ctx)
        except Exception as e:
            logger.exception(f"Tool {call.name} raised")
            return f"Error: {e}"
        elapsed_ms = int((time.monotonic() - started) * 1000)

        if outcome.success:
            logger.info(f"[ITER:{iteration:03d}] <- {call.name} OK ({elapsed_ms}ms)")
            return outcome.output

        logger.info(f"[ITER:{iteration:03d}] <- {call.name} FAILED ({elapsed_ms}ms): {outcome.error}")
        if outcome.output:
            return f"Error: {outcome.error}\n{outcome.output}"
        return f"Error: {outcome.error}"
