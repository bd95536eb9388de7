"""Natural-language task parsing."""

import logging

from pydantic import AliasChoices, BaseModel, Field

from minion.llm.base import LLMAdapter, collect_text, parse_json_reply
from minion.models import Message

logger = logging.getLogger(__name__)

PARSE_SYSTEM_PROMPT = """You are a task parser. Extract structured information from the user's natural language task description.
Return ONLY a JSON object with these fields:
- description: the core task description (translated to English if needed)
- repo_url: git repository URL or local path if mentioned, otherwise null
- issue_url: issue/ticket URL if mentioned, otherwise null
- branch: target branch name if mentioned, otherwise null

Return ONLY valid JSON, no markdown fences."""


class ParsedTask(BaseModel):
    description: str
    repo_url: str | None = Field(default=None, validation_alias=AliasChoices("repo_url", "repoUrl"))
    issue_url: str | None = Field(default=None, validation_alias=AliasChoices("issue_url", "issueUrl"))
    branch: str | None = None


def parse_task_description(llm: LLMAdapter, raw_input: str) -> ParsedTask:
    """Extract description and repo/issue/branch hints from free text.

    Any failure degrades to treating the whole input as the description.
    """
    try:
        text = collect_text(
            llm,
            [
                Message(role="system", content=PARSE_SYSTEM_PROMPT),
                Message(role="user", content=raw_input),
            ],
        )
        parsed = ParsedTask.model_validate(parse_json_reply(text))
    except Exception as e:
        logger.warning(f"Task parsing failed, using raw input as description: {e}")
        return ParsedTask(description=raw_input)

    if not parsed.description.strip():
        parsed.description = raw_input
    return parsed
