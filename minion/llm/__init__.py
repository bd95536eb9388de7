"""LLM provider adapters behind one streaming event contract."""

from minion.llm.aliases import resolve_provider
from minion.llm.base import LLMAdapter, LLMConfig
from minion.llm.factory import create_llm_adapter

__all__ = ["LLMAdapter", "LLMConfig", "create_llm_adapter", "resolve_provider"]
