"""Streaming LLM providers and the client that drives them."""

from __future__ import annotations

from .anthropic_provider import AnthropicProvider
from .base import LLMProvider, create_provider, register_provider, registered_providers
from .client import LLMClient
from .openai_provider import OpenAIProvider
from .tool_call_accumulator import ToolCallAccumulator

__all__ = [
    "AnthropicProvider",
    "LLMClient",
    "LLMProvider",
    "OpenAIProvider",
    "ToolCallAccumulator",
    "create_provider",
    "register_provider",
    "registered_providers",
]
