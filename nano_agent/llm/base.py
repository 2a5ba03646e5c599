"""Provider contract and the tag -> provider registry.

Adding a provider means writing one class with the three methods below and
decorating it with `register_provider("<tag>")`.
"""

from __future__ import annotations

from typing import Any, AsyncIterator, Callable, Protocol, Sequence, TypeVar

from nano_agent.core.config import LLMConfig
from nano_agent.core.errors import UnsupportedProviderError
from nano_agent.core.types import LLMStreamChunk, Message
from nano_agent.tools.base import Tool


class LLMProvider(Protocol):
    """Wire adapter for one LLM API.

    `build_request` is pure, `open_stream` is the only network call (and the
    unit the caller retries), `decode` turns the raw stream into chunks.
    """

    def build_request(self, messages: Sequence[Message], tools: Sequence[Tool] | None = None) -> dict[str, Any]:
        ...

    async def open_stream(self, request: dict[str, Any]) -> Any:
        ...

    def decode(self, stream: Any) -> AsyncIterator[LLMStreamChunk]:
        ...


ProviderFactory = Callable[[LLMConfig], LLMProvider]
F = TypeVar("F", bound=Callable[..., Any])

_REGISTRY: dict[str, ProviderFactory] = {}


def register_provider(tag: str) -> Callable[[F], F]:
    def decorator(factory: F) -> F:
        _REGISTRY[tag.lower()] = factory
        return factory

    return decorator


def registered_providers() -> list[str]:
    return sorted(_REGISTRY)


def create_provider(config: LLMConfig) -> LLMProvider:
    factory = _REGISTRY.get(config.provider.lower())
    if factory is None:
        raise UnsupportedProviderError(config.provider)
    return factory(config)
