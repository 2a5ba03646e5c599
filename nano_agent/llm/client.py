"""Provider-agnostic streaming LLM client.

The provider is chosen by `LLMConfig.provider` through the registry in
`nano_agent.llm.base`. Retry (when enabled) wraps opening the stream only;
once chunks are flowing a failure propagates to the caller.
"""

from __future__ import annotations

from typing import AsyncIterator, Sequence

from nano_agent.core.config import LLMConfig, RetryConfig
from nano_agent.core.retry import RetryCallback, async_retry
from nano_agent.core.types import LLMStreamChunk, Message
from nano_agent.observability.logging import get_logger
from nano_agent.tools.base import Tool

# Importing the provider modules registers them.
from . import anthropic_provider as _anthropic_provider  # noqa: F401
from . import openai_provider as _openai_provider  # noqa: F401
from .base import LLMProvider, create_provider


class LLMClient:
    def __init__(
        self,
        config: LLMConfig,
        retry: RetryConfig | None = None,
        *,
        provider: LLMProvider | None = None,
        on_retry: RetryCallback | None = None,
    ) -> None:
        self._config = config
        self._retry = retry or RetryConfig()
        self._provider = provider or create_provider(config)
        self._on_retry_cb = on_retry
        self._log = get_logger("nano_agent.llm")

    @property
    def model(self) -> str:
        return self._config.model

    @property
    def provider_name(self) -> str:
        return self._config.provider

    @property
    def api_base(self) -> str | None:
        return self._config.api_base

    def _on_retry(self, error: BaseException, attempt: int) -> None:
        self._log.warning("llm_retry", attempt=attempt, error=str(error), error_type=type(error).__name__)
        if self._on_retry_cb is not None:
            self._on_retry_cb(error, attempt)

    async def generate_stream(
        self,
        messages: Sequence[Message],
        tools: Sequence[Tool] | None = None,
    ) -> AsyncIterator[LLMStreamChunk]:
        request = self._provider.build_request(messages, tools)
        self._log.info(
            "llm_request",
            provider=self.provider_name,
            model=self.model,
            messages=len(messages),
            tools=len(tools or ()),
        )

        if self._retry.enabled:
            raw = await async_retry(lambda: self._provider.open_stream(request), self._retry, self._on_retry)
        else:
            raw = await self._provider.open_stream(request)

        async for chunk in self._provider.decode(raw):
            yield chunk

    async def check_connection(self) -> bool:
        """Send one tiny request and report whether the first chunk arrives."""

        stream = self.generate_stream([Message(role="user", content="ping")])
        try:
            await anext(stream)
            return True
        except Exception as e:  # noqa: BLE001
            self._log.warning("llm_check_failed", provider=self.provider_name, model=self.model, error=str(e))
            return False
        finally:
            await stream.aclose()
