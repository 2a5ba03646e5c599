from __future__ import annotations


class NanoAgentError(Exception):
    """Base exception for this project."""


class ConfigError(NanoAgentError):
    """Raised when configuration is invalid or incomplete."""

    def __init__(self, message: str, *, path: str | None = None):
        super().__init__(f"{path}: {message}" if path else message)
        self.path = path


class ProviderError(NanoAgentError):
    """Raised when an LLM provider request cannot be completed."""


class UnsupportedProviderError(ProviderError):
    def __init__(self, provider: str):
        super().__init__(f"Unsupported provider: {provider}")
        self.provider = provider
