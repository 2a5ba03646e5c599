"""Long-lived MCP sessions over stdio, SSE or streamable HTTP.

Each connection runs its transport and `ClientSession` inside one dedicated
task, so the SDK's cancel scopes are entered and exited by the same task.
Callers talk to the session from other tasks; only `disconnect()` ends it.
"""

from __future__ import annotations

import asyncio
from contextlib import AsyncExitStack, asynccontextmanager
from datetime import timedelta
from typing import Any, AsyncContextManager, AsyncIterator, Callable, Protocol

from mcp import ClientSession, StdioServerParameters
from mcp.client.sse import sse_client
from mcp.client.stdio import stdio_client
from mcp.client.streamable_http import streamablehttp_client

from nano_agent.core.config import McpTimeoutConfig, RetryConfig
from nano_agent.core.retry import RetryExhaustedError, async_retry
from nano_agent.core.types import ToolResult
from nano_agent.observability.logging import get_logger

from .errors import McpClientError, McpTimeoutError
from .schema import normalize_content, normalize_tool_description, normalize_tool_schema
from .types import McpServerConfig

DISCONNECT_GRACE_S = 5.0


class McpSession(Protocol):
    """The slice of `mcp.ClientSession` this package relies on."""

    async def list_tools(self) -> Any: ...

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> Any: ...


SessionOpener = Callable[[McpServerConfig, McpTimeoutConfig], AsyncContextManager[McpSession]]


@asynccontextmanager
async def open_session(config: McpServerConfig, timeouts: McpTimeoutConfig) -> AsyncIterator[McpSession]:
    """Open the transport declared by `config` and an initialized ClientSession on top of it."""

    async with AsyncExitStack() as stack:
        if config.transport == "stdio":
            params = StdioServerParameters(
                command=config.command or "",
                args=list(config.args),
                env=dict(config.env) or None,
                cwd=config.cwd,
            )
            read, write = await stack.enter_async_context(stdio_client(params))
        elif config.transport == "sse":
            read, write = await stack.enter_async_context(
                sse_client(
                    config.url or "",
                    headers=dict(config.headers) or None,
                    timeout=timeouts.connect_timeout,
                    sse_read_timeout=timeouts.sse_read_timeout,
                )
            )
        else:
            read, write, _get_session_id = await stack.enter_async_context(
                streamablehttp_client(
                    config.url or "",
                    headers=dict(config.headers) or None,
                    timeout=timedelta(seconds=timeouts.connect_timeout),
                    sse_read_timeout=timedelta(seconds=timeouts.sse_read_timeout),
                )
            )

        session = await stack.enter_async_context(ClientSession(read, write))
        await session.initialize()
        yield session


def _seconds_label(seconds: float) -> str:
    return f"{seconds:g}s"


class McpTool:
    """A remote tool bound to a live session and an execute timeout."""

    def __init__(
        self,
        *,
        name: str,
        description: str,
        parameters: dict[str, Any],
        session: McpSession,
        execute_timeout: float,
        server: str = "",
    ) -> None:
        self.name = name
        self.description = description
        self.parameters = parameters
        self.server = server
        self._session = session
        self._execute_timeout = float(execute_timeout)
        self._log = get_logger("nano_agent.mcp")

    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        self._log.debug("mcp_call_request", server=self.server, tool=self.name, arguments=arguments)
        try:
            result = await asyncio.wait_for(
                self._session.call_tool(self.name, arguments=arguments),
                timeout=self._execute_timeout,
            )
        except TimeoutError:
            return ToolResult.fail(
                f"MCP tool execution timed out after {_seconds_label(self._execute_timeout)}. "
                "The remote server may be slow or unresponsive."
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:  # noqa: BLE001
            return ToolResult.fail(f"MCP tool execution failed: {e}")

        content = normalize_content(getattr(result, "content", None))
        is_error = bool(getattr(result, "isError", False))
        self._log.debug("mcp_call_response", server=self.server, tool=self.name, is_error=is_error)
        if is_error:
            return ToolResult.fail("Tool returned error", content=content)
        return ToolResult.ok(content)


class McpServerConnection:
    """One configured remote endpoint and the tools it exposes.

    `connect()` never raises: it returns False and leaves the connection torn
    down. `disconnect()` is idempotent and safe before or during `connect()`.
    """

    def __init__(
        self,
        config: McpServerConfig,
        *,
        defaults: McpTimeoutConfig | None = None,
        retry: RetryConfig | None = None,
        opener: SessionOpener = open_session,
    ) -> None:
        self.config = config
        self.timeouts = config.resolve_timeouts(defaults or McpTimeoutConfig())
        self.tools: list[McpTool] = []
        self.last_error: BaseException | None = None

        self._retry = retry
        self._opener = opener
        self._session: McpSession | None = None
        self._task: asyncio.Task[None] | None = None
        self._closing: asyncio.Event | None = None
        self._ready: asyncio.Future[list[Any]] | None = None
        self._log = get_logger("nano_agent.mcp")

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def connected(self) -> bool:
        return self._session is not None

    async def _serve(self, ready: asyncio.Future[list[Any]], closing: asyncio.Event) -> None:
        try:
            async with self._opener(self.config, self.timeouts) as session:
                listing = await session.list_tools()
                self._session = session
                if not ready.done():
                    ready.set_result(list(getattr(listing, "tools", None) or []))
                await closing.wait()
        except asyncio.CancelledError:
            if not ready.done():
                ready.cancel()
            raise
        except Exception as e:  # noqa: BLE001
            if not ready.done():
                ready.set_exception(e)
            else:
                self._log.warning("mcp_session_lost", server=self.name, error=str(e))
        finally:
            self._session = None

    async def _open_once(self) -> list[Any]:
        # A failed previous attempt may still own a half-open task.
        await self.disconnect()

        loop = asyncio.get_running_loop()
        ready: asyncio.Future[list[Any]] = loop.create_future()
        closing = asyncio.Event()
        self._closing = closing
        self._ready = ready
        self._task = asyncio.create_task(self._serve(ready, closing), name=f"mcp:{self.name}")
        return await ready

    def _on_retry(self, error: BaseException, attempt: int) -> None:
        self._log.warning("mcp_connect_retry", server=self.name, attempt=attempt, error=str(error))

    async def connect(self) -> bool:
        timeout = self.timeouts.connect_timeout

        async def open_all() -> list[Any]:
            if self._retry is not None and self._retry.enabled:
                return await async_retry(self._open_once, self._retry, self._on_retry)
            return await self._open_once()

        try:
            remote_tools = await asyncio.wait_for(open_all(), timeout=timeout)
        except TimeoutError:
            self.last_error = McpTimeoutError(timeout_s=timeout, operation="connect")
            self._log.error("mcp_connect_failed", server=self.name, error=str(self.last_error))
            await self.disconnect()
            return False
        except asyncio.CancelledError:
            await self.disconnect()
            raise
        except Exception as e:  # noqa: BLE001
            cause = e.last_error if isinstance(e, RetryExhaustedError) else e
            self.last_error = McpClientError("connect_failed", str(cause), details={"exc": type(cause).__name__})
            self._log.error("mcp_connect_failed", server=self.name, error=str(e))
            await self.disconnect()
            return False

        session = self._session
        if session is None:
            self.last_error = McpClientError("connect_failed", "session closed during connect")
            self._log.error("mcp_connect_failed", server=self.name, error=str(self.last_error))
            await self.disconnect()
            return False

        self.tools = [
            McpTool(
                name=str(getattr(t, "name", "")),
                description=normalize_tool_description(getattr(t, "description", "")),
                parameters=normalize_tool_schema(getattr(t, "inputSchema", None)),
                session=session,
                execute_timeout=self.timeouts.execute_timeout,
                server=self.name,
            )
            for t in remote_tools
            if getattr(t, "name", None)
        ]
        self.last_error = None
        self._log.info(
            "mcp_connected",
            server=self.name,
            transport=self.config.transport,
            tools=len(self.tools),
        )
        return True

    async def disconnect(self) -> None:
        task, closing, ready = self._task, self._closing, self._ready
        self._task = None
        self._closing = None
        self._ready = None
        self.tools = []
        if task is None:
            return

        if closing is not None:
            closing.set()
        if not task.done():
            done: set[asyncio.Task[None]] = set()
            # A session that never came up has nothing to close gracefully.
            if ready is not None and ready.done() and not ready.cancelled() and ready.exception() is None:
                done, _ = await asyncio.wait({task}, timeout=DISCONNECT_GRACE_S)
            if not done:
                task.cancel()
                await asyncio.wait({task})
        if not task.cancelled() and task.exception() is not None:
            self._log.warning("mcp_disconnect_error", server=self.name, error=str(task.exception()))
        self._session = None
