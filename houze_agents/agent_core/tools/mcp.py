"""MCP tool provider.

Exposes tools served by MCP servers over the streamable HTTP transport. Each
configured endpoint is a *tool group* (``ledgerapi``, ``crmapi``,
``documentsapi``) and its tools are published as ``<group>.<tool>``. Agents
declare whole groups by name; see ``tool_matches_declaration``.

Typical usage:
    provider = McpToolProvider({"ledgerapi": "http://ledgerservice/mcp"})
    tools = await provider.list_tools()
    res = await provider.invoke("ledgerapi.get_balance", {"accountId": "A-1"})
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Any, AsyncContextManager, AsyncIterator, Dict, List, Mapping, Optional, Protocol, Tuple

import httpx
from mcp import ClientSession
from mcp.client.streamable_http import streamablehttp_client
from mcp.shared.exceptions import McpError

from ...core.logging_config import get_logger
from ..errors import TransientToolError
from .base import ToolErrorKind, ToolResult, ToolSpec

GROUP_SEPARATOR = "."


class AsyncMCPTransport(Protocol):
    """Creates initialized MCP ``ClientSession`` connections."""

    def session(self, endpoint_url: str) -> AsyncContextManager[ClientSession]: ...


class StreamableHttpMCPTransport:
    """MCP transport using the streamable HTTP client."""

    def session(self, endpoint_url: str) -> AsyncContextManager[ClientSession]:
        @asynccontextmanager
        async def _cm() -> AsyncIterator[ClientSession]:
            async with streamablehttp_client(endpoint_url) as (read_stream, write_stream, _close_fn):
                async with ClientSession(read_stream, write_stream) as session:
                    await session.initialize()
                    yield session

        return _cm()


def qualify(group: str, tool: str) -> str:
    return f"{group}{GROUP_SEPARATOR}{tool}"


def split_qualified(name: str) -> Tuple[str, str]:
    group, sep, tool = name.partition(GROUP_SEPARATOR)
    if not sep or not group or not tool:
        return "", name
    return group, tool


class McpToolProvider:
    """
    Tool provider backed by one MCP server per tool group.

    A short-lived session is opened per call, which keeps the provider
    stateless. Tool listings are cached per group for ``ttl_seconds``.

    Error mapping:
        - unknown group or tool name -> ``ToolResult`` with ``not_found``
        - tool reported ``isError`` or the server raised ``McpError`` ->
          ``ToolResult`` with ``invocation_failed``
        - HTTP transport failures -> ``TransientToolError`` (retried by the engine)
    """

    def __init__(
        self,
        endpoints: Mapping[str, str],
        *,
        ttl_seconds: float = 30.0,
        transport: Optional[AsyncMCPTransport] = None,
    ) -> None:
        self._endpoints: Dict[str, str] = {k: v.rstrip("/") for k, v in endpoints.items()}
        self._ttl = ttl_seconds
        self._transport: AsyncMCPTransport = transport or StreamableHttpMCPTransport()
        self._tools_cache: Dict[str, Tuple[List[ToolSpec], float]] = {}
        self._logger = get_logger(__name__)

    @property
    def groups(self) -> List[str]:
        return list(self._endpoints)

    async def list_tools(self) -> List[ToolSpec]:
        tools: List[ToolSpec] = []
        for group in self._endpoints:
            tools.extend(await self._list_group(group))
        return tools

    async def _list_group(self, group: str) -> List[ToolSpec]:
        cached = self._tools_cache.get(group)
        now = time.monotonic()
        if cached and cached[1] > now:
            return list(cached[0])

        tools: List[ToolSpec] = []
        try:
            async with self._transport.session(self._endpoints[group]) as session:
                self._logger.debug("McpToolProvider.list_tools: group=%s", group)
                resp = await session.list_tools()
        except (httpx.TransportError, OSError) as e:
            raise TransientToolError(group, f"listing tools failed: {e}", cause=e) from e

        for tool in getattr(resp, "tools", []) or []:
            name = getattr(tool, "name", None)
            if not isinstance(name, str) or not name:
                continue
            desc_val = getattr(tool, "description", None)
            schema = getattr(tool, "inputSchema", None) or {}
            if not isinstance(schema, dict):
                schema = {}
            tools.append(
                ToolSpec(
                    name=qualify(group, name),
                    description=desc_val if isinstance(desc_val, str) else None,
                    input_schema=schema,
                )
            )
        self._tools_cache[group] = (tools, now + self._ttl)
        return tools

    async def invoke(self, name: str, arguments: Dict[str, Any]) -> ToolResult:
        group, tool = split_qualified(name)
        endpoint = self._endpoints.get(group)
        if endpoint is None:
            return ToolResult.failure(ToolErrorKind.not_found, f"unknown tool group for '{name}'")

        try:
            async with self._transport.session(endpoint) as session:
                self._logger.debug(
                    "McpToolProvider.invoke: group=%s tool=%s args_keys=%s",
                    group,
                    tool,
                    list((arguments or {}).keys()),
                )
                res = await session.call_tool(name=tool, arguments=arguments or {})
        except McpError as e:
            return ToolResult.failure(ToolErrorKind.invocation_failed, str(e))
        except (httpx.TransportError, OSError) as e:
            raise TransientToolError(name, str(e), cause=e) from e

        text = _content_text(res)
        if getattr(res, "isError", False):
            return ToolResult.failure(ToolErrorKind.invocation_failed, text or f"tool '{name}' reported an error")
        structured = getattr(res, "structuredContent", None)
        return ToolResult.success(structured if structured is not None else text)


def _content_text(res: Any) -> str:
    parts: List[str] = []
    for block in getattr(res, "content", []) or []:
        text = getattr(block, "text", None)
        if isinstance(text, str):
            parts.append(text)
    return "\n".join(parts)
