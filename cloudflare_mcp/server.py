# -*- coding: utf-8 -*-
"""Location: ./cloudflare_mcp/server.py
Copyright 2026
SPDX-License-Identifier: Apache-2.0

Cloudflare API MCP server (stdio).

Two tools are exposed:

- ``search``: run a Python script against the resolved OpenAPI spec.
- ``execute``: run a Python script against the Cloudflare API with
  ``cloudflare.request(...)``.

Both return the script result as text, truncated to the response budget, or a
single ``Error: <message>`` line with ``isError`` set.

Usage:
    cloudflare-mcp                      # reads CLOUDFLARE_API_TOKEN from env/.env
    CLOUDFLARE_ACCOUNT_ID=abc cloudflare-mcp
"""

# Standard
import asyncio
import logging
from typing import Any, Dict, List, Optional

# Third-Party
import httpx
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import CallToolResult, TextContent, Tool

# First-Party
from cloudflare_mcp import __version__
from cloudflare_mcp.config import Settings, settings
from cloudflare_mcp.errors import CloudflareMCPError, ConfigurationError, ScriptExecutionError
from cloudflare_mcp.sandbox.gateway import ApiExecutionGateway, ExecutionResult, SpecQueryGateway
from cloudflare_mcp.sandbox.providers import ExecutionProvider, SubprocessExecutionProvider
from cloudflare_mcp.services.account_service import AccountResolver
from cloudflare_mcp.services.logging_service import LoggingService
from cloudflare_mcp.spec.index import get_spec_index, load_spec_index, SpecIndex
from cloudflare_mcp.utils.truncate import truncate_response

logging_service = LoggingService()
logger = logging_service.get_logger(__name__)

SERVER_NAME = "cloudflare-api"
PRODUCTS_IN_DESCRIPTION = 30
MISSING_API_BASE = "Cloudflare API base is missing; provide account_id explicitly."

SPEC_TYPES = """
spec = {"paths": {path: {method: operation}}}   # method is one of get, post, put, patch, delete

operation keys (all optional):
  summary: str
  description: str
  tags: list[str]                 # first tag is the product, e.g. "workers"
  parameters: list[{"name", "in", "required", "schema", "description"}]
  requestBody: {"required": bool, "content": {media_type: {"schema": ...}}}
  responses: {status: {"description": str, "content": {media_type: {"schema": ...}}}}

Schemas are fully inlined. A recursive schema is cut with {"$circular": "<json pointer>"}.
"""

CLOUDFLARE_TYPES = """
await cloudflare.request(
    method,              # "GET" | "POST" | "PUT" | "PATCH" | "DELETE"
    path,                # e.g. f"/accounts/{account_id}/workers/scripts"
    query=None,          # dict; None values are dropped, booleans sent as true/false
    body=None,           # JSON-encoded unless raw_body=True
    content_type=None,   # defaults to application/json when a body is present
    raw_body=False,      # send body as-is (str or bytes)
) -> dict                # {"success", "result", "errors", "messages", "result_info"}

A response with success false raises an exception "Cloudflare API error: <code>: <message>, ...".
Non-JSON responses come back as {"success": True, "result": <text>}.

account_id: str          # the account this call runs against
gather, sleep            # asyncio.gather / asyncio.sleep
Allowed imports: base64, collections, datetime, functools, itertools, json, math, re, statistics, string, time, typing, urllib.parse
"""

SEARCH_EXAMPLES = """
# Find endpoints by product
results = []
for path, methods in spec["paths"].items():
    for method, op in methods.items():
        if any(tag.lower() == "workers" for tag in op.get("tags", [])):
            results.append({"method": method.upper(), "path": path, "summary": op.get("summary")})
return results

# Get endpoint with requestBody schema (refs are resolved)
op = spec["paths"].get("/accounts/{account_id}/d1/database", {}).get("post", {})
return {"summary": op.get("summary"), "requestBody": op.get("requestBody")}

# Get endpoint parameters
return spec["paths"]["/accounts/{account_id}/workers/scripts"]["get"].get("parameters")
"""

EXECUTE_EXAMPLE = """
# Worker with bindings (requires multipart/form-data)
import json, time
script = "addEventListener('fetch', e => e.respondWith(MY_KV.get('key').then(v => new Response(v || 'none'))));"
metadata = {"body_part": "script", "bindings": [{"type": "kv_namespace", "name": "MY_KV", "namespace_id": "your-kv-id"}]}
boundary = f"F{int(time.time() * 1000)}"
body = "\\r\\n".join([
    f"--{boundary}", 'Content-Disposition: form-data; name="metadata"', "Content-Type: application/json", "", json.dumps(metadata),
    f"--{boundary}", 'Content-Disposition: form-data; name="script"', "Content-Type: application/javascript", "", script,
    f"--{boundary}--",
])
return await cloudflare.request("PUT", f"/accounts/{account_id}/workers/scripts/my-worker", body=body,
                                content_type=f"multipart/form-data; boundary={boundary}", raw_body=True)
"""


def search_description(products: List[str]) -> str:
    """Build the ``search`` tool description.

    Args:
        products: Product names ordered by path count.

    Returns:
        str: Tool description.

    Examples:
        >>> "Products: workers, r2... (2 total)" in search_description(["workers", "r2"])
        True
    """
    listed = ", ".join(products[:PRODUCTS_IN_DESCRIPTION])
    return (
        "Search the Cloudflare OpenAPI spec. All $refs are pre-resolved inline.\n\n"
        f"Products: {listed}... ({len(products)} total)\n\n"
        f"Types:\n{SPEC_TYPES}\n"
        "Your code is the body of an async Python function; `return` the result.\n\n"
        f"Examples:\n{SEARCH_EXAMPLES}"
    )


def execute_description() -> str:
    """Build the ``execute`` tool description.

    Returns:
        str: Tool description.
    """
    return (
        "Execute Python code against the Cloudflare API. First use the 'search' tool to find the right endpoints, "
        "then write code using the cloudflare.request() function.\n\n"
        f"Available in your code:\n{CLOUDFLARE_TYPES}\n"
        "Your code is the body of an async Python function; `return` the result.\n\n"
        f"Example:\n{EXECUTE_EXAMPLE}"
    )


def _error_result(message: str) -> CallToolResult:
    """Build an error response.

    Args:
        message: Error message.

    Returns:
        CallToolResult: ``Error: <message>`` text with ``isError`` set.
    """
    return CallToolResult(content=[TextContent(type="text", text=f"Error: {message}")], isError=True)


class CloudflareToolHandlers:
    """Implementation of the ``search`` and ``execute`` tools.

    With a fixed ``account_id`` the ``execute`` tool takes no account argument;
    otherwise the caller may name one and, when omitted, the only account
    visible to the token is used.
    """

    def __init__(
        self,
        spec_index: SpecIndex,
        api_gateway: ApiExecutionGateway,
        search_gateway: SpecQueryGateway,
        api_token: str,
        account_id: Optional[str] = None,
        account_resolver: Optional[AccountResolver] = None,
        max_tokens: int = 6000,
        chars_per_token: int = 4,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Create the handlers.

        Args:
            spec_index: Loaded spec index.
            api_gateway: Gateway for the API-proxy variant.
            search_gateway: Gateway for the spec-query variant.
            api_token: Credential for every upstream request.
            account_id: Fixed account id; enables fixed-account mode.
            account_resolver: Resolver used when no account id is given. None when the API base is unknown.
            max_tokens: Response budget in tokens.
            chars_per_token: Characters per token.
            http_client: Shared client closed by :meth:`aclose`.
        """
        self.spec_index = spec_index
        self.api_gateway = api_gateway
        self.search_gateway = search_gateway
        self._api_token = api_token
        self.account_id = account_id
        self.account_resolver = account_resolver
        self.max_tokens = max_tokens
        self.chars_per_token = chars_per_token
        self._http_client = http_client

    @property
    def fixed_account(self) -> bool:
        """Whether the account id is fixed by configuration.

        Returns:
            bool: True in fixed-account mode.
        """
        return bool(self.account_id)

    def list_tools(self) -> List[Tool]:
        """Describe the two tools.

        Returns:
            List[Tool]: ``search`` and ``execute``.
        """
        execute_properties: Dict[str, Any] = {"code": {"type": "string", "description": "Python async function body to execute"}}
        if not self.fixed_account:
            execute_properties["account_id"] = {
                "type": "string",
                "description": "Optional Cloudflare account ID (if omitted, auto-resolves when only one account is available)",
            }
        return [
            Tool(
                name="search",
                description=search_description(self.spec_index.products),
                inputSchema={
                    "type": "object",
                    "properties": {"code": {"type": "string", "description": "Python async function body to search the OpenAPI spec"}},
                    "required": ["code"],
                },
            ),
            Tool(
                name="execute",
                description=execute_description(),
                inputSchema={"type": "object", "properties": execute_properties, "required": ["code"]},
            ),
        ]

    def _render(self, result: ExecutionResult) -> CallToolResult:
        """Turn an execution result into a tool response.

        Args:
            result: Gateway outcome.

        Returns:
            CallToolResult: Truncated text or an error response.
        """
        try:
            value = result.unwrap()
        except ScriptExecutionError as exc:
            return _error_result(str(exc))
        text = truncate_response(value, max_tokens=self.max_tokens, chars_per_token=self.chars_per_token)
        return CallToolResult(content=[TextContent(type="text", text=text)], isError=False)

    async def search(self, code: str) -> CallToolResult:
        """Run ``code`` against the resolved spec.

        Args:
            code: Script body.

        Returns:
            CallToolResult: Tool response.
        """
        return self._render(await self.search_gateway.execute(code))

    async def resolve_account(self, account_id: Optional[str]) -> str:
        """Pick the account an ``execute`` call runs against.

        Args:
            account_id: Account named by the caller, if any.

        Returns:
            str: Account id.

        Raises:
            ConfigurationError: If no account is named and the API base is unknown.
        """
        if self.fixed_account:
            return str(self.account_id)
        if account_id:
            return account_id
        if self.account_resolver is None:
            raise ConfigurationError(MISSING_API_BASE)
        return await self.account_resolver.resolve(self._api_token)

    async def execute(self, code: str, account_id: Optional[str] = None) -> CallToolResult:
        """Run ``code`` against the Cloudflare API.

        Args:
            code: Script body.
            account_id: Account named by the caller; ignored in fixed-account mode.

        Returns:
            CallToolResult: Tool response.
        """
        try:
            resolved = await self.resolve_account(account_id)
        except CloudflareMCPError as exc:
            return _error_result(str(exc))
        return self._render(await self.api_gateway.execute(code, resolved, self._api_token))

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> CallToolResult:
        """Dispatch a tool call.

        Args:
            name: Tool name.
            arguments: Tool arguments.

        Returns:
            CallToolResult: Tool response; never raises.
        """
        code = arguments.get("code")
        if name not in ("search", "execute"):
            return _error_result(f"Unknown tool: {name}")
        if not isinstance(code, str):
            return _error_result("Missing 'code' argument")

        try:
            if name == "search":
                return await self.search(code)
            account_id = arguments.get("account_id")
            return await self.execute(code, account_id if isinstance(account_id, str) and account_id else None)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.error("Unexpected failure in tool %s", name, exc_info=True)
            return _error_result(str(exc) or exc.__class__.__name__)

    async def aclose(self) -> None:
        """Release the execution provider and the shared HTTP client."""
        await self.api_gateway.provider.aclose()
        if self.search_gateway.provider is not self.api_gateway.provider:
            await self.search_gateway.provider.aclose()
        if self.account_resolver is not None:
            await self.account_resolver.aclose()
        if self._http_client is not None:
            await self._http_client.aclose()


def build_handlers(config: Settings, spec_index: Optional[SpecIndex] = None, provider: Optional[ExecutionProvider] = None) -> CloudflareToolHandlers:
    """Wire the tool handlers from settings.

    Args:
        config: Settings.
        spec_index: Spec index; the process-wide index when omitted.
        provider: Execution provider; a subprocess provider is built when omitted.

    Returns:
        CloudflareToolHandlers: Ready handlers.

    Raises:
        ConfigurationError: If no API token is configured.
        SpecIndexError: If no index is given and none has been loaded.
    """
    if config.cloudflare_api_token is None or not config.cloudflare_api_token.get_secret_value():
        raise ConfigurationError("CLOUDFLARE_API_TOKEN is not set")
    if spec_index is None:
        spec_index = get_spec_index()

    http_client = httpx.AsyncClient(timeout=config.http_timeout_seconds)
    api_base = config.cloudflare_api_base
    if provider is None:
        provider = SubprocessExecutionProvider(
            python_executable=config.sandbox_python,
            work_dir=config.sandbox_work_dir,
            http_client=http_client,
            allowed_origins=[api_base] if config.sandbox_restrict_fetch and api_base else None,
            max_message_bytes=config.sandbox_max_message_bytes,
        )

    return CloudflareToolHandlers(
        spec_index=spec_index,
        api_gateway=ApiExecutionGateway(provider, api_base, timeout_ms=config.execution_timeout_ms),
        search_gateway=SpecQueryGateway(provider, spec_index.to_json(), timeout_ms=config.execution_timeout_ms),
        api_token=config.cloudflare_api_token.get_secret_value(),
        account_id=config.cloudflare_account_id,
        account_resolver=AccountResolver(api_base, http_client=http_client) if api_base else None,
        max_tokens=config.response_max_tokens,
        chars_per_token=config.response_chars_per_token,
        http_client=http_client,
    )


def create_server(handlers: CloudflareToolHandlers) -> Server:
    """Register the tools on a low-level MCP server.

    Args:
        handlers: Tool handlers.

    Returns:
        Server: Configured server.
    """
    server = Server(SERVER_NAME, version=__version__)

    @server.list_tools()
    async def list_tools() -> List[Tool]:
        return handlers.list_tools()

    @server.call_tool()
    async def call_tool(name: str, arguments: Dict[str, Any]) -> CallToolResult:
        return await handlers.call_tool(name, arguments or {})

    return server


async def main() -> None:
    """Load the spec index and serve the tools over stdio.

    Raises:
        ConfigurationError: If no API token is configured.
        SpecIndexError: If the resolved spec cannot be loaded.
    """
    await logging_service.initialize()
    load_spec_index(settings.spec_data_dir)
    handlers = build_handlers(settings)
    server = create_server(handlers)
    mode = "fixed account" if handlers.fixed_account else "account auto-resolution"
    logger.info("Starting Cloudflare API MCP server (stdio, %s)...", mode)
    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
    finally:
        await handlers.aclose()
        await logging_service.shutdown()


def run() -> int:
    """Console entry point.

    Returns:
        int: Process exit code.
    """
    try:
        asyncio.run(main())
    except CloudflareMCPError as exc:
        logging.getLogger(__name__).error("%s", exc)
        return 1
    except KeyboardInterrupt:
        return 0
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(run())
