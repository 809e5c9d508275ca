"""
PD MCP server — pd-ctl backed tools for PD cluster administration.

Exposes the read-only cluster/store/region/config/health/scheduler tools and a
free-form execute-command tool over either transport:
  • stdio     — for MCP clients that spawn the server as a subprocess
  • http      — SSE stream at GET /sse, client messages at POST /messages/

Environment variables:
  PD_ENDPOINT=http://127.0.0.1:2379 — PD endpoint handed to pd-ctl
  PD_CTL_PATH=pd-ctl                — pd-ctl executable
  PD_CTL_TIMEOUT=30                 — optional pd-ctl timeout in seconds
  PD_MCP_LOG_LEVEL=INFO             — log level (logs always go to stderr)

Run with:
    pd-mcp-ctl stdio
    pd-mcp-ctl http --port 2499
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import shutil
import time
from typing import Sequence

from mcp.server import Server
from mcp.server.sse import SseServerTransport
from mcp.server.stdio import stdio_server
from mcp.types import (
    CallToolResult,
    ListToolsResult,
    TextContent,
)
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Mount, Route

from pd_mcp.config import (
    DEFAULT_HTTP_PORT,
    SERVER_NAME,
    VERSION,
    PDConfig,
    configure_logging,
    load_config,
)
from pd_mcp.formatters import ToolError
from pd_mcp.pdctl import CommandExecutor, PDControl
from pd_mcp.tools.cluster import CLUSTER_TOOLS, Handler, make_cluster_handlers


logger = logging.getLogger(__name__)

ALL_TOOLS = CLUSTER_TOOLS


# ---------------------------------------------------------------------------
# Server setup
# ---------------------------------------------------------------------------

async def dispatch(handlers: dict[str, Handler], name: str, arguments: dict | None) -> CallToolResult:
    handler = handlers.get(name)
    if handler is None:
        return CallToolResult(
            content=[TextContent(type="text", text=f"Unknown tool: {name}")],
            isError=True,
        )

    try:
        content = await handler(arguments or {})
    except Exception as exc:  # noqa: BLE001
        logger.exception("Tool %s failed", name)
        return CallToolResult(
            content=[TextContent(type="text", text=f"Unexpected error: {exc}")],
            isError=True,
        )
    return CallToolResult(content=content, isError=isinstance(content, ToolError))


def create_server(config: PDConfig, executor: CommandExecutor | None = None) -> Server:
    """Build an MCP server whose tools run pd-ctl according to ``config``."""
    pd = PDControl(config, executor)
    handlers = make_cluster_handlers(pd)
    server = Server(SERVER_NAME, version=VERSION)

    @server.list_tools()
    async def list_tools() -> ListToolsResult:
        return ListToolsResult(tools=ALL_TOOLS)

    @server.call_tool()
    async def call_tool(name: str, arguments: dict) -> CallToolResult:
        return await dispatch(handlers, name, arguments)

    return server


# ---------------------------------------------------------------------------
# HTTP/SSE transport
# ---------------------------------------------------------------------------

class RequestLogMiddleware:
    """Log method, path, status and duration once each response finishes.

    Plain ASGI rather than BaseHTTPMiddleware so SSE streams are not buffered.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start = time.monotonic()
        status = 500

        async def send_wrapper(message):
            nonlocal status
            if message["type"] == "http.response.start":
                status = message["status"]
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            elapsed_ms = (time.monotonic() - start) * 1000
            path = scope.get("path", "")
            if scope.get("query_string"):
                path = f"{path}?{scope['query_string'].decode(errors='replace')}"
            logger.info("%s %s - %s - %.0fms", scope.get("method"), path, status, elapsed_ms)


def create_http_app(server: Server) -> Starlette:
    """Starlette app serving ``server`` over SSE, one MCP session per stream."""
    sse = SseServerTransport("/messages/")

    async def handle_sse(request: Request) -> Response:
        async with sse.connect_sse(request.scope, request.receive, request._send) as (read_stream, write_stream):
            await server.run(
                read_stream,
                write_stream,
                server.create_initialization_options(),
            )
        return Response()

    async def health_check(_request: Request) -> JSONResponse:
        return JSONResponse({"status": "healthy"})

    app = Starlette(
        routes=[
            Route("/sse", endpoint=handle_sse, methods=["GET"]),
            Mount("/messages/", app=sse.handle_post_message),
            Route("/health", endpoint=health_check, methods=["GET"]),
        ],
    )
    app.add_middleware(RequestLogMiddleware)
    return app


# ---------------------------------------------------------------------------
# Startup preflight
# ---------------------------------------------------------------------------

def _preflight(config: PDConfig) -> None:
    """Warn early when pd-ctl cannot be found; tools will fail until it can."""
    if not shutil.which(config.pd_ctl_path):
        logger.warning(
            "pd-ctl not found at %r. Install pd-ctl or set PD_CTL_PATH.",
            config.pd_ctl_path,
        )
    logger.info("Using PD endpoint %s", config.pd_endpoint)


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

async def run_stdio(config: PDConfig) -> None:
    server = create_server(config)
    logger.info("%s starting on stdio — %d tools registered", SERVER_NAME, len(ALL_TOOLS))
    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )


def run_http(config: PDConfig, host: str, port: int) -> None:
    import uvicorn

    app = create_http_app(create_server(config))
    logger.info("%s SSE server listening on %s:%d", SERVER_NAME, host, port)
    uvicorn.run(app, host=host, port=port, log_level="warning")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=SERVER_NAME,
        description="CLI for managing and dispatching the pd-mcp-ctl server",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    sub = parser.add_subparsers(dest="transport", required=True)

    sub.add_parser("stdio", help="Start the MCP server with stdio transport")

    http = sub.add_parser("http", help="Start the MCP server with HTTP/SSE transport")
    http.add_argument("-p", "--port", type=int, default=DEFAULT_HTTP_PORT, help="Port to listen on")
    http.add_argument("--host", default="0.0.0.0", help="Interface to bind")
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging()
    config = load_config()
    _preflight(config)

    if args.transport == "stdio":
        asyncio.run(run_stdio(config))
    else:
        run_http(config, args.host, args.port)


if __name__ == "__main__":
    main()
