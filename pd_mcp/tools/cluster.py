"""
PD cluster tools — thin MCP wrappers around PDControl.execute.

Read-only tools (no arguments, bound to a fixed pd-ctl command):
  get-cluster-info    — cluster
  get-store-info      — store
  get-region-info     — region
  get-config-info     — config show
  get-health-info     — health
  get-scheduler-info  — scheduler show

Free-form:
  execute-command     — any command whose first word is allowlisted

Every tool answers with the JSON-serialized PDControlResponse.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from mcp.types import TextContent, Tool

from pd_mcp.formatters import _err, json_text
from pd_mcp.pdctl import PDControl


logger = logging.getLogger(__name__)

Handler = Callable[[dict], Awaitable[list[TextContent]]]


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------

# (tool name, description, bound pd-ctl command)
READ_ONLY_COMMANDS: list[tuple[str, str, str]] = [
    ("get-cluster-info", "Get the current cluster info", "cluster"),
    ("get-store-info", "Get the current store info", "store"),
    ("get-region-info", "Get the current region info", "region"),
    ("get-config-info", "Get the current config info", "config show"),
    ("get-health-info", "Get the current health info", "health"),
    ("get-scheduler-info", "Get the current scheduler info", "scheduler show"),
]

EXECUTE_COMMAND = "execute-command"

CLUSTER_TOOLS: list[Tool] = [
    Tool(
        name=name,
        description=description,
        inputSchema={"type": "object", "properties": {}},
    )
    for name, description, _command in READ_ONLY_COMMANDS
] + [
    Tool(
        name=EXECUTE_COMMAND,
        description=(
            "Execute a pd-ctl command against the configured PD endpoint. "
            "The first word must be one of: cluster, config, health, hot, member, "
            "operator, region, scheduler, store. "
            "Examples: command='store 1', command='region topread 5', "
            "command='scheduler show'."
        ),
        inputSchema={
            "type": "object",
            "required": ["command"],
            "properties": {
                "command": {
                    "type": "string",
                    "description": "pd-ctl command line without the -u flag, e.g. 'member leader show'.",
                },
            },
        },
    ),
]


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

async def _run(pd: PDControl, name: str, command: str) -> list[TextContent]:
    try:
        response = await pd.execute(command)
    except Exception as exc:  # noqa: BLE001
        logger.error("Error running %s (%s): %s", name, command, exc)
        return json_text({"error": str(exc)})
    return json_text(response)


def _read_only_handler(pd: PDControl, name: str, command: str) -> Handler:
    async def handler(_args: dict) -> list[TextContent]:
        return await _run(pd, name, command)

    handler.__name__ = f"handle_{name.replace('-', '_')}"
    return handler


def make_cluster_handlers(pd: PDControl) -> dict[str, Handler]:
    """Bind every cluster tool to ``pd``."""

    async def handle_execute_command(args: dict) -> list[TextContent]:
        command = args.get("command")
        if not isinstance(command, str):
            return _err("'command' is required and must be a string.")
        return await _run(pd, EXECUTE_COMMAND, command)

    handlers: dict[str, Handler] = {
        name: _read_only_handler(pd, name, command)
        for name, _description, command in READ_ONLY_COMMANDS
    }
    handlers[EXECUTE_COMMAND] = handle_execute_command
    return handlers
