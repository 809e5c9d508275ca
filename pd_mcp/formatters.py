"""Shared output formatting helpers."""

from __future__ import annotations

import json
from typing import Any

from mcp.types import TextContent

from pd_mcp.pdctl import PDControlResponse


# ---------------------------------------------------------------------------
# Shared error helper
# ---------------------------------------------------------------------------

class ToolError(list):
    """Sentinel list subclass returned by tool handlers to indicate an error.

    Wraps a ``list[TextContent]`` so existing handler return-type contracts
    are preserved while ``server.py`` can detect errors via ``isinstance()``.
    """


def _err(msg: str) -> list[TextContent]:
    """Return an error response that ``server.py`` will mark with ``isError=True``."""
    return ToolError([TextContent(type="text", text=f"Error: {msg}")])


def json_text(payload: Any) -> list[TextContent]:
    """Serialize ``payload`` (a response or plain data) as a single JSON text block."""
    if isinstance(payload, PDControlResponse):
        text = payload.to_json()
    else:
        text = json.dumps(payload)
    return [TextContent(type="text", text=text)]
