"""
Process-wide configuration for the PD MCP server.

Built once at startup by ``load_config()`` and handed to ``PDControl``;
nothing else reads the environment.

Environment variables:
  PD_ENDPOINT=http://host:2379  — PD endpoint passed to pd-ctl via -u
  PD_CTL_PATH=/path/to/pd-ctl   — pd-ctl executable (default: looked up on PATH)
  PD_CTL_TIMEOUT=30             — optional seconds before pd-ctl is killed (default: none)
  PD_MCP_LOG_LEVEL=DEBUG        — log level for the pd_mcp loggers (default: INFO)
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Mapping


VERSION = "0.1.0"
SERVER_NAME = "pd-mcp-ctl"
DEFAULT_HTTP_PORT = 2499

PD_ENDPOINT_ENV_VAR = "PD_ENDPOINT"
PD_CTL_PATH_ENV_VAR = "PD_CTL_PATH"
PD_CTL_TIMEOUT_ENV_VAR = "PD_CTL_TIMEOUT"
LOG_LEVEL_ENV_VAR = "PD_MCP_LOG_LEVEL"

DEFAULT_PD_ENDPOINT = "http://127.0.0.1:2379"
DEFAULT_PD_CTL_PATH = "pd-ctl"

# Top-level pd-ctl verbs that may be executed. Anything else is rejected
# before a process is spawned.
ALLOWED_COMMANDS: frozenset[str] = frozenset({
    "cluster",
    "config",
    "health",
    "hot",
    "member",
    "operator",
    "region",
    "scheduler",
    "store",
})

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass(frozen=True)
class PDConfig:
    """Settings for talking to PD through pd-ctl."""

    pd_endpoint: str = DEFAULT_PD_ENDPOINT
    pd_ctl_path: str = DEFAULT_PD_CTL_PATH
    allowed_commands: frozenset[str] = field(default=ALLOWED_COMMANDS)
    timeout: float | None = None

    def is_allowed(self, verb: str) -> bool:
        return verb in self.allowed_commands


def _parse_timeout(raw: str | None) -> float | None:
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{PD_CTL_TIMEOUT_ENV_VAR} must be a number of seconds, got {raw!r}")
    if value <= 0:
        raise ValueError(f"{PD_CTL_TIMEOUT_ENV_VAR} must be positive, got {raw!r}")
    return value


def load_config(environ: Mapping[str, str] | None = None) -> PDConfig:
    """Build a ``PDConfig`` from the environment (or an explicit mapping)."""
    env = os.environ if environ is None else environ
    return PDConfig(
        pd_endpoint=env.get(PD_ENDPOINT_ENV_VAR) or DEFAULT_PD_ENDPOINT,
        pd_ctl_path=env.get(PD_CTL_PATH_ENV_VAR) or DEFAULT_PD_CTL_PATH,
        timeout=_parse_timeout(env.get(PD_CTL_TIMEOUT_ENV_VAR)),
    )


def configure_logging(level: str | None = None) -> None:
    """Send pd_mcp logs to stderr; stdout belongs to the stdio transport."""
    level = (level or os.environ.get(LOG_LEVEL_ENV_VAR) or "INFO").upper()
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)
