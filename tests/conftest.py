"""
Shared fixtures for the test suite.
"""

from __future__ import annotations

import json
from typing import Sequence
from unittest.mock import AsyncMock, MagicMock

import pytest

from pd_mcp.config import PDConfig
from pd_mcp.pdctl import ExecutionResult, PDControl


ENDPOINT = "http://127.0.0.1:2379"


# ---------------------------------------------------------------------------
# Subprocess mock factory
# ---------------------------------------------------------------------------

def make_proc(stdout: bytes = b"", stderr: bytes = b"", returncode: int = 0):
    """Mimics the object returned by asyncio.create_subprocess_exec."""
    proc = MagicMock()
    proc.returncode = returncode
    proc.communicate = AsyncMock(return_value=(stdout, stderr))
    proc.kill = MagicMock()
    proc.wait = AsyncMock(return_value=returncode)
    return proc


@pytest.fixture
def mock_run(monkeypatch):
    """
    Patches asyncio.create_subprocess_exec with a fake that pops responses
    from a queue. Positional arguments of every call are appended to
    ``queue.calls``.

    Usage:
        mock_run((b"output", b"", 0))
        mock_run((b"out1", b"", 0), (b"out2", b"", 0))  # multiple calls
    """
    responses: list[tuple[bytes, bytes, int]] = []
    calls: list[tuple] = []

    async def fake_exec(*args, **kwargs):
        assert responses, f"Unexpected pd-ctl call: {args}"
        calls.append(args)
        stdout, stderr, rc = responses.pop(0)
        return make_proc(stdout, stderr, rc)

    monkeypatch.setattr("asyncio.create_subprocess_exec", fake_exec)

    def queue(*items: tuple[bytes, bytes, int]):
        responses.extend(items)

    queue.calls = calls
    return queue


# ---------------------------------------------------------------------------
# Fake executor
# ---------------------------------------------------------------------------

class FakeExecutor:
    """Records every call and answers from a verb -> ExecutionResult table."""

    def __init__(self, responses: dict[str, ExecutionResult] | None = None):
        self.responses = responses or {}
        self.calls: list[tuple[str, list[str]]] = []

    @property
    def last_call(self) -> tuple[str, list[str]] | None:
        return self.calls[-1] if self.calls else None

    async def execute(self, command: str, args: Sequence[str]) -> ExecutionResult:
        self.calls.append((command, list(args)))
        verb = args[2] if len(args) > 2 else ""
        return self.responses.get(verb, ExecutionResult(0, b"success", b""))


@pytest.fixture
def pd_config() -> PDConfig:
    return PDConfig(pd_endpoint=ENDPOINT, pd_ctl_path="pd-ctl")


@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor({
        "health": ExecutionResult(0, HEALTH_JSON.encode(), b""),
        "store": ExecutionResult(1, b"", b"command not found"),
    })


@pytest.fixture
def pd_control(pd_config, fake_executor) -> PDControl:
    return PDControl(pd_config, fake_executor)


# ---------------------------------------------------------------------------
# Sample pd-ctl output
# ---------------------------------------------------------------------------

HEALTH_JSON = '{"health": "ok"}'

STORES_JSON = json.dumps({
    "count": 2,
    "stores": [
        {
            "store": {"id": 1, "address": "tikv-0:20160", "state_name": "Up"},
            "status": {"capacity": "100GiB", "available": "80GiB", "region_count": 21},
        },
        {
            "store": {"id": 4, "address": "tikv-1:20160", "state_name": "Offline"},
            "status": {"capacity": "100GiB", "available": "95GiB", "region_count": 3},
        },
    ],
}, indent=2)

SCHEDULERS_JSON = json.dumps([
    "balance-hot-region-scheduler",
    "balance-leader-scheduler",
    "balance-region-scheduler",
])
