"""
Async pd-ctl wrapper.

Uses asyncio.create_subprocess_exec — no shell involved. The command string
is split on whitespace and each token is passed as its own argument.

Safety features:
  - Base-verb allowlist checked before any process is spawned
  - Every failure is returned as a PDControlResponse; nothing is raised to callers
  - Optional timeout (PD_CTL_TIMEOUT); by default pd-ctl runs to completion
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol, Sequence

from pd_mcp.config import PDConfig


logger = logging.getLogger(__name__)

SUCCESS_MARKER = "Success!"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class PDControlError(Exception):
    """Base class for pd-ctl failures."""


class CommandNotAllowedError(PDControlError):
    """Raised when the base verb of a command is not in the allowlist."""

    def __init__(self, verb: str):
        super().__init__(f'Command "{verb}" is not allowed')
        self.verb = verb


class CommandFailedError(PDControlError):
    """Raised when pd-ctl exits with a non-zero status."""

    def __init__(self, stderr: str):
        super().__init__(f"PD Control command failed: {stderr}")
        self.stderr = stderr


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ExecutionResult:
    code: int
    stdout: bytes
    stderr: bytes


_UNSET: Any = object()


@dataclass
class PDControlResponse:
    """Structured outcome of one pd-ctl command.

    ``result`` is only present on success, ``error`` and ``command`` only on
    failure, and ``stderr`` only when pd-ctl itself exited non-zero.
    """

    success: bool
    result: Any = _UNSET
    error: str | None = None
    command: str | None = None
    stderr: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": self.success}
        if self.result is not _UNSET:
            out["result"] = self.result
        for key in ("error", "command", "stderr"):
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        return out

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


# ---------------------------------------------------------------------------
# Executors
# ---------------------------------------------------------------------------

class CommandExecutor(Protocol):
    """Runs an executable and reports its exit code and captured output."""

    async def execute(self, command: str, args: Sequence[str]) -> ExecutionResult:
        ...


class DefaultCommandExecutor:
    """Runs the command as a child process and waits for it to exit."""

    def __init__(self, timeout: float | None = None):
        self.timeout = timeout

    async def execute(self, command: str, args: Sequence[str]) -> ExecutionResult:
        proc = await asyncio.create_subprocess_exec(
            command,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        if self.timeout is None:
            stdout, stderr = await proc.communicate()
        else:
            try:
                stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
            except asyncio.TimeoutError:
                proc.kill()
                await proc.wait()
                raise PDControlError(
                    f"pd-ctl timed out after {self.timeout:g}s: {command} {' '.join(args)}"
                )

        return ExecutionResult(code=proc.returncode, stdout=stdout, stderr=stderr)


# ---------------------------------------------------------------------------
# Core functions
# ---------------------------------------------------------------------------

def _decode(data: bytes) -> str:
    return data.decode(errors="replace")


def split_command(command: str) -> list[str]:
    return command.split()


def base_verb(command: str) -> str:
    """First whitespace-delimited token of ``command``, or "" if it is blank."""
    parts = split_command(command)
    return parts[0] if parts else ""


def parse_command_output(output: str) -> PDControlResponse:
    """Turn raw pd-ctl stdout into a successful response.

    JSON objects and arrays are parsed; everything else (including the
    "Success!" marker) is returned as trimmed text. Malformed JSON falls back
    to the trimmed text as well.
    """
    trimmed = output.strip()

    if trimmed.startswith(("{", "[")):
        try:
            return PDControlResponse(success=True, result=json.loads(trimmed))
        except json.JSONDecodeError as e:
            logger.warning("Failed to parse PD Control command output: %s", e)
            return PDControlResponse(success=True, result=trimmed)

    if trimmed == SUCCESS_MARKER:
        return PDControlResponse(success=True, result=SUCCESS_MARKER)

    return PDControlResponse(success=True, result=trimmed)


class PDControl:
    """Executes allowlisted pd-ctl commands against a single PD endpoint."""

    def __init__(self, config: PDConfig, executor: CommandExecutor | None = None):
        self.config = config
        self.executor = executor or DefaultCommandExecutor(timeout=config.timeout)

    def build_args(self, command: str) -> list[str]:
        return ["-u", self.config.pd_endpoint, *split_command(command)]

    async def _run(self, command: str) -> PDControlResponse:
        verb = base_verb(command)
        if not self.config.is_allowed(verb):
            raise CommandNotAllowedError(verb)

        args = self.build_args(command)
        logger.info("pd-ctl %s", " ".join(args))
        result = await self.executor.execute(self.config.pd_ctl_path, args)

        if result.code != 0:
            raise CommandFailedError(_decode(result.stderr))

        return parse_command_output(_decode(result.stdout))

    async def execute(self, command: str) -> PDControlResponse:
        """Run ``command`` through pd-ctl. Never raises."""
        try:
            return await self._run(command)
        except CommandFailedError as e:
            logger.warning("pd-ctl command %r failed: %s", command, e.stderr.strip())
            return PDControlResponse(success=False, error=str(e), command=command, stderr=e.stderr)
        except CommandNotAllowedError as e:
            logger.warning("Rejected pd-ctl command %r", command)
            return PDControlResponse(success=False, error=str(e), command=command)
        except Exception as e:  # noqa: BLE001
            logger.error("pd-ctl command %r raised: %s", command, e)
            return PDControlResponse(success=False, error=str(e), command=command)
