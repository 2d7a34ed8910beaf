"""
Process execution for tools that shell out to platform utilities
(xdotool, cliclick, powershell, screencapture, import, xwininfo, ...).

Commands are always argv lists; nothing goes through a shell.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import sys
from collections.abc import Sequence
from dataclasses import dataclass

from agent_toolbox.mcp_base import CapabilityError, PlatformUnsupportedError

_logger = logging.getLogger("agent_toolbox.shell")

DEFAULT_TIMEOUT: float = 30.0

SUPPORTED_PLATFORMS: frozenset[str] = frozenset({"linux", "darwin", "win32"})


@dataclass
class CommandResult:
    """Outcome of a finished command."""

    argv: list[str]
    returncode: int
    stdout: str
    stderr: str


def current_platform() -> str:
    """Normalized platform name: linux, darwin, win32 or the raw sys.platform."""
    if sys.platform.startswith("linux"):
        return "linux"
    return sys.platform


def require_platform(action: str) -> str:
    """Return the current platform or raise if the toolbox has no commands for it."""
    platform = current_platform()
    if platform not in SUPPORTED_PLATFORMS:
        raise PlatformUnsupportedError(f"{action} is not supported on platform: {platform}")
    return platform


def command_available(name: str) -> bool:
    return shutil.which(name) is not None


async def run_command(
    argv: Sequence[str],
    timeout: float = DEFAULT_TIMEOUT,
    check: bool = True,
) -> CommandResult:
    """
    Run a command and wait for it to finish.

    Raises:
        CapabilityError: the executable is missing, the command timed out,
            or (with check=True) it exited with a non-zero status.
    """
    args = [str(a) for a in argv]
    _logger.debug("Running %s", args)

    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        raise CapabilityError(f"Command not found: {args[0]}") from exc
    except OSError as exc:
        raise CapabilityError(f"Failed to start {args[0]}: {exc}") from exc

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError as exc:
        proc.kill()
        await proc.wait()
        raise CapabilityError(f"{args[0]} timed out after {timeout:g} seconds") from exc

    result = CommandResult(
        argv=args,
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )
    if check and result.returncode != 0:
        detail = result.stderr.strip() or result.stdout.strip() or "no output"
        raise CapabilityError(f"{args[0]} exited with status {result.returncode}: {detail}")
    return result


async def run_first_available(
    candidates: Sequence[Sequence[str]],
    timeout: float = DEFAULT_TIMEOUT,
) -> CommandResult:
    """Try each command in order and return the first that succeeds."""
    failures: list[str] = []
    for argv in candidates:
        try:
            return await run_command(argv, timeout=timeout)
        except CapabilityError as exc:
            failures.append(str(exc))
    raise CapabilityError("No working command: " + "; ".join(failures))
