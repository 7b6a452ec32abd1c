"""External command execution for the types and test stages."""

from __future__ import annotations

import asyncio
import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*[A-Za-z]")


def strip_ansi(text: str) -> str:
    return _ANSI_RE.sub("", text)


@dataclass
class CommandResult:
    """Outcome of one external command."""

    returncode: int | None = None
    output: str = ""
    timed_out: bool = False
    not_found: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out


def _run(args: list[str], cwd: Path, timeout: int) -> CommandResult:
    try:
        result = subprocess.run(
            args,
            cwd=str(cwd),
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        logger.warning("Command timed out after %ds: %s", timeout, " ".join(args))
        return CommandResult(
            output=f"Command timed out after {timeout} seconds", timed_out=True
        )
    except FileNotFoundError:
        logger.error("Command not found: %s", args[0])
        return CommandResult(output=f"Command not found: {args[0]}", not_found=True)

    output = strip_ansi(result.stdout + result.stderr)
    if result.returncode == 0:
        logger.debug("Command succeeded: %s", " ".join(args))
    else:
        logger.info("Command exited with %d: %s", result.returncode, " ".join(args))
    return CommandResult(returncode=result.returncode, output=output)


async def run_command(args: list[str], cwd: Path, timeout: int) -> CommandResult:
    """Run ``args`` in ``cwd`` off the event loop, killing it after ``timeout`` seconds."""
    if not args:
        raise ValueError("Empty command")
    return await asyncio.to_thread(_run, list(args), Path(cwd), timeout)
