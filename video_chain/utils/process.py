"""
External Tool Runner
====================

Async wrapper around the ffmpeg/ffprobe command line tools.

The runner is injected into the continuity extractor and the concatenation
engine so tests can substitute a fake that fakes the tools' file outputs.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

logger = logging.getLogger(__name__)


# Subprocess timeout in seconds
SUBPROCESS_TIMEOUT = 600


@dataclass
class ToolResult:
    """Outcome of one tool invocation."""

    args: Sequence[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def tail(self, lines: int = 5) -> str:
        """Last lines of stderr, where ffmpeg reports what went wrong."""
        return "\n".join(self.stderr.strip().splitlines()[-lines:])


class ToolRunner:
    """Runs command line tools without blocking the event loop."""

    def __init__(self, timeout: float = SUBPROCESS_TIMEOUT):
        self.timeout = timeout

    async def run(self, args: Sequence[str], timeout: Optional[float] = None) -> ToolResult:
        """
        Run a command and capture its output.

        A missing executable or a timeout is reported as a failed result
        (returncode 127 / -1) rather than raised, so callers classify every
        tool failure in one place.
        """
        logger.debug(f"Running: {' '.join(args)}")
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            logger.error(f"{args[0]} not found. Please install ffmpeg.")
            return ToolResult(args=args, returncode=127, stderr=f"{args[0]}: command not found")

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout or self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            return ToolResult(args=args, returncode=-1, stderr=f"{args[0]} timed out after {timeout or self.timeout}s")

        return ToolResult(
            args=args,
            returncode=proc.returncode,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )
