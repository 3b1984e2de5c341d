"""ffmpeg invocation."""

import asyncio
import logging
from typing import List

from ..errors import TranscodeError

logger = logging.getLogger(__name__)

# Characters of stderr kept in a TranscodeError
DIAGNOSTIC_TAIL = 2000


async def run_ffmpeg(cmd: List[str], timeout: float) -> None:
    """Run an ffmpeg command to completion.

    Args:
        cmd: Full argv, executable first.
        timeout: Wall-clock budget in seconds.

    Raises:
        TranscodeError: If ffmpeg cannot start, exits non-zero or runs past
            ``timeout``. The error carries the tail of ffmpeg's stderr.
    """
    logger.info(f"Running {cmd[0]} with {cmd.count('-i')} inputs (timeout {timeout:.0f}s)")
    logger.debug(" ".join(cmd))

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise TranscodeError(f"Could not start {cmd[0]}", diagnostics=str(e)) from e

    try:
        _, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        _, stderr = await process.communicate()
        tail = stderr.decode(errors="replace")[-DIAGNOSTIC_TAIL:]
        logger.error(f"ffmpeg timed out after {timeout:.0f}s")
        raise TranscodeError(f"ffmpeg timed out after {timeout:.0f}s", diagnostics=tail)

    if process.returncode != 0:
        tail = stderr.decode(errors="replace")[-DIAGNOSTIC_TAIL:]
        logger.error(f"ffmpeg error: {tail[-500:]}")
        raise TranscodeError(f"ffmpeg exited with code {process.returncode}", diagnostics=tail)
