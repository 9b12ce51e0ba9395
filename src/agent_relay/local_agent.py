"""Local coding agent invoked as a one-shot CLI process."""

from __future__ import annotations

import asyncio
import logging
import shlex

from .config import Settings
from .errors import ProcessLaunchFailed

logger = logging.getLogger(__name__)


def build_command(template: str, prompt: str) -> list[str]:
    """Split the command template into argv, substituting ``{prompt}`` inside each argument.

    Substitution happens after splitting so the prompt always stays a single
    argument no matter what quotes or spaces it contains.
    """
    return [part.replace("{prompt}", prompt) for part in shlex.split(template)]


async def run_local_agent(prompt: str, settings: Settings) -> str:
    """Run the local agent CLI and return its standard output."""
    argv = build_command(settings.local_agent_command, prompt)
    logger.info("[LOCAL_AGENT] Executing: %s", argv[0])
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise ProcessLaunchFailed(f"Failed to start the process '{argv[0]}': {exc}", exc) from exc

    try:
        stdout, stderr = await asyncio.wait_for(
            process.communicate(), timeout=settings.local_agent_timeout
        )
    except asyncio.TimeoutError as exc:
        process.kill()
        await process.wait()
        raise ProcessLaunchFailed(
            f"'{argv[0]}' did not finish within {settings.local_agent_timeout:.0f}s", exc
        ) from exc

    output = stdout.decode(errors="replace").strip()
    if process.returncode != 0:
        logger.warning("[LOCAL_AGENT] %s exited with code %s", argv[0], process.returncode)
        if not output:
            output = stderr.decode(errors="replace").strip()
    return output
