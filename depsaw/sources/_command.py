"""Shared runner for the external tools that produce raw records."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from depsaw.errors import SourceCommandError

logger = logging.getLogger(__name__)

_STDERR_TAIL = 2000


def run_command(args: list[str], cwd: Path | str) -> str:
    """Run ``args`` in ``cwd`` and return stdout; any failure raises SourceCommandError."""
    logger.info("Executing: %s (in %s)", " ".join(args), cwd)
    try:
        completed = subprocess.run(
            args,
            cwd=str(cwd),
            capture_output=True,
            text=True,
            check=False,
        )
    except FileNotFoundError:
        raise SourceCommandError(args, f"{args[0]} not found on PATH") from None
    except OSError as e:
        raise SourceCommandError(args, str(e)) from e

    if completed.returncode != 0:
        detail = completed.stderr.strip()[-_STDERR_TAIL:] or f"exit status {completed.returncode}"
        raise SourceCommandError(args, detail)
    return completed.stdout
