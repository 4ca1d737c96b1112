"""External command execution."""

import logging
import subprocess

from .errors import CommandError


def run_command(
    command: list[str], log: logging.Logger | None = None
) -> str:
    """Run a signing tool and return what it printed on stdout.

    codesign and spctl write their diagnostics to stderr even on success,
    so stderr is always captured: it becomes the error output on failure
    and a debug message otherwise.

    Raises:
        CommandError: On a non-zero exit, carrying the tool's stderr
    """
    line = " ".join(command)
    if log:
        log.debug("$ %s", line)
    try:
        result = subprocess.run(
            command, check=True, text=True, capture_output=True
        )
    except subprocess.CalledProcessError as e:
        raise CommandError(line, e.returncode, e.stderr or e.output) from e
    if log and result.stderr:
        log.debug("%s", result.stderr.rstrip())
    return result.stdout
