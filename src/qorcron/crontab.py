"""Crontab client: runs the external list/install commands.

The commands are plain argv lists so tests (and unusual hosts) can point
them at anything that reads/writes crontab text::

    client = CrontabClient(list_command=["crontab", "-l"], install_command=["crontab", "-"])
    text = client.list_entries()
    client.install(text)

Bytes that are not valid UTF-8 are decoded with ``surrogateescape`` and
encoded back the same way, so foreign entries in other encodings survive
a list/install cycle byte for byte.
"""

from __future__ import annotations

import subprocess
from collections.abc import Sequence
from typing import Protocol

from qorcron.errors import CommandExecutionError
from qorcron.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_LIST_COMMAND = ("crontab", "-l")
DEFAULT_INSTALL_COMMAND = ("crontab", "-")


class CrontabBackend(Protocol):
    """What the CronStore needs from the scheduler table."""

    def list_entries(self) -> str: ...

    def install(self, text: str) -> None: ...


class CrontabClient:
    """Reads and replaces the current user's crontab via subprocesses."""

    def __init__(
        self,
        list_command: Sequence[str] = DEFAULT_LIST_COMMAND,
        install_command: Sequence[str] = DEFAULT_INSTALL_COMMAND,
        timeout_seconds: float | None = None,
    ) -> None:
        self.list_command = list(list_command)
        self.install_command = list(install_command)
        self.timeout_seconds = timeout_seconds

    def list_entries(self) -> str:
        """Returns the current table text.

        Raises:
            CommandExecutionError: Command missing, timed out or non-zero exit
                (``crontab -l`` exits 1 when the user has no crontab yet).
        """
        completed = self._run(self.list_command)
        return completed.stdout

    def install(self, text: str) -> None:
        """Replaces the table with ``text`` (piped to stdin).

        Raises:
            CommandExecutionError: Command missing, timed out or non-zero exit.
        """
        self._run(self.install_command, stdin=text)
        log.debug("crontab_installed", bytes=len(text.encode("utf-8", "surrogateescape")))

    def _run(self, command: list[str], stdin: str | None = None) -> subprocess.CompletedProcess[str]:
        try:
            completed = subprocess.run(
                command,
                input=stdin,
                capture_output=True,
                encoding="utf-8",
                errors="surrogateescape",
                check=False,
                timeout=self.timeout_seconds,
            )
        except FileNotFoundError as exc:
            raise CommandExecutionError(
                f"command not found: {command[0]}",
                details={"command": command},
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise CommandExecutionError(
                f"command timed out after {self.timeout_seconds}s: {' '.join(command)}",
                details={"command": command, "timeout_seconds": self.timeout_seconds},
            ) from exc
        except OSError as exc:
            raise CommandExecutionError(
                f"command failed to start: {exc}",
                details={"command": command},
            ) from exc

        if completed.returncode != 0:
            stderr = completed.stderr.strip()
            raise CommandExecutionError(
                f"command failed (exit={completed.returncode}): {' '.join(command)}",
                details={
                    "command": command,
                    "returncode": completed.returncode,
                    "stderr": stderr,
                },
            )
        return completed
