"""Process controller: detached spawn plus pid-based lookup and termination.

The store only ever remembers a numeric pid. Pids may be stale or reused by
the time they are looked up again, so resolve() and terminate() report those
cases as errors instead of assuming the process is still ours.
"""

from __future__ import annotations

import os
import signal
import subprocess
import sys
from collections.abc import Sequence
from typing import Any, Protocol

import psutil

from qorcron.errors import JobProcessLookupError, ProcessSpawnError, ProcessTerminationError
from qorcron.utils.logging import get_logger
from qorcron.worker import job_id_from_argv

log = get_logger(__name__)

SIGNALS: dict[str, signal.Signals] = {
    "SIGKILL": signal.SIGKILL,
    "SIGTERM": signal.SIGTERM,
}


class ProcessController(Protocol):
    """Spawn/resolve/terminate capability used by the CronStore."""

    def spawn(self, args: Sequence[str]) -> int: ...

    def resolve(self, pid: int, job_id: str | None = None, job_flag: str = "--qor-job") -> Any: ...

    def terminate(self, handle: Any) -> None: ...


def self_command(program: Sequence[str] | None = None) -> list[str]:
    """Argv prefix that re-invokes the host program.

    An explicit ``program`` wins. Otherwise ``sys.argv[0]`` is used directly
    when it is an executable file, else it is run through the current
    interpreter.
    """
    if program:
        return list(program)
    argv0 = sys.argv[0] if sys.argv and sys.argv[0] else ""
    if argv0 and os.path.isfile(argv0) and os.access(argv0, os.X_OK):
        return [argv0]
    if argv0 and argv0 not in ("-c", "-m"):
        return [sys.executable, argv0]
    return [sys.executable]


class PsutilProcessController:
    """Default controller: subprocess for spawning, psutil for everything after."""

    def __init__(self, kill_signal: str = "SIGKILL") -> None:
        if kill_signal not in SIGNALS:
            msg = f"unsupported kill signal: {kill_signal}"
            raise ValueError(msg)
        self.kill_signal = SIGNALS[kill_signal]

    def spawn(self, args: Sequence[str]) -> int:
        """Starts ``args`` in its own session and returns the pid.

        The Popen handle is dropped immediately; nothing waits on the child.

        Raises:
            ProcessSpawnError: Executable missing or not startable.
        """
        try:
            proc = subprocess.Popen(
                list(args),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as exc:
            raise ProcessSpawnError(
                f"failed to start job process: {exc}",
                details={"args": list(args)},
            ) from exc
        log.debug("process_spawned", pid=proc.pid, args=list(args))
        return proc.pid

    def resolve(
        self, pid: int, job_id: str | None = None, job_flag: str = "--qor-job"
    ) -> psutil.Process:
        """Looks up a live process by pid.

        With ``job_id`` the process must also be that job's worker, i.e. its
        command line carries ``job_flag job_id``. A pid reused by an
        unrelated process is then reported instead of being signalled.

        Raises:
            JobProcessLookupError: Pid <= 0, no such process, zombie, access
                denied, or not the worker of ``job_id``.
        """
        if pid <= 0:
            raise JobProcessLookupError(f"invalid pid: {pid}", details={"pid": pid})
        cmdline: list[str] | None = None
        try:
            process = psutil.Process(pid)
            if process.status() == psutil.STATUS_ZOMBIE:
                raise JobProcessLookupError(f"process {pid} has already exited", details={"pid": pid})
            if job_id is not None:
                cmdline = process.cmdline()
        except psutil.NoSuchProcess as exc:
            raise JobProcessLookupError(f"no such process: {pid}", details={"pid": pid}) from exc
        except psutil.AccessDenied as exc:
            raise JobProcessLookupError(
                f"access denied to process {pid}", details={"pid": pid}
            ) from exc
        if cmdline is not None and job_id_from_argv(cmdline, job_flag) != job_id:
            raise JobProcessLookupError(
                f"process {pid} is not the worker of job {job_id}",
                details={"pid": pid, "job_id": job_id, "cmdline": cmdline},
            )
        return process

    def terminate(self, handle: psutil.Process) -> None:
        """Sends the configured signal to ``handle``.

        Raises:
            ProcessTerminationError: Process gone or signal not permitted.
        """
        try:
            handle.send_signal(self.kill_signal)
        except (psutil.Error, OSError) as exc:
            raise ProcessTerminationError(
                f"failed to terminate process {handle.pid}: {exc}",
                details={"pid": handle.pid, "signal": self.kill_signal.name},
            ) from exc
        log.debug("process_signalled", pid=handle.pid, signal=self.kill_signal.name)
