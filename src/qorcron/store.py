"""CronStore: job queue on top of the user's crontab.

Every mutating operation is one read-modify-write cycle against the crontab:

    lock -> list + parse -> mutate -> serialize + install -> unlock

The crontab text is the only source of truth. The in-memory snapshot is
rebuilt at the start of every cycle and never trusted across calls.

The lock is process-local. Another process editing the same crontab between
our list and install can lose changes on either side.
"""

from __future__ import annotations

import contextlib
import threading
from collections.abc import Iterator
from typing import TYPE_CHECKING

from qorcron.codec import parse_table, serialize_table
from qorcron.crontab import CrontabBackend, CrontabClient
from qorcron.errors import (
    CommandExecutionError,
    JobNotFoundError,
    JobRunningError,
    NoHandlerError,
)
from qorcron.models import JobRecord, QorJob
from qorcron.process import ProcessController, PsutilProcessController, self_command
from qorcron.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from qorcron.config import QorCronConfig

log = get_logger(__name__)

DEFAULT_JOB_FLAG = "--qor-job"


class CronStore:
    """Registers, runs, kills and removes jobs tracked in the crontab.

    Attributes:
        foreign_lines: Crontab lines not owned by us, in original order.
        jobs: Owned job records of the current snapshot.
    """

    def __init__(
        self,
        crontab: CrontabBackend | None = None,
        processes: ProcessController | None = None,
        program: Sequence[str] | None = None,
        job_flag: str = DEFAULT_JOB_FLAG,
    ) -> None:
        """Initialises the store.

        Args:
            crontab: Table backend. Default: ``crontab -l`` / ``crontab -``.
            processes: Process controller. Default: psutil-based, SIGKILL.
            program: Argv prefix that re-invokes the host. Default: derived
                from ``sys.argv[0]`` at spawn time.
            job_flag: Flag placed before the job id when spawning.
        """
        self._crontab: CrontabBackend = crontab or CrontabClient()
        self._processes: ProcessController = processes or PsutilProcessController()
        self._program = list(program) if program else None
        self.job_flag = job_flag
        self._lock = threading.RLock()
        self.foreign_lines: list[str] = []
        self.jobs: list[JobRecord] = []

    @classmethod
    def from_config(cls, config: QorCronConfig) -> CronStore:
        """Builds a store wired to the configured commands and signal."""
        return cls(
            crontab=CrontabClient(
                list_command=config.crontab.list_command,
                install_command=config.crontab.install_command,
                timeout_seconds=config.crontab.timeout_seconds,
            ),
            processes=PsutilProcessController(kill_signal=config.spawn.kill_signal),
            program=config.spawn.program or None,
            job_flag=config.spawn.job_flag,
        )

    # ---- Snapshot ----

    def refresh(self) -> list[JobRecord]:
        """Re-reads the crontab into the snapshot.

        A failing list command (no crontab yet, binary missing) leaves an
        empty snapshot instead of raising.
        """
        with self._lock:
            try:
                raw = self._crontab.list_entries()
            except CommandExecutionError as exc:
                log.debug("crontab_list_failed", error=str(exc), **exc.details)
                raw = ""
            document = parse_table(raw)
            self.foreign_lines = document.foreign_lines
            self.jobs = document.jobs
            return self.jobs

    def persist(self) -> None:
        """Writes the snapshot back, dropping records marked for deletion.

        Raises:
            CommandExecutionError: The install command failed.
        """
        with self._lock:
            self._crontab.install(serialize_table(self.foreign_lines, self.jobs))

    @contextlib.contextmanager
    def transaction(self) -> Iterator[list[JobRecord]]:
        """Lock, refresh, yield the records, persist, unlock.

        Persist runs on every exit path. If the body raised, a persist
        failure is only logged so the body's error reaches the caller.
        """
        with self._lock:
            self.refresh()
            try:
                yield self.jobs
            except BaseException:
                try:
                    self.persist()
                except CommandExecutionError as exc:
                    log.error("crontab_persist_failed", error=str(exc), **exc.details)
                raise
            else:
                self.persist()

    def list_jobs(self) -> list[JobRecord]:
        """Live (not deleted) records of a fresh snapshot. Does not write."""
        with self._lock:
            return [job for job in self.refresh() if not job.marked_for_deletion]

    def get_job(self, job_id: str) -> JobRecord | None:
        """First record with ``job_id`` in a fresh snapshot, or None."""
        for job in self.list_jobs():
            if job.job_id == job_id:
                return job
        return None

    # ---- Operations ----

    def add(self, job: QorJob) -> JobRecord:
        """Starts a detached worker for ``job`` and records its pid.

        Raises:
            ProcessSpawnError: The worker could not be started (nothing is
                recorded, the unchanged table is still written back).
            CommandExecutionError: The install command failed.
        """
        job_id = job.get_job_id()
        with self.transaction() as jobs:
            args = [*self_command(self._program), self.job_flag, job_id]
            pid = self._processes.spawn(args)
            record = JobRecord(job_id=job_id, pid=pid, command="")
            jobs.append(record)
        log.info("job_added", job_id=job_id, pid=pid)
        return record

    def run(self, job: QorJob) -> None:
        """Runs the job's handler here and now; on success drops its records.

        The lock is taken only after the handler has returned, so a long
        handler never blocks other operations. A failing handler leaves the
        table untouched and its exception propagates unchanged; the job stays
        scheduled.

        Raises:
            NoHandlerError: The job definition has no handler.
            CommandExecutionError: The install command failed.
        """
        definition = job.get_job()
        if definition.handler is None:
            raise NoHandlerError(
                f"no handler found for job {definition.name}",
                details={"job": definition.name, "job_id": job.get_job_id()},
            )

        job_id = job.get_job_id()
        try:
            definition.handler(job.get_serializable_argument(job), job)
        except Exception as exc:
            log.warning("job_handler_failed", job_id=job_id, job=definition.name, error=str(exc))
            raise

        with self.transaction() as jobs:
            for record in jobs:
                if record.job_id == job_id:
                    record.mark_for_deletion()
        log.info("job_completed", job_id=job_id, job=definition.name)

    def kill(self, job: QorJob) -> None:
        """Terminates the job's worker process and drops its record.

        Raises:
            JobNotFoundError: No record for the job id.
            JobProcessLookupError: The recorded pid is not a live process.
            ProcessTerminationError: The signal could not be delivered.
            CommandExecutionError: The install command failed.
        """
        job_id = job.get_job_id()
        with self.transaction() as jobs:
            record = next((r for r in jobs if r.job_id == job_id), None)
            if record is None:
                raise JobNotFoundError(details={"job_id": job_id})
            handle = self._processes.resolve(record.pid, job_id=job_id, job_flag=self.job_flag)
            self._processes.terminate(handle)
            record.mark_for_deletion()
        log.info("job_killed", job_id=job_id, pid=record.pid)

    def remove(self, job: QorJob) -> None:
        """Cancels a job that is not running.

        Records with pid 0 are marked for deletion and the deletion IS
        written back, yet this method still ends in JobNotFoundError. Callers
        that need to know whether anything was removed should check
        ``get_job()`` afterwards.

        Raises:
            JobRunningError: A matching record has a live pid; use kill().
            JobNotFoundError: Always, once the scan completes.
            CommandExecutionError: The install command failed.
        """
        job_id = job.get_job_id()
        marked = 0
        with self.transaction() as jobs:
            for record in jobs:
                if record.job_id != job_id:
                    continue
                if record.pid == 0:
                    record.mark_for_deletion()
                    marked += 1
                else:
                    raise JobRunningError(details={"job_id": job_id, "pid": record.pid})
            # TODO: return normally when marked > 0 once callers stop relying
            # on the not-found result.
            raise JobNotFoundError(details={"job_id": job_id, "marked": marked})
