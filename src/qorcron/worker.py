"""Worker side of self re-invocation.

CronStore.add() starts ``<program> --qor-job <job_id>``. The host program
calls run_job_from_argv() early in its startup; when the flag is present it
looks the job up and runs it through CronStore.run(), which drops the job's
crontab block on success.

    def main() -> None:
        store = CronStore()
        if run_job_from_argv(store, resolve=my_jobs.get):
            return
        ...  # normal startup
"""

from __future__ import annotations

import sys
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from qorcron.errors import JobNotFoundError
from qorcron.models import QorJob
from qorcron.utils.logging import bind_context, clear_context, get_logger

if TYPE_CHECKING:
    from qorcron.store import CronStore

log = get_logger(__name__)

JobResolver = Callable[[str], QorJob | None]


def job_id_from_argv(argv: Sequence[str], flag: str = "--qor-job") -> str | None:
    """Job id following ``flag`` (also ``flag=<id>``), or None."""
    for i, arg in enumerate(argv):
        if arg == flag:
            if i + 1 < len(argv) and argv[i + 1]:
                return argv[i + 1]
            return None
        if arg.startswith(flag + "="):
            return arg[len(flag) + 1 :] or None
    return None


def run_job_from_argv(
    store: CronStore,
    resolve: JobResolver,
    argv: Sequence[str] | None = None,
    flag: str | None = None,
) -> bool:
    """Runs the job named on the command line.

    Returns:
        False if the flag is absent, True once the job ran successfully.

    Raises:
        JobNotFoundError: ``resolve`` returned None for the id.
        Any exception of the job handler, unchanged.
    """
    if argv is None:
        argv = sys.argv[1:]
    job_id = job_id_from_argv(argv, flag or store.job_flag)
    if job_id is None:
        return False

    job = resolve(job_id)
    if job is None:
        raise JobNotFoundError(f"no job registered for id {job_id}", details={"job_id": job_id})

    bind_context(job_id=job_id)
    try:
        log.info("job_worker_started")
        store.run(job)
    finally:
        clear_context()
    return True
