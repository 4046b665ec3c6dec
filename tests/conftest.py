"""
qorcron · Shared test fixtures.

Tests never touch the real crontab or real job processes: FakeCrontab keeps
the table in memory and FakeProcessController hands out made-up pids.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import pytest

from qorcron.errors import (
    CommandExecutionError,
    JobProcessLookupError,
    ProcessSpawnError,
    ProcessTerminationError,
)
from qorcron.models import JobDefinition, JobDescriptor
from qorcron.store import CronStore

SAMPLE_TABLE = (
    "0 0 * * * /bin/foo\n"
    '## BEGIN QOR JOB abc # {"JobID":"abc","Pid":123,"Command":""}\n'
    "\n"
    "## END QOR JOB\n"
)


class FakeCrontab:
    """In-memory crontab. ``text=None`` behaves like a user without crontab."""

    def __init__(self, text: str | None = None) -> None:
        self.text = text
        self.installs: list[str] = []
        self.list_calls = 0
        self.fail_install = False

    def list_entries(self) -> str:
        self.list_calls += 1
        if self.text is None:
            raise CommandExecutionError("no crontab for user", details={"returncode": 1})
        return self.text

    def install(self, text: str) -> None:
        if self.fail_install:
            raise CommandExecutionError("crontab: install failed", details={"returncode": 1})
        self.installs.append(text)
        self.text = text


@dataclass
class FakeHandle:
    pid: int


@dataclass
class FakeProcessController:
    """Records spawns and kills; failure modes are switched on per test."""

    next_pid: int = 4242
    live: set[int] = field(default_factory=set)
    spawned: list[list[str]] = field(default_factory=list)
    terminated: list[int] = field(default_factory=list)
    resolved: list[tuple[int, str | None, str]] = field(default_factory=list)
    fail_spawn: bool = False
    fail_terminate: bool = False

    def spawn(self, args: Sequence[str]) -> int:
        if self.fail_spawn:
            raise ProcessSpawnError("exec format error", details={"args": list(args)})
        self.spawned.append(list(args))
        pid = self.next_pid
        self.next_pid += 1
        self.live.add(pid)
        return pid

    def resolve(self, pid: int, job_id: str | None = None, job_flag: str = "--qor-job") -> Any:
        self.resolved.append((pid, job_id, job_flag))
        if pid not in self.live:
            raise JobProcessLookupError(f"no such process: {pid}", details={"pid": pid})
        return FakeHandle(pid)

    def terminate(self, handle: FakeHandle) -> None:
        if self.fail_terminate:
            raise ProcessTerminationError("operation not permitted", details={"pid": handle.pid})
        self.live.discard(handle.pid)
        self.terminated.append(handle.pid)


@pytest.fixture
def crontab() -> FakeCrontab:
    """Crontab holding one foreign line and one running job 'abc' (pid 123)."""
    return FakeCrontab(SAMPLE_TABLE)


@pytest.fixture
def processes() -> FakeProcessController:
    return FakeProcessController()


@pytest.fixture
def store(crontab: FakeCrontab, processes: FakeProcessController) -> CronStore:
    return CronStore(crontab=crontab, processes=processes, program=["/usr/bin/host-app"])


def _make_job(
    job_id: str, handler: Any = None, argument: Any = None, name: str = "test_job"
) -> JobDescriptor:
    return JobDescriptor(
        job_id=job_id,
        definition=JobDefinition(name=name, handler=handler),
        argument=argument,
    )


@pytest.fixture
def make_job() -> Any:
    """Factory: make_job(job_id, handler=None, argument=None, name="test_job")."""
    return _make_job
