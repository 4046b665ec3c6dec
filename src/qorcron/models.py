"""
qorcron · Data models.

JobRecord is the pydantic model embedded as JSON in every owned crontab
block. JobDefinition, QorJob and JobDescriptor describe the host side: what
a job is called, how it runs, and which argument it receives.

Design principles:
  - JSON keys of JobRecord are fixed (JobID, Pid, Command) so tables written
    by other implementations of the block format stay readable
  - The deletion flag lives only in memory and is never serialized
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr


class JobRecord(BaseModel):
    """One owned job as stored in the crontab.

    ``pid == 0`` means the worker was never started, or has finished
    without the field being cleared. Field types are strict: ``"Pid":"123"``
    is a malformed record, not pid 123.
    """

    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(default="", alias="JobID", strict=True)
    pid: int = Field(default=0, alias="Pid", strict=True)
    command: str = Field(default="", alias="Command", strict=True)

    # In-memory only. Never read from a payload, never dumped.
    _marked_for_deletion: bool = PrivateAttr(default=False)

    @property
    def started(self) -> bool:
        return self.pid != 0

    @property
    def marked_for_deletion(self) -> bool:
        return self._marked_for_deletion

    def mark_for_deletion(self) -> None:
        """Drops this record on the next persist."""
        self._marked_for_deletion = True


@dataclass
class TableDocument:
    """Parsed crontab: foreign lines in original order plus owned records."""

    foreign_lines: list[str] = field(default_factory=list)
    jobs: list[JobRecord] = field(default_factory=list)


@dataclass(frozen=True)
class JobDefinition:
    """Static description of a job kind."""

    name: str
    handler: JobHandler | None = None


@runtime_checkable
class QorJob(Protocol):
    """Contract every job descriptor handed to the CronStore must satisfy."""

    def get_job_id(self) -> str: ...

    def get_job(self) -> JobDefinition: ...

    def get_serializable_argument(self, job: QorJob) -> Any: ...


# Handler(argument, job) -> None; raising signals failure.
JobHandler = Callable[[Any, QorJob], Any]


@dataclass
class JobDescriptor:
    """Plain QorJob implementation.

    Enough for kill/remove (which only need the id) and for hosts that keep
    the argument in memory.
    """

    job_id: str
    definition: JobDefinition = field(default_factory=lambda: JobDefinition(name=""))
    argument: Any = None

    def get_job_id(self) -> str:
        return self.job_id

    def get_job(self) -> JobDefinition:
        return self.definition

    def get_serializable_argument(self, job: QorJob) -> Any:
        return self.argument
