"""qorcron · Error hierarchy.

All exceptions raised by the queue inherit from QorCronError, which carries
an error_code and an optional details dict for programmatic handling.

Usage::

    from qorcron.errors import JobNotFoundError

    raise JobNotFoundError("failed to find job", details={"job_id": "abc"})

Propagation:
  - List failures (CommandExecutionError) and MalformedRecordError are
    absorbed by the store and only logged.
  - Install, process and handler failures reach the caller.
"""

from __future__ import annotations


class QorCronError(Exception):
    """Base exception for all qorcron errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "QORCRON_ERROR",
        details: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}


class ConfigError(QorCronError):
    """Configuration could not be loaded or validated."""

    def __init__(
        self,
        message: str,
        error_code: str = "CONFIG_ERROR",
        details: dict | None = None,
    ) -> None:
        super().__init__(message, error_code=error_code, details=details)


class CommandExecutionError(QorCronError):
    """The crontab list/install command is missing, timed out or exited non-zero."""

    def __init__(
        self,
        message: str,
        error_code: str = "COMMAND_EXECUTION_ERROR",
        details: dict | None = None,
    ) -> None:
        super().__init__(message, error_code=error_code, details=details)


class ProcessSpawnError(QorCronError):
    """The detached worker process could not be started."""

    def __init__(
        self,
        message: str,
        error_code: str = "PROCESS_SPAWN_ERROR",
        details: dict | None = None,
    ) -> None:
        super().__init__(message, error_code=error_code, details=details)


class JobProcessLookupError(QorCronError):
    """A recorded pid could not be resolved to a live process.

    Named JobProcessLookupError to avoid shadowing the builtin ProcessLookupError.
    """

    def __init__(
        self,
        message: str,
        error_code: str = "PROCESS_LOOKUP_ERROR",
        details: dict | None = None,
    ) -> None:
        super().__init__(message, error_code=error_code, details=details)


class ProcessTerminationError(QorCronError):
    """Sending the termination signal failed (permission denied, already exited)."""

    def __init__(
        self,
        message: str,
        error_code: str = "PROCESS_TERMINATION_ERROR",
        details: dict | None = None,
    ) -> None:
        super().__init__(message, error_code=error_code, details=details)


class JobNotFoundError(QorCronError):
    """No record in the table matches the requested job id."""

    def __init__(
        self,
        message: str = "failed to find job",
        error_code: str = "JOB_NOT_FOUND",
        details: dict | None = None,
    ) -> None:
        super().__init__(message, error_code=error_code, details=details)


class JobRunningError(QorCronError):
    """The job has a live pid and must be killed instead of removed."""

    def __init__(
        self,
        message: str = "failed to remove current job as it is running",
        error_code: str = "JOB_RUNNING",
        details: dict | None = None,
    ) -> None:
        super().__init__(message, error_code=error_code, details=details)


class HandlerExecutionError(QorCronError):
    """Raised by job handlers to report a failed run.

    The store re-raises whatever a handler raises unchanged; this class is the
    conventional type for handlers that have no better exception of their own.
    """

    def __init__(
        self,
        message: str,
        error_code: str = "HANDLER_EXECUTION_ERROR",
        details: dict | None = None,
    ) -> None:
        super().__init__(message, error_code=error_code, details=details)


class NoHandlerError(QorCronError):
    """The job definition carries no handler."""

    def __init__(
        self,
        message: str,
        error_code: str = "NO_HANDLER",
        details: dict | None = None,
    ) -> None:
        super().__init__(message, error_code=error_code, details=details)


class MalformedRecordError(QorCronError):
    """The JSON payload of a begin-marker line could not be decoded."""

    def __init__(
        self,
        message: str,
        error_code: str = "MALFORMED_RECORD",
        details: dict | None = None,
    ) -> None:
        super().__init__(message, error_code=error_code, details=details)
