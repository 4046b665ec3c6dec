"""Crontab codec: owned job blocks <-> plain crontab text.

An owned block is three lines::

    ## BEGIN QOR JOB <job_id> # {"JobID":"<job_id>","Pid":<pid>,"Command":"<command>"}
    <command, may be empty>
    ## END QOR JOB

Everything outside a block is a foreign line and survives every round trip
verbatim and in order. Blocks may come back in a different order.
"""

from __future__ import annotations

import json
from collections.abc import Iterable

from pydantic import ValidationError

from qorcron.errors import MalformedRecordError
from qorcron.models import JobRecord, TableDocument
from qorcron.utils.logging import get_logger

log = get_logger(__name__)

BEGIN_MARKER = "## BEGIN QOR JOB"
END_MARKER = "## END QOR JOB"


def extract_payload(line: str) -> str | None:
    """Returns the JSON part of a begin-marker line, or None.

    The payload starts one character before the first ``{`` (the separating
    space). A ``{`` at index 0 or 1 cannot follow a tag and yields None.
    """
    idx = line.find("{")
    if idx > 1:
        return line[idx - 1 :]
    return None


def decode_record(payload: str) -> JobRecord:
    """Decodes a begin-marker payload.

    Raises:
        MalformedRecordError: Invalid JSON, not an object, or wrong field types.
    """
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise MalformedRecordError(
            f"invalid job payload: {exc}", details={"payload": payload}
        ) from exc
    if not isinstance(data, dict):
        raise MalformedRecordError("job payload is not an object", details={"payload": payload})
    try:
        return JobRecord.model_validate(data)
    except ValidationError as exc:
        raise MalformedRecordError(
            f"invalid job payload: {exc.error_count()} validation error(s)",
            details={"payload": payload},
        ) from exc


def encode_record(record: JobRecord) -> str:
    return json.dumps(
        record.model_dump(by_alias=True),
        separators=(",", ":"),
        ensure_ascii=False,
    )


def format_block(record: JobRecord) -> str:
    """Renders one owned block, newline-terminated."""
    return (
        f"{BEGIN_MARKER} {record.job_id} # {encode_record(record)}\n"
        f"{record.command}\n"
        f"{END_MARKER}\n"
    )


def parse_table(raw_text: str | None) -> TableDocument:
    """Splits crontab text into foreign lines and owned job records.

    Malformed begin-marker payloads are dropped together with their block.
    A block without an end marker swallows the rest of the text.
    """
    document = TableDocument()
    text = (raw_text or "").strip()
    if not text:
        return document

    in_block = False
    for line in text.split("\n"):
        if line.startswith(BEGIN_MARKER):
            in_block = True
            payload = extract_payload(line)
            if payload is not None:
                try:
                    document.jobs.append(decode_record(payload))
                except MalformedRecordError as exc:
                    log.warning("malformed_job_record_dropped", line=line, error=str(exc))

        if not in_block:
            document.foreign_lines.append(line)

        if line.startswith(END_MARKER):
            in_block = False

    return document


def serialize_table(foreign_lines: Iterable[str], jobs: Iterable[JobRecord]) -> str:
    """Renders foreign lines followed by every record not marked for deletion."""
    parts = [f"{line}\n" for line in foreign_lines]
    parts.extend(format_block(job) for job in jobs if not job.marked_for_deletion)
    return "".join(parts)
