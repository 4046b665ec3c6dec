"""
Tests for qorcron.utils.logging – structured logging.

Covers:
  - Setup with different configurations
  - Logger creation
  - Context binding
  - File logging
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from qorcron.utils.logging import (
    LOG_FILE_NAME,
    bind_context,
    clear_context,
    get_logger,
    setup_logging,
)

if TYPE_CHECKING:
    from pathlib import Path


class TestLoggingSetup:
    def test_default_setup(self) -> None:
        setup_logging(level="INFO", console=True)
        log = get_logger("test")
        log.info("test_event", key="value")

    def test_debug_level(self) -> None:
        setup_logging(level="DEBUG", console=True)
        assert logging.getLogger().level == logging.DEBUG
        get_logger("test.debug").debug("debug_event", detail="works")

    def test_unknown_level_falls_back_to_info(self) -> None:
        setup_logging(level="LOUD", console=True)
        assert logging.getLogger().level == logging.INFO

    def test_json_file_logging(self, tmp_path: Path) -> None:
        log_dir = tmp_path / "logs"
        setup_logging(level="DEBUG", log_dir=log_dir, json_logs=True, console=False)
        get_logger("test.file").info("job_added", job_id="abc", pid=42)
        for handler in logging.getLogger().handlers:
            handler.flush()

        log_file = log_dir / LOG_FILE_NAME
        assert log_file.exists()
        entry = json.loads(log_file.read_text(encoding="utf-8").strip().splitlines()[-1])
        assert entry["event"] == "job_added"
        assert entry["job_id"] == "abc"
        assert entry["pid"] == 42

    def test_file_stays_json_with_console_renderer(self, tmp_path: Path) -> None:
        setup_logging(level="INFO", log_dir=tmp_path, json_logs=False, console=True)
        get_logger("test.plain").info("job_killed", job_id="abc")
        for handler in logging.getLogger().handlers:
            handler.flush()

        raw = (tmp_path / LOG_FILE_NAME).read_text(encoding="utf-8")
        assert "\x1b[" not in raw
        entry = json.loads(raw.strip().splitlines()[-1])
        assert entry["event"] == "job_killed"
        assert entry["job_id"] == "abc"


class TestContextBinding:
    def test_bound_context_in_output(self, tmp_path: Path) -> None:
        setup_logging(level="INFO", log_dir=tmp_path, json_logs=True, console=False)
        bind_context(job_id="ctx-1")
        try:
            get_logger("test.context").info("with_context")
        finally:
            clear_context()
        get_logger("test.context").info("without_context")
        for handler in logging.getLogger().handlers:
            handler.flush()

        lines = [json.loads(line) for line in (tmp_path / LOG_FILE_NAME).read_text().splitlines()]
        by_event = {line["event"]: line for line in lines}
        assert by_event["with_context"]["job_id"] == "ctx-1"
        assert "job_id" not in by_event["without_context"]
