"""Tests for the worker-side --qor-job dispatch."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from unittest.mock import patch

import pytest

from qorcron.codec import parse_table
from qorcron.errors import JobNotFoundError
from qorcron.store import CronStore
from qorcron.worker import job_id_from_argv, run_job_from_argv

if TYPE_CHECKING:
    from conftest import FakeCrontab


class TestJobIdFromArgv:
    def test_separate_value(self) -> None:
        assert job_id_from_argv(["--verbose", "--qor-job", "abc"]) == "abc"

    def test_equals_form(self) -> None:
        assert job_id_from_argv(["--qor-job=abc"]) == "abc"

    def test_absent(self) -> None:
        assert job_id_from_argv(["serve", "--port", "80"]) is None

    def test_flag_without_value(self) -> None:
        assert job_id_from_argv(["--qor-job"]) is None
        assert job_id_from_argv(["--qor-job="]) is None

    def test_custom_flag(self) -> None:
        assert job_id_from_argv(["--job", "x"], flag="--job") == "x"
        assert job_id_from_argv(["--qor-job", "x"], flag="--job") is None


class TestRunJobFromArgv:
    def test_no_flag_returns_false(self, store: CronStore, crontab: FakeCrontab) -> None:
        assert run_job_from_argv(store, resolve=lambda job_id: None, argv=["serve"]) is False
        assert crontab.list_calls == 0

    def test_runs_resolved_job(self, store: CronStore, crontab: FakeCrontab, make_job: Any) -> None:
        seen: list[Any] = []
        jobs = {"abc": make_job("abc", handler=lambda arg, job: seen.append(arg), argument=[1, 2])}

        assert run_job_from_argv(store, resolve=jobs.get, argv=["--qor-job", "abc"]) is True

        assert seen == [[1, 2]]
        assert parse_table(crontab.text).jobs == []

    def test_unknown_job(self, store: CronStore) -> None:
        with pytest.raises(JobNotFoundError, match="no job registered for id ghost"):
            run_job_from_argv(store, resolve=lambda job_id: None, argv=["--qor-job", "ghost"])

    def test_reads_sys_argv(self, store: CronStore, make_job: Any) -> None:
        ran: list[str] = []
        job = make_job("abc", handler=lambda arg, j: ran.append(j.get_job_id()))
        with patch("sys.argv", ["host-app", "--qor-job", "abc"]):
            assert run_job_from_argv(store, resolve=lambda job_id: job) is True
        assert ran == ["abc"]

    def test_uses_store_flag(self, crontab: FakeCrontab, make_job: Any) -> None:
        store = CronStore(crontab=crontab, program=["app"], job_flag="--run-job")
        job = make_job("abc", handler=lambda arg, j: None)
        assert run_job_from_argv(store, resolve=lambda job_id: job, argv=["--run-job", "abc"]) is True
