"""Tests for the per-script execution-time history."""

import json

import pytest

from quality_snapshots.artifacts.timings import (
    load_timing_history,
    record_execution_time,
    summarize_timings,
)


@pytest.fixture
def history_path(layout):
    return layout.timing_history


class TestRecordExecutionTime:
    def test_first_run_creates_history(self, memfs, history_path):
        history = record_execution_time(memfs, history_path, "test:core", 41230)

        assert history == {"test:core": [41230]}
        assert json.loads(memfs.files[history_path]) == {"test:core": [41230]}

    def test_mode_is_recorded_under_both_keys(self, memfs, history_path):
        record_execution_time(memfs, history_path, "test:core", 1000)
        history = record_execution_time(memfs, history_path, "test:core", 2000, mode="ci")

        assert history["test:core"] == [1000, 2000]
        assert history["test:core:ci"] == [2000]

    def test_blank_mode_is_ignored(self, memfs, history_path):
        history = record_execution_time(memfs, history_path, "lint", 500, mode="  ")
        assert history == {"lint": [500]}

    def test_only_newest_runs_are_kept(self, memfs, history_path):
        for ms in range(25):
            history = record_execution_time(memfs, history_path, "build", ms)

        assert len(history["build"]) == 20
        assert history["build"][0] == 5
        assert history["build"][-1] == 24

    def test_custom_limit(self, memfs, history_path):
        for ms in range(5):
            history = record_execution_time(memfs, history_path, "build", ms, limit=3)
        assert history["build"] == [2, 3, 4]

    def test_corrupt_history_starts_over(self, memfs, history_path):
        memfs.add(history_path, "{garbage")
        history = record_execution_time(memfs, history_path, "build", 10)
        assert history == {"build": [10]}

    def test_other_scripts_are_kept(self, memfs, history_path):
        memfs.add_json(history_path, {"lint": [100]})
        history = record_execution_time(memfs, history_path, "build", 10)
        assert history == {"lint": [100], "build": [10]}

    def test_write_failure_propagates(self, memfs, history_path):
        memfs.read_only = True
        with pytest.raises(OSError):
            record_execution_time(memfs, history_path, "build", 10)


class TestSummarizeTimings:
    def test_averages_in_seconds(self):
        scripts, series = summarize_timings({"test:core": [41230, 39870, "1200"], "empty": []})

        core, empty = scripts
        assert core.runs == 3
        assert core.avg_seconds == 27.4
        assert core.last_seconds == 1.2
        assert series["test:core"] == [41.2, 39.9, 1.2]
        assert empty.runs == 0
        assert empty.avg_seconds == 0
        assert series["empty"] == []

    def test_non_list_entries(self):
        scripts, series = summarize_timings({"weird": 5})
        assert scripts[0].runs == 0
        assert series == {"weird": []}


class TestLoadTimingHistory:
    def test_missing_file(self, memfs, history_path):
        assert load_timing_history(memfs, history_path) == {}

    def test_non_object_rejected(self, memfs, history_path):
        memfs.add(history_path, "[1, 2]")
        with pytest.raises(ValueError):
            load_timing_history(memfs, history_path)
