"""Tests for SnapshotStore: discovery, legacy reports, backfill and persistence."""

import json
from pathlib import Path

import pytest

from conftest import lighthouse_body, make_snapshot
from quality_snapshots.artifacts.legacy_report import legacy_dedup_key
from quality_snapshots.exceptions import SnapshotWriteError
from quality_snapshots.snapshot import SnapshotStore

REPORT_MS = 1718000000000  # 2024-06-10T06:13:20.000Z

LEGACY_REPORT = """# Audit

| Step | Status | Time |
|------|--------|------|
| Lint | ✅ | 2s |
| Unit tests | ✅ | 40s |
| E2E | ✅ | 1.5s |
| Build | ❌ | 6.5s |

Coverage: 68.2%
Bundle Size: 812.75 KB
"""


@pytest.fixture
def store(config, memfs):
    return SnapshotStore(config, memfs, clock=lambda: REPORT_MS)


class TestStructuredDiscovery:
    def test_newest_first(self, store, write_snapshot):
        write_snapshot(make_snapshot(commit="old", timestamp="2024-06-01T00:00:00.000Z", lines=50))
        write_snapshot(make_snapshot(commit="new", timestamp="2024-06-03T00:00:00.000Z", lines=60))
        write_snapshot(make_snapshot(commit="mid", timestamp="2024-06-02T00:00:00.000Z", lines=55))

        assert [s.commit_hash for s in store.list()] == ["new", "mid", "old"]

    def test_equal_timestamps_ordered_by_commit(self, store, write_snapshot):
        write_snapshot(make_snapshot(commit="bbb", lines=50))
        write_snapshot(make_snapshot(commit="aaa", lines=50))

        assert [s.commit_hash for s in store.list()] == ["aaa", "bbb"]

    def test_unreadable_and_unknown_files_are_skipped(self, store, memfs, layout, write_snapshot):
        write_snapshot(make_snapshot(commit="good", lines=50))
        memfs.add(layout.snapshots_dir / "broken.json", "{not json")
        memfs.add(layout.snapshots_dir / "array.json", "[1, 2]")
        memfs.add(layout.snapshots_dir / "notes.txt", "not a snapshot")
        memfs.unreadable.add(memfs.add(layout.snapshots_dir / "locked.json", "{}"))

        assert [s.commit_hash for s in store.list()] == ["good"]

    def test_older_layouts_are_migrated(self, store, write_snapshot):
        write_snapshot(
            {
                "meta": {"commit": "cafe123", "timestamp": "2024-06-01T00:00:00Z"},
                "healthScore": 70,
                "coverage": {"lines": 66},
            },
            name="cafe123.json",
        )

        (snapshot,) = store.list()

        assert snapshot.commit_hash == "cafe123"
        assert snapshot.metrics.coverage.lines == 66

    def test_directories_are_created(self, store, memfs, layout):
        assert store.list() == []
        assert layout.snapshots_dir in memfs.dirs
        assert layout.lighthouse_dir in memfs.dirs
        assert layout.audit_reports_dir in memfs.dirs
        assert layout.quality_reports_dir in memfs.dirs

    def test_read_only_tree_still_lists(self, store, memfs, write_snapshot):
        write_snapshot(make_snapshot(commit="ro", lines=50))
        memfs.read_only = True

        assert [s.commit_hash for s in store.list()] == ["ro"]


class TestBackfill:
    def test_newest_borrows_from_older_and_older_stay_untouched(self, store, memfs, write_snapshot):
        t1 = make_snapshot(
            commit="t1",
            timestamp="2024-06-01T00:00:00.000Z",
            performance=85,
            lines=70,
            branches=60,
            functions=65,
            bundle_size=400,
        )
        t2 = make_snapshot(commit="t2", timestamp="2024-06-02T00:00:00.000Z")
        t3 = make_snapshot(commit="t3", timestamp="2024-06-03T00:00:00.000Z")
        write_snapshot(t1)
        write_snapshot(t2)
        t3_path = write_snapshot(t3)
        on_disk = memfs.files[t3_path]

        latest, middle, oldest = store.list()

        assert latest.commit_hash == "t3"
        assert latest.metrics.performance.lighthouse.performance == 85
        assert latest.metrics.performance.web_vitals.lcp == 1500
        assert latest.metrics.coverage.lines == 70
        assert latest.metrics.coverage.branches == 60
        assert latest.metrics.performance.bundle_size == 400
        assert latest.data_quality.lighthouse_valid is True
        assert latest.data_quality.coverage_complete is True

        assert middle.metrics.performance.lighthouse.performance == 0
        assert middle.metrics.coverage.lines == 0
        assert middle.data_quality.lighthouse_valid is False
        assert oldest.metrics.performance.lighthouse.performance == 85

        assert memfs.files[t3_path] == on_disk

    def test_borrowed_scores_are_copies(self, store, write_snapshot):
        write_snapshot(make_snapshot(commit="t1", timestamp="2024-06-01T00:00:00.000Z", performance=85))
        write_snapshot(make_snapshot(commit="t2", timestamp="2024-06-02T00:00:00.000Z"))

        latest, older = store.list()
        latest.metrics.performance.lighthouse.performance = 1

        assert older.metrics.performance.lighthouse.performance == 85

    def test_coverage_summary_fills_latest(self, store, memfs, layout, write_snapshot):
        write_snapshot(make_snapshot(commit="t1", timestamp="2024-06-01T00:00:00.000Z", lines=30))
        write_snapshot(make_snapshot(commit="t2", timestamp="2024-06-02T00:00:00.000Z"))
        memfs.add_json(
            layout.coverage_summary_paths[0],
            {
                "total": {
                    "lines": {"pct": 77},
                    "statements": {"pct": 76},
                    "branches": {"pct": 0},
                    "functions": {"pct": 55},
                }
            },
        )

        latest = store.list()[0]

        assert latest.metrics.coverage.lines == 77
        assert latest.metrics.coverage.statements == 76
        assert latest.metrics.coverage.branches == 0
        assert latest.metrics.coverage.functions == 55

    def test_only_branch_and_function_coverage_borrowed(self, store, write_snapshot):
        write_snapshot(
            make_snapshot(commit="t1", timestamp="2024-06-01T00:00:00.000Z", lines=50, branches=40, functions=45)
        )
        write_snapshot(make_snapshot(commit="t2", timestamp="2024-06-02T00:00:00.000Z", lines=80, statements=81))

        latest = store.list()[0]

        assert latest.metrics.coverage.lines == 80
        assert latest.metrics.coverage.statements == 81
        assert latest.metrics.coverage.branches == 40
        assert latest.metrics.coverage.functions == 45
        assert latest.data_quality.coverage_complete is True

    def test_bundle_measured_from_build_output(self, store, memfs, layout, write_snapshot):
        write_snapshot(make_snapshot(commit="t1", timestamp="2024-06-01T00:00:00.000Z", bundle_size=999))
        write_snapshot(make_snapshot(commit="t2", timestamp="2024-06-02T00:00:00.000Z"))
        memfs.add(layout.dist / "assets" / "app.js", "x" * 2048)
        memfs.add(layout.dist / "assets" / "app.css", "x" * 1024)
        memfs.add(layout.dist / "index.html", "x" * 4096)

        assert store.list()[0].metrics.performance.bundle_size == 3.0

    def test_nothing_to_borrow(self, store, write_snapshot):
        write_snapshot(make_snapshot(commit="only"))

        (snapshot,) = store.list()

        assert snapshot.metrics.performance.lighthouse.performance == 0
        assert snapshot.metrics.coverage.lines == 0
        assert snapshot.metrics.performance.bundle_size == 0


class TestLegacyReports:
    def test_report_becomes_freeform_snapshot(self, store, memfs, layout):
        memfs.add(layout.audit_reports_dir / f"audit_report_{REPORT_MS}.md", LEGACY_REPORT)
        memfs.add(
            layout.lighthouse_dir / "lighthouse_feed_desktop_2024-06-10T06-20-00-000Z.json",
            lighthouse_body(performance=0.85),
        )
        memfs.add(layout.tests / "api.core.test.ts", "")
        memfs.add(layout.tests / "feed.test.tsx", "")
        memfs.add(layout.tests / "helpers.ts", "")

        (snapshot,) = store.list()

        assert snapshot.source == "freeform"
        assert snapshot.version == "1.0"
        assert snapshot.branch == "main"
        assert snapshot.commit_hash == legacy_dedup_key(REPORT_MS)
        assert snapshot.timestamp == "2024-06-10T06:13:20.000Z"
        assert snapshot.report_file == f"audit_report_{REPORT_MS}.md"
        assert snapshot.confidence_level == "high"
        # 75% pass rate, performance 85
        assert snapshot.health_score == 83

        tests = snapshot.metrics.tests
        assert [s.name for s in tests.suites] == ["api", "feed"]
        assert (tests.total, tests.passed, tests.failed) == (2, 2, 0)
        assert tests.duration == pytest.approx(50000)

        assert snapshot.metrics.coverage.lines == 68.2
        assert snapshot.metrics.coverage.statements == 68.2
        assert snapshot.metrics.performance.bundle_size == 812.75
        assert snapshot.metrics.performance.lighthouse_feed.performance == 85
        assert snapshot.metrics.performance.lighthouse_home is None
        assert snapshot.metrics.performance.lighthouse.performance == 85
        assert snapshot.data_quality.lighthouse_valid is True

    def test_table_counts_used_without_suite_inventory(self, store, memfs, layout):
        memfs.add(layout.audit_reports_dir / f"audit_report_{REPORT_MS}.md", LEGACY_REPORT)

        (snapshot,) = store.list()

        tests = snapshot.metrics.tests
        assert (tests.total, tests.passed, tests.failed) == (4, 3, 1)
        # pass rate stands in for the missing performance audit
        assert snapshot.health_score == 80
        assert snapshot.data_quality.lighthouse_valid is False

    def test_same_instant_in_both_directories_loads_once(self, store, memfs, layout):
        memfs.add(layout.audit_reports_dir / f"audit_report_{REPORT_MS}.md", LEGACY_REPORT)
        memfs.add(layout.quality_reports_dir / "quality-2024-06-10T06-13-20-000Z.md", LEGACY_REPORT)

        snapshots = store.list()

        assert len(snapshots) == 1
        assert snapshots[0].report_file == f"audit_report_{REPORT_MS}.md"

    def test_structured_snapshot_shadows_report(self, store, memfs, layout, write_snapshot):
        write_snapshot(make_snapshot(commit=legacy_dedup_key(REPORT_MS), lines=50))
        memfs.add(layout.audit_reports_dir / f"audit_report_{REPORT_MS}.md", LEGACY_REPORT)

        (snapshot,) = store.list()

        assert snapshot.source == "structured"

    def test_undecodable_names_are_skipped(self, store, memfs, layout):
        memfs.add(layout.quality_reports_dir / "quality-latest.md", LEGACY_REPORT)
        memfs.add(layout.audit_reports_dir / "summary.md", LEGACY_REPORT)

        assert store.list() == []

    def test_out_of_range_name_is_skipped(self, store, memfs, layout, write_snapshot):
        write_snapshot(make_snapshot(commit="good", lines=50))
        memfs.add(layout.audit_reports_dir / "audit_report_100000000000000000000.md", LEGACY_REPORT)

        assert [s.commit_hash for s in store.list()] == ["good"]

    def test_rebuilt_on_every_load(self, store, memfs, layout):
        path = memfs.add(layout.audit_reports_dir / f"audit_report_{REPORT_MS}.md", LEGACY_REPORT)
        assert store.list()[0].metrics.coverage.lines == 68.2

        memfs.add(path, LEGACY_REPORT.replace("68.2%", "70%"))
        assert store.list()[0].metrics.coverage.lines == 70


class TestSave:
    def test_writes_commit_and_epoch_name(self, store, memfs, layout):
        snapshot = make_snapshot(commit="abc1234", timestamp="2024-06-10T06:13:20.000Z", lines=50)

        path = store.save(snapshot)

        assert path == layout.snapshots_dir / f"abc1234-{REPORT_MS}.json"
        assert json.loads(memfs.files[path]) == snapshot.to_dict()

    def test_saved_snapshot_is_listed(self, store):
        store.save(make_snapshot(commit="abc1234", performance=70, lines=50))
        assert [s.commit_hash for s in store.list()] == ["abc1234"]

    def test_write_failure_raises(self, store, memfs):
        memfs.read_only = True

        with pytest.raises(SnapshotWriteError) as exc_info:
            store.save(make_snapshot())

        assert "abc1234" in str(exc_info.value.path)


class TestGetReportContent:
    def test_audit_report(self, store, memfs, layout):
        memfs.add(layout.audit_reports_dir / "audit_report_1.md", "audit body")
        assert store.get_report_content("audit_report_1.md") == "audit body"

    def test_quality_report(self, store, memfs, layout):
        memfs.add(layout.quality_reports_dir / "quality-1.md", "quality body")
        assert store.get_report_content("quality-1.md") == "quality body"

    def test_directories_are_stripped(self, store, memfs, layout):
        memfs.add(layout.audit_reports_dir / "audit_report_1.md", "audit body")
        assert store.get_report_content("../../reports/audit_report_1.md") == "audit body"
        assert store.get_report_content("..\\audit_report_1.md") == "audit body"

    def test_missing(self, store):
        assert store.get_report_content("audit_report_404.md") is None
        assert store.get_report_content("reports/") is None
