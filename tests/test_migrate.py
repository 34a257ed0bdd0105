"""Tests for snapshot layout migration."""

import copy

import pytest

from conftest import make_snapshot
from quality_snapshots.snapshot.migrate import migrate_snapshot

FIXED_NOW = 1718000000000  # 2024-06-10T06:13:20.000Z


def clock():
    return FIXED_NOW


class TestCanonicalLayout:
    def test_round_trip_is_identity(self):
        snapshot = make_snapshot(performance=88, lines=80, branches=70, functions=90, bundle_size=512.5)
        snapshot.metrics.tests.flaky_rate = 0.02
        snapshot.report_file = "audit_report_1718000000000.md"
        raw = snapshot.to_dict()

        migrated = migrate_snapshot(copy.deepcopy(raw), clock=clock)

        assert migrated is not None
        assert migrated.to_dict() == raw

    def test_migrating_twice_changes_nothing(self):
        raw = make_snapshot(performance=75, lines=60).to_dict()
        once = migrate_snapshot(raw, clock=clock).to_dict()
        twice = migrate_snapshot(once, clock=clock).to_dict()
        assert once == twice

    def test_stale_data_quality_is_recomputed(self):
        raw = make_snapshot(performance=0, lines=80).to_dict()
        raw["dataQuality"] = {"lighthouseValid": True, "coverageComplete": True}

        migrated = migrate_snapshot(raw, clock=clock)

        assert migrated.data_quality.lighthouse_valid is False
        assert migrated.data_quality.coverage_complete is False

    def test_score_sets_for_home_and_feed_survive(self):
        raw = make_snapshot(performance=70).to_dict()
        raw["metrics"]["performance"]["lighthouseFeed"] = {
            "performance": 91,
            "accessibility": 92,
            "bestPractices": 93,
            "seo": 94,
        }
        migrated = migrate_snapshot(raw, clock=clock)
        assert migrated.metrics.performance.lighthouse_feed.performance == 91
        assert migrated.metrics.performance.lighthouse_home is None


class TestNestedScoreLayout:
    def test_score_and_confidence_are_unwrapped(self):
        raw = {
            "commitHash": "f00ba47",
            "timestamp": "2024-05-01T12:00:00.000Z",
            "healthScore": {"score": 72.5, "confidence": "medium"},
            "metrics": {
                "tests": {"total": 20, "passed": 18, "failed": 2},
                "coverage": {"lines": 81, "branches": 60, "functions": 70},
            },
        }

        snapshot = migrate_snapshot(raw, clock=clock)

        assert snapshot.commit_hash == "f00ba47"
        assert snapshot.health_score == 73
        assert snapshot.confidence_level == "medium"
        assert snapshot.metrics.tests.failed == 2
        assert snapshot.metrics.stability.uptime == 100
        assert snapshot.version == "1.0"


class TestMetaEnvelopeLayout:
    def test_identity_comes_from_meta(self):
        raw = {
            "meta": {"commit": "deadbee", "branch": "develop", "timestamp": "2024-04-02T08:30:00Z"},
            "healthScore": 64,
            "tests": {"total": 5, "passed": 5, "durationMs": 4200},
            "coverage": {"lines": 55.5, "branches": 40},
            "performance": {"lighthouseScore": 88, "lcp": 2100, "bundleSize": 420},
            "stability": {"uptimeAvailability": 99.5},
        }

        snapshot = migrate_snapshot(raw, clock=clock)

        assert snapshot.commit_hash == "deadbee"
        assert snapshot.branch == "develop"
        assert snapshot.timestamp == "2024-04-02T08:30:00.000Z"
        assert snapshot.metrics.tests.duration == 4200
        assert snapshot.metrics.coverage.lines == 55.5
        # statements fall back to the lines figure
        assert snapshot.metrics.coverage.statements == 55.5
        assert snapshot.metrics.performance.lighthouse.performance == 88
        assert snapshot.metrics.performance.lighthouse.accessibility == 100
        assert snapshot.metrics.performance.web_vitals.lcp == 2100
        assert snapshot.metrics.performance.bundle_size == 420
        assert snapshot.metrics.stability.uptime == 99.5
        assert snapshot.data_quality.lighthouse_valid is True


class TestFlatLayout:
    def test_missing_identity_gets_defaults(self):
        raw = {"tests": {"total": 3, "passed": 3}}

        snapshot = migrate_snapshot(raw, clock=clock)

        assert snapshot.commit_hash == "unknown"
        assert snapshot.branch == "main"
        assert snapshot.timestamp == "2024-06-10T06:13:20.000Z"
        assert snapshot.confidence_level == "low"
        assert snapshot.metrics.tests.total == 3

    def test_metrics_block_wins_over_top_level(self):
        raw = {
            "commitHash": "1234567",
            "timestamp": "2024-06-01T00:00:00.000Z",
            "metrics": {"coverage": {"lines": 90}},
            "coverage": {"lines": 10, "functions": 50},
        }

        snapshot = migrate_snapshot(raw, clock=clock)

        assert snapshot.metrics.coverage.lines == 90
        assert snapshot.metrics.coverage.functions == 50

    def test_freeform_source_is_kept(self):
        raw = {"commitHash": "1234567", "source": "markdown", "tests": {}}
        assert migrate_snapshot(raw, clock=clock).source == "freeform"


class TestUnrecognised:
    @pytest.mark.parametrize(
        "raw",
        [
            None,
            [],
            "snapshot",
            42,
            {},
            {"commitHash": "abc"},
            {"commitHash": "abc", "timestamp": "not a date", "tests": {"total": 1}},
            {"commitHash": "abc", "timestamp": 10**20, "tests": {"total": 1}},
        ],
    )
    def test_returns_none(self, raw):
        assert migrate_snapshot(raw, clock=clock) is None
