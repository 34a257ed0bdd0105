"""Readers for the on-disk artifacts that feed snapshots and the dashboard."""

from .bundle import compute_bundle_size
from .coverage import CoverageReport, CoverageSummary, CoverageSummaryCache, build_coverage_report
from .legacy_report import LegacyReportMetrics, LegacyReportSource, legacy_dedup_key, parse_legacy_report
from .lighthouse import LighthouseMatcher, ParsedAudit, parse_audit_filename, parse_audit_report
from .security import load_security_history, load_security_latest
from .test_results import list_test_suites, parse_test_report
from .timings import load_timing_history, record_execution_time, summarize_timings

__all__ = [
    "compute_bundle_size",
    "CoverageReport",
    "CoverageSummary",
    "CoverageSummaryCache",
    "build_coverage_report",
    "LegacyReportMetrics",
    "LegacyReportSource",
    "legacy_dedup_key",
    "parse_legacy_report",
    "LighthouseMatcher",
    "ParsedAudit",
    "parse_audit_filename",
    "parse_audit_report",
    "load_security_history",
    "load_security_latest",
    "list_test_suites",
    "parse_test_report",
    "load_timing_history",
    "record_execution_time",
    "summarize_timings",
]
