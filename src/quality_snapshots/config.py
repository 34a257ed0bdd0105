"""Configuration loading and management for Quality Snapshots.

Configuration sources are merged in priority order:
    1. Defaults (defined in PipelineConfig)
    2. Global config (~/.quality-snapshots.toml)
    3. Project config (<root>/quality-snapshots.toml)
    4. Explicit config file
    5. Environment variables (QUALITY_* prefix, then the dashboard switches)
    6. CLI overrides (passed as kwargs)

Example:
    >>> config = load_config(debug=True)
    >>> config.debug
    True
    >>> config.layout.snapshots_dir.name
    'quality-snapshots'
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Literal, Optional, get_type_hints

from .exceptions import ConfigurationError, InvalidConfigError

LogLevel = Literal["debug", "info", "warning", "error"]

# Switches read by the dashboard tooling before QUALITY_* existed.
_DASHBOARD_ENV = {
    "DASHBOARD_DEBUG": "debug",
    "SNAPSHOT_DEBUG": "debug",
    "DASHBOARD_LOG_LEVEL": "log_level",
    "DASHBOARD_PERSISTENT": "persistent",
    "DASHBOARD_AUTO_BUILD": "auto_rebuild",
    "BUN_PATH": "runner_path",
}


@dataclass(frozen=True)
class HealthWeights:
    """Category weights of the structured health score (must sum to 1.0)."""

    performance: float = 0.40
    tests: float = 0.30
    coverage: float = 0.20
    stability: float = 0.10

    def __post_init__(self) -> None:
        for name in ("performance", "tests", "coverage", "stability"):
            if getattr(self, name) < 0:
                raise ValueError(f"weight '{name}' must be non-negative")
        total = self.performance + self.tests + self.coverage + self.stability
        if not 0.99 <= total <= 1.01:
            raise ValueError(f"Health weights must sum to 1.0, got {total:.3f}")

    def as_dict(self) -> dict[str, float]:
        return {
            "performance": self.performance,
            "tests": self.tests,
            "coverage": self.coverage,
            "stability": self.stability,
        }


@dataclass(frozen=True)
class ReportLayout:
    """Resolved on-disk locations of every artifact the pipeline touches."""

    root: Path
    reports: Path
    dist: Path
    tests: Path

    @property
    def snapshots_dir(self) -> Path:
        return self.reports / "quality-snapshots"

    @property
    def audit_reports_dir(self) -> Path:
        return self.reports / "reports"

    @property
    def quality_reports_dir(self) -> Path:
        return self.reports / "quality"

    @property
    def lighthouse_dir(self) -> Path:
        return self.reports / "lighthouse"

    @property
    def coverage_dir(self) -> Path:
        return self.reports / "coverage"

    @property
    def coverage_summary_paths(self) -> tuple[Path, Path]:
        """Primary summary location first, then the pre-reports location."""
        return (
            self.coverage_dir / "coverage-summary.json",
            self.root / "coverage" / "coverage-summary.json",
        )

    @property
    def coverage_final(self) -> Path:
        return self.coverage_dir / "coverage-final.json"

    @property
    def test_report(self) -> Path:
        return self.coverage_dir / "temp-vitest-report.json"

    @property
    def security_dir(self) -> Path:
        return self.reports / "security"

    @property
    def security_latest(self) -> Path:
        return self.security_dir / "security-latest.json"

    @property
    def timing_history(self) -> Path:
        return self.reports / "logs" / "execution_history.json"

    @property
    def dashboard_cache(self) -> Path:
        return self.reports / "dashboard" / "dashboard-cache.json"


@dataclass(frozen=True)
class PipelineConfig:
    """Configuration for one pipeline invocation.

    All fields have sensible defaults. Users typically override only a few
    fields via CLI flags, a TOML file or environment variables.

    Attributes:
        Locations:
            root_dir: Project root all other directories are relative to
            reports_dir: Directory holding every quality artifact
            dist_dir: Build output scanned for bundle size
            tests_dir: Test directory used for the suite inventory

        Matching and aggregation:
            match_window_days: Hard ceiling for performance-audit matching
            max_security_findings: Findings kept in the cached security block
            timing_history_limit: Runs kept per script in the timing history
            workers: Thread pool size for independent artifact reads

        Runtime switches:
            debug: Force DEBUG logging
            log_level: Log level when neither debug nor --verbose is set
            persistent: Serving layer keeps running without idle shutdown
            auto_rebuild: Serving layer rebuilds when the build is invalid
            runner_path: Override for the external command-runner binary
            test_command: Command run by ``generate --run-tests``

        Scoring:
            weights: Structured health score category weights
    """

    root_dir: str = "."
    reports_dir: str = "performance-reports"
    dist_dir: str = "dist"
    tests_dir: str = "__tests__"

    match_window_days: int = 30
    max_security_findings: int = 200
    timing_history_limit: int = 20
    workers: int = 4

    debug: bool = False
    log_level: LogLevel = "info"
    persistent: bool = False
    auto_rebuild: bool = False
    runner_path: Optional[str] = None
    test_command: str = "vitest run --reporter=json --coverage.enabled=true --coverage.reporter=json-summary --passWithNoTests"

    weights: HealthWeights = field(default_factory=HealthWeights)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.match_window_days < 1:
            raise ValueError("match_window_days must be at least 1")
        if self.max_security_findings < 1:
            raise ValueError("max_security_findings must be at least 1")
        if self.timing_history_limit < 1:
            raise ValueError("timing_history_limit must be at least 1")
        if self.workers < 1:
            raise ValueError("workers must be at least 1")
        if self.log_level not in ("debug", "info", "warning", "error"):
            raise ValueError("log_level must be one of debug/info/warning/error")

    def to_dict(self) -> dict[str, Any]:
        """Resolved settings keyed by field name, weights flattened to a mapping."""
        data = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "weights"}
        data["weights"] = self.weights.as_dict()
        return data

    @property
    def match_window_ms(self) -> int:
        """Matching ceiling in milliseconds."""
        return self.match_window_days * 24 * 60 * 60 * 1000

    @property
    def effective_log_level(self) -> str:
        return "debug" if self.debug else self.log_level

    @property
    def layout(self) -> ReportLayout:
        root = Path(self.root_dir).resolve()
        return ReportLayout(
            root=root,
            reports=root / self.reports_dir,
            dist=root / self.dist_dir,
            tests=root / self.tests_dir,
        )


def load_config(config_file: Optional[Path] = None, **overrides: Any) -> PipelineConfig:
    """Load configuration with auto-discovery and merging.

    Args:
        config_file: Optional explicit config file path
        **overrides: Direct overrides (typically from CLI flags). ``None``
            values are ignored so unset CLI options never mask a file value.

    Returns:
        Validated PipelineConfig instance

    Raises:
        ConfigurationError: If a config file is invalid or missing, or a
            value fails validation
    """
    merged: dict[str, Any] = {}

    global_config = Path.home() / ".quality-snapshots.toml"
    if global_config.exists():
        merged.update(_load_toml_section(global_config))

    root = Path(overrides.get("root_dir") or os.environ.get("QUALITY_ROOT_DIR") or ".")
    project_config = root / "quality-snapshots.toml"
    if project_config.exists():
        merged.update(_load_toml_section(project_config))

    if config_file is not None:
        if not config_file.exists():
            raise ConfigurationError(f"Config file not found: {config_file}")
        merged.update(_load_toml_section(config_file))

    merged.update(_load_env_vars())
    merged.update({k: v for k, v in overrides.items() if v is not None})

    weights = merged.pop("weights", None)
    if weights is not None:
        if isinstance(weights, dict):
            try:
                merged["weights"] = HealthWeights(**weights)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Invalid [weights] config: {e}")
        elif isinstance(weights, HealthWeights):
            merged["weights"] = weights

    try:
        return PipelineConfig(**merged)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid configuration: {e}")


def _load_env_vars() -> dict[str, Any]:
    """Load configuration from QUALITY_* and dashboard environment variables.

    ``QUALITY_<FIELD>`` is read for every scalar field. The dashboard
    switches (DASHBOARD_DEBUG, DASHBOARD_PERSISTENT, BUN_PATH, ...) are
    applied afterwards and win over their QUALITY_* equivalents.
    """
    type_hints = get_type_hints(PipelineConfig)
    result: dict[str, Any] = {}

    for field_name in PipelineConfig.__dataclass_fields__:
        env_key = f"QUALITY_{field_name.upper()}"
        env_value = os.environ.get(env_key)
        if env_value is None:
            continue
        type_hint = type_hints.get(field_name)
        if type_hint is None:
            continue
        try:
            parsed = _parse_env_value(env_value, type_hint)
        except ValueError as e:
            raise InvalidConfigError(env_key, env_value, str(e))
        if parsed is not None:
            result[field_name] = parsed

    for env_key, field_name in _DASHBOARD_ENV.items():
        env_value = os.environ.get(env_key)
        if not env_value:
            continue
        if field_name == "debug" and env_value.lower() != "true":
            continue
        try:
            result[field_name] = _parse_env_value(env_value, type_hints[field_name])
        except ValueError as e:
            raise InvalidConfigError(env_key, env_value, str(e))

    return result


def _parse_env_value(value: str, type_hint: Any) -> Any:
    """Parse an environment variable string to the field's type.

    Returns None for types that cannot come from the environment (the
    nested weights table).

    Raises:
        ValueError: If value can't be parsed to expected type
    """
    origin = getattr(type_hint, "__origin__", None)
    args = getattr(type_hint, "__args__", ())
    if type(None) in args:
        non_none_types = [t for t in args if t is not type(None)]
        if non_none_types:
            type_hint = non_none_types[0]
            origin = getattr(type_hint, "__origin__", None)

    if type_hint is bool:
        lower = value.lower()
        if lower in ("true", "1", "yes", "on"):
            return True
        if lower in ("false", "0", "no", "off"):
            return False
        raise ValueError(f"expected true/false, got '{value}'")

    if type_hint is int:
        return int(value)

    if type_hint is float:
        return float(value)

    if origin is Literal:
        lower = value.lower()
        if lower not in args:
            raise ValueError(f"expected one of {', '.join(args)}, got '{value}'")
        return lower

    if type_hint is str:
        return value

    return None


def _load_toml_section(path: Path) -> dict[str, Any]:
    """Load a TOML file and return its settings.

    Settings may live at the top level or under a ``[quality-snapshots]``
    table (so they can share a file with other tools).
    """
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(f"Invalid config file '{path}': {e}")
    section = data.get("quality-snapshots")
    if isinstance(section, dict):
        return dict(section)
    return data
