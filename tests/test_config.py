"""Tests for configuration loading."""

import os

import pytest

from quality_snapshots.config import HealthWeights, PipelineConfig, load_config
from quality_snapshots.exceptions import ConfigurationError, InvalidConfigError


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """No global config, no stray environment switches, cwd in a scratch dir."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for key in list(os.environ):
        if key.startswith(("QUALITY_", "DASHBOARD_")) or key in ("SNAPSHOT_DEBUG", "BUN_PATH"):
            monkeypatch.delenv(key)
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    return work


class TestPipelineConfig:
    def test_defaults(self):
        config = PipelineConfig()
        assert config.match_window_days == 30
        assert config.match_window_ms == 30 * 24 * 60 * 60 * 1000
        assert config.max_security_findings == 200
        assert config.timing_history_limit == 20
        assert config.weights.as_dict() == {"performance": 0.4, "tests": 0.3, "coverage": 0.2, "stability": 0.1}

    def test_layout(self, tmp_path):
        layout = PipelineConfig(root_dir=str(tmp_path)).layout
        assert layout.snapshots_dir == tmp_path / "performance-reports" / "quality-snapshots"
        assert layout.lighthouse_dir == tmp_path / "performance-reports" / "lighthouse"
        assert layout.coverage_summary_paths[1] == tmp_path / "coverage" / "coverage-summary.json"
        assert layout.dashboard_cache.name == "dashboard-cache.json"

    @pytest.mark.parametrize(
        "field,value",
        [
            ("match_window_days", 0),
            ("max_security_findings", 0),
            ("timing_history_limit", 0),
            ("workers", 0),
            ("log_level", "verbose"),
        ],
    )
    def test_validation(self, field, value):
        with pytest.raises(ValueError):
            PipelineConfig(**{field: value})

    def test_effective_log_level(self):
        assert PipelineConfig(log_level="warning").effective_log_level == "warning"
        assert PipelineConfig(debug=True, log_level="warning").effective_log_level == "debug"


class TestLoadConfig:
    def test_defaults_without_sources(self):
        config = load_config()
        assert config == PipelineConfig()

    def test_project_file(self, tmp_path):
        project = tmp_path / "project"
        project.mkdir()
        (project / "quality-snapshots.toml").write_text('reports_dir = "qa"\nmatch_window_days = 7\n')

        config = load_config(root_dir=str(project))

        assert config.reports_dir == "qa"
        assert config.match_window_days == 7
        assert config.layout.reports == project / "qa"

    def test_section_table_and_weights(self, tmp_path):
        path = tmp_path / "custom.toml"
        path.write_text(
            "[quality-snapshots]\n"
            "workers = 2\n"
            "[quality-snapshots.weights]\n"
            "performance = 0.25\n"
            "tests = 0.25\n"
            "coverage = 0.25\n"
            "stability = 0.25\n"
        )

        config = load_config(config_file=path)

        assert config.workers == 2
        assert config.weights == HealthWeights(0.25, 0.25, 0.25, 0.25)

    def test_bad_weights(self, tmp_path):
        path = tmp_path / "custom.toml"
        path.write_text("[weights]\nperformance = 0.9\n")
        with pytest.raises(ConfigurationError):
            load_config(config_file=path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_config(config_file=tmp_path / "nope.toml")

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "broken.toml"
        path.write_text("workers = = 3")
        with pytest.raises(ConfigurationError):
            load_config(config_file=path)

    def test_environment_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.toml"
        path.write_text("match_window_days = 7\n")
        monkeypatch.setenv("QUALITY_MATCH_WINDOW_DAYS", "14")

        assert load_config(config_file=path).match_window_days == 14

    def test_invalid_environment_value(self, monkeypatch):
        monkeypatch.setenv("QUALITY_WORKERS", "many")
        with pytest.raises(InvalidConfigError) as exc_info:
            load_config()
        assert exc_info.value.key == "QUALITY_WORKERS"

    def test_overrides_win_and_none_is_ignored(self, monkeypatch):
        monkeypatch.setenv("QUALITY_WORKERS", "3")
        config = load_config(workers=6, runner_path=None)
        assert config.workers == 6
        assert config.runner_path is None

    @pytest.mark.parametrize("value,expected", [("true", True), ("TRUE", True), ("1", False), ("yes", False)])
    def test_dashboard_debug_only_accepts_true(self, monkeypatch, value, expected):
        monkeypatch.setenv("DASHBOARD_DEBUG", value)
        assert load_config().debug is expected

    def test_dashboard_switches(self, monkeypatch):
        monkeypatch.setenv("DASHBOARD_PERSISTENT", "true")
        monkeypatch.setenv("DASHBOARD_LOG_LEVEL", "WARNING")
        monkeypatch.setenv("BUN_PATH", "/opt/bun/bin/bun")

        config = load_config()

        assert config.persistent is True
        assert config.log_level == "warning"
        assert config.runner_path == "/opt/bun/bin/bun"

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "custom.toml"
        path.write_text("colour = 'blue'\n")
        with pytest.raises(ConfigurationError):
            load_config(config_file=path)


class TestToDict:
    def test_flattens_weights(self):
        data = PipelineConfig(persistent=True).to_dict()

        assert data["persistent"] is True
        assert data["auto_rebuild"] is False
        assert data["weights"] == {"performance": 0.4, "tests": 0.3, "coverage": 0.2, "stability": 0.1}
        assert data["match_window_days"] == 30
