"""Tests for reqflow.lib.config module."""

from reqflow.lib.config import EngineConfig, load_config
from reqflow.lib.models import Complexity, Priority


class TestLoadConfig:
    """Tests for load_config()."""

    def test_defaults_when_file_missing(self, tmp_path, monkeypatch):
        monkeypatch.delenv("REQFLOW_PERSISTENCE_URL", raising=False)
        monkeypatch.delenv("REQFLOW_GENERATION_URL", raising=False)
        config = load_config(tmp_path / "reqflow.yaml")
        assert config == EngineConfig()
        assert config.impact.strict_sum is False
        assert config.generation.min_content_length == 2

    def test_loads_yaml(self, tmp_path, monkeypatch):
        monkeypatch.delenv("REQFLOW_PERSISTENCE_URL", raising=False)
        path = tmp_path / "reqflow.yaml"
        path.write_text(
            "persistence:\n"
            "  base_url: https://requests.internal/api\n"
            "  timeout_seconds: 5\n"
            "impact:\n"
            "  strict_sum: true\n"
            "routing:\n"
            "  default_owner: Triage Queue\n"
            "  default_priority: Low\n"
            "  default_complexity: complex\n"
        )
        config = load_config(path)
        assert config.persistence.base_url == "https://requests.internal/api"
        assert config.persistence.timeout_seconds == 5.0
        assert config.impact.strict_sum is True
        assert config.routing.default_owner == "Triage Queue"
        assert config.routing.default_priority == Priority.LOW
        assert config.routing.default_complexity == Complexity.COMPLEX
        # Untouched sections keep defaults
        assert config.generation.max_tokens == 4000

    def test_invalid_yaml_falls_back(self, tmp_path, caplog):
        path = tmp_path / "reqflow.yaml"
        path.write_text("persistence: [unclosed\n")
        with caplog.at_level("WARNING"):
            config = load_config(path)
        assert config.impact == EngineConfig().impact
        assert "Failed to parse" in caplog.text

    def test_bad_value_falls_back(self, tmp_path):
        path = tmp_path / "reqflow.yaml"
        path.write_text("routing:\n  default_priority: Urgent\n")
        assert load_config(path).routing.default_priority == Priority.MEDIUM

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("REQFLOW_PERSISTENCE_URL", "http://db.test/api")
        monkeypatch.setenv("REQFLOW_GENERATION_URL", "http://llm.test/api")
        config = load_config(tmp_path / "missing.yaml")
        assert config.persistence.base_url == "http://db.test/api"
        assert config.generation.base_url == "http://llm.test/api"

    def test_config_path_from_env(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.yaml"
        path.write_text("generation:\n  max_tokens: 1234\n")
        monkeypatch.setenv("REQFLOW_CONFIG", str(path))
        assert load_config().generation.max_tokens == 1234
