"""
Unit tests for config module.
"""

import pytest

from c3 import config


class TestLoadConfig:
    """Test config loading functionality."""

    def test_returns_empty_dict_when_no_file(self, tmp_path, monkeypatch):
        """Should return empty dict when config file doesn't exist."""
        monkeypatch.setattr(config, "CONFIG_PATH", tmp_path / "nonexistent.yaml")
        assert config.load_config() == {}

    def test_loads_valid_yaml(self, tmp_path, monkeypatch):
        """Should load valid YAML config."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("server:\n  port: 9500\npermission_tools: [Bash]\n")
        monkeypatch.setattr(config, "CONFIG_PATH", config_file)

        result = config.load_config()

        assert result["server"] == {"port": 9500}
        assert result["permission_tools"] == ["Bash"]

    def test_returns_empty_dict_on_invalid_yaml(self, tmp_path, monkeypatch):
        """Should return empty dict when YAML is invalid."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("invalid: yaml: content: [")
        monkeypatch.setattr(config, "CONFIG_PATH", config_file)

        assert config.load_config() == {}

    def test_returns_empty_dict_when_yaml_is_not_dict(self, tmp_path, monkeypatch):
        """Should return empty dict when YAML root is not a dict."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("- item1\n- item2\n")
        monkeypatch.setattr(config, "CONFIG_PATH", config_file)

        assert config.load_config() == {}

    def test_empty_file(self, tmp_path, monkeypatch):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("")
        monkeypatch.setattr(config, "CONFIG_PATH", config_file)

        assert config.load_config() == {}


class TestGetEngineSettings:
    """Test engine settings derived from config."""

    def test_defaults_without_config(self, tmp_path, monkeypatch):
        monkeypatch.setattr(config, "CONFIG_PATH", tmp_path / "missing.yaml")

        settings = config.get_engine_settings()

        assert settings.grace_window == 5.0
        assert settings.scan_interval == 3.0
        assert settings.port == 9398

    def test_reads_file(self, tmp_path, monkeypatch):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("engine:\n  grace_window: 8\nserver:\n  host: 0.0.0.0\n")
        monkeypatch.setattr(config, "CONFIG_PATH", config_file)

        settings = config.get_engine_settings()

        assert settings.grace_window == 8.0
        assert settings.host == "0.0.0.0"

    def test_explicit_dict_skips_file(self, tmp_path, monkeypatch):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("engine:\n  grace_window: 8\n")
        monkeypatch.setattr(config, "CONFIG_PATH", config_file)

        assert config.get_engine_settings({}).grace_window == 5.0


class TestGetNotificationConfig:
    """Test notification section parsing."""

    def test_defaults(self):
        result = config.get_notification_config({})
        assert result["mode"] == "both"
        assert result["sounds"] == config.DEFAULT_SOUNDS

    def test_mode_and_sound_override(self):
        result = config.get_notification_config({
            "notifications": {"mode": "sound", "sounds": {"complete": "Funk"}},
        })
        assert result["mode"] == "sound"
        assert result["sounds"]["complete"] == "Funk"
        assert result["sounds"]["permission"] == "Glass"

    def test_invalid_mode_falls_back(self):
        result = config.get_notification_config({"notifications": {"mode": "loud"}})
        assert result["mode"] == "both"

    @pytest.mark.parametrize("section", ["off", ["mode"], None])
    def test_non_dict_section_is_ignored(self, section):
        result = config.get_notification_config({"notifications": section})
        assert result["mode"] == "both"

    def test_unknown_sound_kinds_and_bad_values_ignored(self):
        result = config.get_notification_config({
            "notifications": {"sounds": {"error": "Basso", "input": 3}},
        })
        assert "error" not in result["sounds"]
        assert result["sounds"]["input"] == "Ping"

    def test_does_not_mutate_defaults(self):
        config.get_notification_config({"notifications": {"sounds": {"input": "Pop"}}})
        assert config.DEFAULT_SOUNDS["input"] == "Ping"
