"""
Smoke tests for configuration loading and validation.
"""

import pytest

from main import _deep_merge, load_config, select_feeds, validate_config
from models.config import Config


class TestValidateConfig:
    """Tests for validate_config function."""

    def test_valid_config_passes(self, valid_config):
        """A complete valid config passes validation."""
        is_valid, error = validate_config(valid_config)

        assert is_valid is True
        assert error is None

    @pytest.mark.parametrize("section", ["detector", "feeds", "log_path", "log_level"])
    def test_missing_required_section(self, valid_config, section):
        """Each required top-level section is enforced."""
        del valid_config[section]

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert section in error

    def test_web_section_optional(self, valid_config):
        del valid_config["web"]

        is_valid, _ = validate_config(valid_config)

        assert is_valid is True

    def test_missing_model_path(self, valid_config):
        del valid_config["detector"]["model_path"]

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "model_path" in error

    @pytest.mark.parametrize("key,value", [
        ("conf_threshold", 1.5),
        ("conf_threshold", "high"),
        ("iou_threshold", -0.1),
        ("input_size", 0),
        ("input_size", 640.0),
        ("min_interval_ms", -5),
        ("refresh_hz", 0),
        ("max_consecutive_failures", 0),
        ("channel_order", "yuv"),
        ("session_policy", "global"),
        ("providers", "CPUExecutionProvider"),
    ])
    def test_invalid_detector_values(self, valid_config, key, value):
        valid_config["detector"][key] = value

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert key in error

    def test_zero_min_interval_allowed(self, valid_config):
        valid_config["detector"]["min_interval_ms"] = 0

        assert validate_config(valid_config)[0] is True

    def test_empty_feeds(self, valid_config):
        valid_config["feeds"] = []

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "feeds" in error

    def test_feed_without_locator(self, valid_config):
        valid_config["feeds"][0] = {"id": "alpha"}

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "playback_id" in error

    def test_duplicate_feed_ids(self, valid_config):
        valid_config["feeds"][1]["id"] = "alpha"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "Duplicate" in error

    def test_invalid_display_size(self, valid_config):
        valid_config["feeds"][0]["display_size"] = [1280]

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "display_size" in error

    def test_invalid_rotate(self, valid_config):
        valid_config["feeds"][0]["rotate"] = 45

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "rotate" in error

    def test_invalid_port(self, valid_config):
        valid_config["web"]["port"] = 70000

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "port" in error

    def test_invalid_jpeg_quality(self, valid_config):
        valid_config["web"]["jpeg_quality"] = 0

        assert validate_config(valid_config)[0] is False

    def test_invalid_log_level(self, valid_config):
        valid_config["log_level"] = "VERBOSE"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "log_level" in error


class TestDeepMerge:
    def test_nested_override(self):
        base = {"detector": {"conf_threshold": 0.25, "iou_threshold": 0.45}}

        merged = _deep_merge(base, {"detector": {"conf_threshold": 0.5}})

        assert merged == {"detector": {"conf_threshold": 0.5, "iou_threshold": 0.45}}

    def test_lists_replaced(self):
        base = {"feeds": [{"id": "alpha"}, {"id": "bravo"}]}

        merged = _deep_merge(base, {"feeds": [{"id": "charlie"}]})

        assert merged["feeds"] == [{"id": "charlie"}]


class TestLoadConfig:
    """Tests for load_config function."""

    def test_loads_default_yaml(self, temp_config_dir):
        """Loads default.yaml when no overrides exist."""
        config = load_config(str(temp_config_dir / "config.yaml"))

        assert config["detector"]["input_size"] == 640
        assert [f["id"] for f in config["feeds"]] == ["alpha", "bravo"]

    def test_local_overrides_merge(self, temp_config_dir):
        """config.yaml overrides default.yaml values."""
        (temp_config_dir / "config.yaml").write_text("""
detector:
  conf_threshold: 0.4
log_level: "DEBUG"
""")

        config = load_config(str(temp_config_dir / "config.yaml"))

        assert config["detector"]["conf_threshold"] == 0.4
        assert config["detector"]["iou_threshold"] == 0.45
        assert config["log_level"] == "DEBUG"

    def test_explicit_config_applied_last(self, temp_config_dir):
        (temp_config_dir / "config.yaml").write_text("detector:\n  min_interval_ms: 200\n")
        explicit = temp_config_dir / "field.yaml"
        explicit.write_text("detector:\n  min_interval_ms: 50\n")

        config = load_config(str(explicit))

        assert config["detector"]["min_interval_ms"] == 50

    def test_loaded_defaults_validate(self, temp_config_dir):
        config = load_config(str(temp_config_dir / "config.yaml"))

        assert validate_config(config) == (True, None)

    def test_invalid_yaml_exits(self, temp_config_dir):
        (temp_config_dir / "config.yaml").write_text("detector: [unclosed\n")

        with pytest.raises(SystemExit):
            load_config(str(temp_config_dir / "config.yaml"))


class TestSelectFeeds:
    def test_no_filter(self, valid_config):
        config = Config.from_dict(valid_config)

        assert len(select_feeds(config, None).feeds) == 2

    def test_single_feed(self, valid_config):
        config = select_feeds(Config.from_dict(valid_config), "bravo")

        assert [f.id for f in config.feeds] == ["bravo"]

    def test_unknown_feed(self, valid_config):
        with pytest.raises(ValueError, match="charlie"):
            select_feeds(Config.from_dict(valid_config), "charlie")
