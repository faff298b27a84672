"""
Pytest configuration and shared fixtures.
"""

import os
import sys

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
detector:
  model_path: "models/yolov8n.onnx"
  input_size: 640
  conf_threshold: 0.25
  iou_threshold: 0.45
  min_interval_ms: 100

feeds:
  - id: "alpha"
    name: "Drone Alpha"
    playback_id: "alpha123"
  - id: "bravo"
    name: "Drone Bravo"
    playback_id: "bravo456"

web:
  port: 8000

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "detector": {
            "model_path": "models/yolov8n.onnx",
            "input_size": 640,
            "conf_threshold": 0.25,
            "iou_threshold": 0.45,
            "min_interval_ms": 100,
            "channel_order": "rgb",
            "providers": ["CPUExecutionProvider"],
            "session_policy": "per_feed",
        },
        "feeds": [
            {"id": "alpha", "name": "Drone Alpha", "playback_id": "alpha123", "display_size": [1280, 720]},
            {"id": "bravo", "name": "Drone Bravo", "source": "rtmp://10.0.0.2/live/bravo"},
        ],
        "web": {"enabled": True, "port": 8000, "stream_fps": 10, "jpeg_quality": 80},
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }
