"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

MUX_HLS_URL = "https://stream.mux.com/{playback_id}.m3u8"


@dataclass
class DetectorConfig:
    """
    Detection pipeline configuration.

    These values are fixed for the life of the process; nothing edits them
    at runtime.
    """
    model_path: str = "models/yolov8n.onnx"
    input_size: int = 640
    conf_threshold: float = 0.25
    iou_threshold: float = 0.45
    min_interval_ms: float = 100.0
    channel_order: str = "rgb"
    labels: Optional[str] = None
    providers: List[str] = field(default_factory=lambda: ["CPUExecutionProvider"])
    refresh_hz: float = 60.0
    max_consecutive_failures: int = 5
    session_policy: str = "per_feed"

    @property
    def min_interval(self) -> float:
        """Minimum inter-pass interval in seconds."""
        return self.min_interval_ms / 1000.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DetectorConfig":
        return cls(
            model_path=d.get("model_path", "models/yolov8n.onnx"),
            input_size=d.get("input_size", 640),
            conf_threshold=d.get("conf_threshold", 0.25),
            iou_threshold=d.get("iou_threshold", 0.45),
            min_interval_ms=d.get("min_interval_ms", 100.0),
            channel_order=d.get("channel_order", "rgb"),
            labels=d.get("labels"),
            providers=list(d.get("providers") or ["CPUExecutionProvider"]),
            refresh_hz=d.get("refresh_hz", 60.0),
            max_consecutive_failures=d.get("max_consecutive_failures", 5),
            session_policy=d.get("session_policy", "per_feed"),
        )

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "model_path": self.model_path,
            "input_size": self.input_size,
            "conf_threshold": self.conf_threshold,
            "iou_threshold": self.iou_threshold,
            "min_interval_ms": self.min_interval_ms,
            "channel_order": self.channel_order,
            "providers": self.providers,
            "refresh_hz": self.refresh_hz,
            "max_consecutive_failures": self.max_consecutive_failures,
            "session_policy": self.session_policy,
        }
        if self.labels is not None:
            d["labels"] = self.labels
        return d


@dataclass
class FeedConfig:
    """One drone video feed."""
    id: str
    name: str = ""
    source: Union[int, str, None] = None
    playback_id: Optional[str] = None
    display_size: Optional[List[int]] = None
    fps: Optional[float] = None
    loop: bool = False
    swap_rb: bool = False
    rotate: int = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False
    detect_on_start: bool = False

    @property
    def locator(self) -> Union[int, str]:
        """
        The value handed to cv2.VideoCapture.

        An explicit source wins; otherwise the playback id is resolved to
        its HLS URL.
        """
        if self.source is not None and self.source != "":
            return self.source
        if self.playback_id:
            return MUX_HLS_URL.format(playback_id=self.playback_id)
        raise ValueError(f"Feed '{self.id}' has neither source nor playback_id")

    @property
    def display_tuple(self) -> Optional[Tuple[int, int]]:
        if not self.display_size:
            return None
        return (int(self.display_size[0]), int(self.display_size[1]))

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "FeedConfig":
        return cls(
            id=str(d.get("id", "feed")),
            name=d.get("name") or str(d.get("id", "feed")),
            source=d.get("source"),
            playback_id=d.get("playback_id"),
            display_size=d.get("display_size"),
            fps=d.get("fps"),
            loop=d.get("loop", False),
            swap_rb=d.get("swap_rb", False),
            rotate=d.get("rotate", 0) or 0,
            flip_horizontal=d.get("flip_horizontal", False),
            flip_vertical=d.get("flip_vertical", False),
            detect_on_start=d.get("detect_on_start", False),
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "loop": self.loop,
            "swap_rb": self.swap_rb,
            "rotate": self.rotate,
            "flip_horizontal": self.flip_horizontal,
            "flip_vertical": self.flip_vertical,
            "detect_on_start": self.detect_on_start,
        }
        if self.source is not None:
            d["source"] = self.source
        if self.playback_id is not None:
            d["playback_id"] = self.playback_id
        if self.display_size is not None:
            d["display_size"] = self.display_size
        if self.fps is not None:
            d["fps"] = self.fps
        return d


@dataclass
class WebConfig:
    """HTTP API configuration."""
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 8000
    stream_fps: int = 10
    jpeg_quality: int = 80

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WebConfig":
        return cls(
            enabled=d.get("enabled", True),
            host=d.get("host", "0.0.0.0"),
            port=d.get("port", 8000),
            stream_fps=d.get("stream_fps", 10),
            jpeg_quality=d.get("jpeg_quality", 80),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "host": self.host,
            "port": self.port,
            "stream_fps": self.stream_fps,
            "jpeg_quality": self.jpeg_quality,
        }


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    feeds: List[FeedConfig] = field(default_factory=list)
    web: WebConfig = field(default_factory=WebConfig)
    log_path: str = "logs/drone_detector.log"
    log_level: str = "INFO"

    def get_feed(self, feed_id: str) -> Optional[FeedConfig]:
        for feed in self.feeds:
            if feed.id == feed_id:
                return feed
        return None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            detector=DetectorConfig.from_dict(d.get("detector", {}) or {}),
            feeds=[FeedConfig.from_dict(f) for f in (d.get("feeds") or [])],
            web=WebConfig.from_dict(d.get("web", {}) or {}),
            log_path=d.get("log_path", "logs/drone_detector.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or passing to existing code)."""
        return {
            "detector": self.detector.to_dict(),
            "feeds": [f.to_dict() for f in self.feeds],
            "web": self.web.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
