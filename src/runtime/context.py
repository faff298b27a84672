from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from models.config import Config, FeedConfig
from observation.base import FrameSource
from pipeline.engine import FeedEngine
from pipeline.renderer import FrameOverlayRenderer
from pipeline.scheduler import DetectionScheduler


@dataclass
class FeedRuntime:
    """Everything wired for one drone feed."""

    config: FeedConfig
    source: FrameSource
    renderer: FrameOverlayRenderer
    scheduler: DetectionScheduler
    engine: FeedEngine


@dataclass
class RuntimeContext:
    """Holds runtime state and service references; avoids global singletons."""

    config: Config
    frame_store: Any
    feeds: Dict[str, FeedRuntime] = field(default_factory=dict)
    # Set when feeds share one model session
    session_pool: Optional[Any] = None

    def get_feed(self, feed_id: str) -> FeedRuntime:
        """
        Raises:
            KeyError: If no feed has this id.
        """
        return self.feeds[feed_id]

    def feed_ids(self) -> List[str]:
        return list(self.feeds)

    def shutdown(self) -> None:
        """Stop playback and release every model session."""
        for feed in self.feeds.values():
            feed.engine.stop()
            feed.scheduler.shutdown()
        if self.session_pool is not None:
            self.session_pool.close()
