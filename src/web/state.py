import threading
import time
from typing import Dict, Optional

import cv2
import numpy as np


class FrameStore:
    """
    Latest annotated frame per feed, shared between the playback loop and
    the HTTP handlers. MJPEG generators run on the server's threadpool, so
    access goes through a lock.
    """

    def __init__(self):
        self._frames: Dict[str, np.ndarray] = {}
        self._timestamps: Dict[str, float] = {}
        self._lock = threading.Lock()

    def set_frame(self, feed_id: str, frame: np.ndarray) -> None:
        """Store the current frame of a feed."""
        if frame is None:
            return
        with self._lock:
            # The playback loop hands over a fresh annotated copy, no need to copy again
            self._frames[feed_id] = frame
            self._timestamps[feed_id] = time.time()

    def get_frame(self, feed_id: str) -> Optional[np.ndarray]:
        with self._lock:
            return self._frames.get(feed_id)

    def clear_frame(self, feed_id: str) -> None:
        with self._lock:
            self._frames.pop(feed_id, None)

    def last_frame_ts(self, feed_id: str) -> Optional[float]:
        with self._lock:
            return self._timestamps.get(feed_id)

    def get_jpeg(self, feed_id: str, quality: int = 80) -> Optional[bytes]:
        """Encode the current frame of a feed as JPEG, or None if there is none."""
        frame = self.get_frame(feed_id)
        if frame is None:
            return None
        ok, buf = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
        if not ok:
            return None
        return buf.tobytes()
