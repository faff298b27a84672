from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class DetectorStatusResponse(BaseModel):
    feed_id: str
    status: str = Field(..., description="unloaded|loading|active|failed")
    model_ready: bool
    last_error: Optional[str] = None
    passes: int = 0
    inference_failures: int = 0
    consecutive_failures: int = 0
    last_pass_ts: Optional[float] = None
    detection_count: int = 0


class DetectionModel(BaseModel):
    box: List[float] = Field(..., description="[x1, y1, x2, y2] in display pixels")
    score: float
    class_id: int
    label: str


class DetectionSetResponse(BaseModel):
    feed_id: str
    sequence: int
    canvas_size: Optional[List[int]] = None
    timestamp: float
    detections: List[DetectionModel]


class FeedSummary(BaseModel):
    id: str
    name: str
    running: bool
    last_frame_age_s: Optional[float] = Field(None, description="Seconds since last frame")
    display_size: Optional[List[int]] = None
    detector: DetectorStatusResponse


class HealthResponse(BaseModel):
    status: str
    feeds: int
    active_detectors: int
    timestamp: float
