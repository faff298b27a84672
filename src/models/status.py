"""
Detector status models for the activation contract.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class DetectorStatus(str, Enum):
    """Observable detector status levels."""
    UNLOADED = "unloaded"
    LOADING = "loading"
    ACTIVE = "active"
    FAILED = "failed"


@dataclass(frozen=True)
class DetectorState:
    """
    Snapshot of one detector for monitoring/UI.

    Attributes:
        status: unloaded|loading|active|failed.
        model_ready: True once the model session has loaded, even while idle.
        last_error: Message to show the user, if any.
        passes: Completed pipeline passes since creation.
        inference_failures: Inference calls that raised since creation.
        consecutive_failures: Inference failures since the last success.
        last_pass_ts: Unix timestamp of the last applied DetectionSet.
        detection_count: Size of the DetectionSet currently rendered.
    """
    status: DetectorStatus
    model_ready: bool = False
    last_error: Optional[str] = None
    passes: int = 0
    inference_failures: int = 0
    consecutive_failures: int = 0
    last_pass_ts: Optional[float] = None
    detection_count: int = 0

    @property
    def is_active(self) -> bool:
        return self.status == DetectorStatus.ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "status": self.status.value,
            "model_ready": self.model_ready,
            "last_error": self.last_error,
            "passes": self.passes,
            "inference_failures": self.inference_failures,
            "consecutive_failures": self.consecutive_failures,
            "last_pass_ts": self.last_pass_ts,
            "detection_count": self.detection_count,
        }
