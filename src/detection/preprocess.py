"""
Frame preprocessing: arbitrary frame -> fixed (1, 3, S, S) model tensor.

The frame is resized straight to S x S without letterboxing, so the aspect
ratio is distorted. YOLOv8 exports used here were driven this way and the
coordinate mapper undoes the distortion with independent x/y ratios.
Switching to a letterbox would need a matching change in the mapper.
"""

from __future__ import annotations

import cv2
import numpy as np

CHANNEL_ORDERS = ("rgb", "bgr")


class FramePreprocessor:
    """Convert OpenCV frames (BGR / BGRA) into planar, normalised tensors."""

    def __init__(
        self,
        input_size: int = 640,
        channel_order: str = "rgb",
        interpolation: int = cv2.INTER_LINEAR,
    ) -> None:
        """
        Args:
            input_size: Side length S of the square model input.
            channel_order: Channel order the model was trained on ("rgb" or "bgr").
            interpolation: OpenCV interpolation flag used for the resize.
        """
        if input_size <= 0:
            raise ValueError(f"input_size must be positive, got {input_size}")
        if channel_order not in CHANNEL_ORDERS:
            raise ValueError(f"channel_order must be one of {CHANNEL_ORDERS}, got {channel_order!r}")
        self.input_size = input_size
        self.channel_order = channel_order
        self.interpolation = interpolation

    @property
    def tensor_shape(self):
        return (1, 3, self.input_size, self.input_size)

    def preprocess(self, frame: np.ndarray) -> np.ndarray:
        """
        Build a fresh tensor from a frame. The frame is not modified.

        Args:
            frame: H x W x 3 (BGR) or H x W x 4 (BGRA) array, uint8, uint16 or float.

        Returns:
            float32 array of shape (1, 3, S, S) with values in [0, 1].
        """
        if frame is None or frame.ndim != 3 or frame.shape[2] not in (3, 4):
            shape = None if frame is None else frame.shape
            raise ValueError(f"Expected an HxWx3 or HxWx4 frame, got shape {shape}")
        if frame.shape[0] == 0 or frame.shape[1] == 0:
            raise ValueError(f"Frame has zero size: {frame.shape}")

        source = frame
        if np.issubdtype(frame.dtype, np.floating) and frame.dtype != np.float32:
            # cvtColor only takes 8U/16U/32F
            source = frame.astype(np.float32)

        size = self.input_size
        resized = cv2.resize(source, (size, size), interpolation=self.interpolation)

        if resized.shape[2] == 4:
            code = cv2.COLOR_BGRA2RGB if self.channel_order == "rgb" else cv2.COLOR_BGRA2BGR
            resized = cv2.cvtColor(resized, code)
        elif self.channel_order == "rgb":
            resized = cv2.cvtColor(resized, cv2.COLOR_BGR2RGB)

        tensor = resized.astype(np.float32)
        if np.issubdtype(frame.dtype, np.integer):
            tensor /= float(np.iinfo(frame.dtype).max)
        else:
            np.clip(tensor, 0.0, 1.0, out=tensor)

        # HWC -> CHW, each channel contiguous
        tensor = np.ascontiguousarray(tensor.transpose(2, 0, 1))
        return tensor[np.newaxis, ...]
