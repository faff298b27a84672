"""
ONNX Runtime inference backend.

Runs YOLOv8-style exports whose single output is shaped
(1, 4 + num_classes, num_candidates).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

from .backend import InferenceBackend, ModelLoadError


@dataclass(frozen=True)
class OnnxModelConfig:
    model_path: str
    providers: Sequence[str] = field(default_factory=lambda: ("CPUExecutionProvider",))
    input_name: Optional[str] = None
    intra_op_threads: int = 1


class OnnxRuntimeBackend(InferenceBackend):
    """
    Wraps an onnxruntime.InferenceSession.

    Construction performs the (slow) model load; every failure on that path
    is reported as ModelLoadError.
    """

    def __init__(self, cfg: OnnxModelConfig):
        self.cfg = cfg
        try:
            import onnxruntime as ort  # type: ignore
        except ImportError as e:  # pragma: no cover
            raise ModelLoadError(
                "onnxruntime is not installed. Install with `pip install onnxruntime`."
            ) from e

        if not os.path.exists(cfg.model_path):
            raise ModelLoadError(f"Model file not found: {cfg.model_path}")

        available = set(ort.get_available_providers())
        providers: List[str] = [p for p in cfg.providers if p in available]
        if not providers:
            raise ModelLoadError(
                f"None of the requested execution providers {list(cfg.providers)} "
                f"are available (have {sorted(available)})"
            )
        skipped = [p for p in cfg.providers if p not in available]
        if skipped:
            logging.warning(f"Execution providers not available, skipping: {skipped}")

        so = ort.SessionOptions()
        so.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL
        so.intra_op_num_threads = cfg.intra_op_threads

        try:
            self._session = ort.InferenceSession(cfg.model_path, sess_options=so, providers=providers)
        except Exception as e:
            raise ModelLoadError(f"Failed to load model {cfg.model_path}: {e}") from e

        inputs = self._session.get_inputs()
        if not inputs:
            raise ModelLoadError(f"Model {cfg.model_path} declares no inputs")
        self.input_name = cfg.input_name or inputs[0].name
        self.input_shape = list(inputs[0].shape)
        self.output_name = self._session.get_outputs()[0].name
        self.output_shape = list(self._session.get_outputs()[0].shape)

        logging.info(
            f"ONNX model loaded: path={cfg.model_path}, providers={self._session.get_providers()}, "
            f"input={self.input_name}{self.input_shape}, output={self.output_name}{self.output_shape}"
        )

    def run(self, tensor: np.ndarray) -> np.ndarray:
        outputs = self._session.run([self.output_name], {self.input_name: tensor})
        return np.asarray(outputs[0])
