"""
Detection stages: preprocessing, output decoding, suppression and mapping.

Each stage is a plain synchronous object; the scheduler in `pipeline`
chains them around the asynchronous model call.
"""

from .decoder import OutputDecoder, OutputShapeError
from .labels import COCO_CLASSES, load_class_table
from .mapping import CoordinateMapper
from .nms import Suppressor, iou, non_max_suppression
from .preprocess import FramePreprocessor

__all__ = [
    "COCO_CLASSES",
    "CoordinateMapper",
    "FramePreprocessor",
    "OutputDecoder",
    "OutputShapeError",
    "Suppressor",
    "iou",
    "load_class_table",
    "non_max_suppression",
]
