"""
Class label tables.

A class table is an immutable, index-addressed tuple of names whose length
must equal the number of class rows in the model output.
"""

from __future__ import annotations

import logging
import os
from typing import Optional, Tuple

import yaml

COCO_CLASSES: Tuple[str, ...] = (
    "person", "bicycle", "car", "motorcycle", "airplane", "bus", "train", "truck",
    "boat", "traffic light", "fire hydrant", "stop sign", "parking meter", "bench",
    "bird", "cat", "dog", "horse", "sheep", "cow", "elephant", "bear", "zebra",
    "giraffe", "backpack", "umbrella", "handbag", "tie", "suitcase", "frisbee",
    "skis", "snowboard", "sports ball", "kite", "baseball bat", "baseball glove",
    "skateboard", "surfboard", "tennis racket", "bottle", "wine glass", "cup",
    "fork", "knife", "spoon", "bowl", "banana", "apple", "sandwich", "orange",
    "broccoli", "carrot", "hot dog", "pizza", "donut", "cake", "chair", "couch",
    "potted plant", "bed", "dining table", "toilet", "tv", "laptop", "mouse",
    "remote", "keyboard", "cell phone", "microwave", "oven", "toaster", "sink",
    "refrigerator", "book", "clock", "vase", "scissors", "teddy bear",
    "hair drier", "toothbrush",
)


def load_class_table(path: Optional[str] = None) -> Tuple[str, ...]:
    """
    Load a class table from YAML, or return the COCO table.

    Accepted layouts:
        - a plain list of names
        - {"names": [...]} (Ultralytics dataset.yaml style)
        - {"names": {0: "a", 1: "b"}} with contiguous integer keys

    Raises:
        FileNotFoundError: If path is given but does not exist.
        ValueError: If the file does not describe a usable table.
    """
    if not path:
        return COCO_CLASSES

    if not os.path.exists(path):
        raise FileNotFoundError(f"Class table not found: {path}")

    with open(path, "r") as f:
        data = yaml.safe_load(f)

    names = data.get("names") if isinstance(data, dict) else data
    if isinstance(names, dict):
        try:
            indexed = {int(k): str(v) for k, v in names.items()}
        except (TypeError, ValueError) as e:
            raise ValueError(f"Class table {path} has non-integer keys") from e
        if sorted(indexed) != list(range(len(indexed))):
            raise ValueError(f"Class table {path} keys must be contiguous from 0")
        table = tuple(indexed[i] for i in range(len(indexed)))
    elif isinstance(names, list):
        table = tuple(str(n) for n in names)
    else:
        raise ValueError(f"Class table {path} must be a list or contain a 'names' entry")

    if not table:
        raise ValueError(f"Class table {path} is empty")

    logging.info(f"Loaded {len(table)} class labels from {path}")
    return table
