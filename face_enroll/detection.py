"""
Detection Types

Result records exchanged between the face detector, the capture loop and
recognition, plus the bounded face crop used before embedding.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np


@dataclass
class DetectionResult:
    bbox: List[int]  # [x, y, width, height] in frame coordinates
    pitch: float  # degrees, positive = looking up
    yaw: float  # degrees, positive = turned toward image right
    roll: float = 0.0
    contours: Dict[str, List[Tuple[int, int]]] = field(default_factory=dict)
    confidence: float = 1.0


@dataclass
class MatchResult:
    identity_id: str
    score: float


def crop_face(image: np.ndarray, bbox: List[int],
              padding: float = 0.0) -> Optional[np.ndarray]:
    """
    Crop a face region, clamping the box to the image bounds.

    Args:
        image: Input image
        bbox: Bounding box [x, y, width, height]
        padding: Padding factor (0.2 = 20% padding)

    Returns:
        Cropped face image or None if the box does not overlap the image
    """
    if image is None or image.size == 0 or len(bbox) != 4:
        return None

    height, width = image.shape[:2]
    x, y, w, h = [int(v) for v in bbox]

    pad_w = int(w * padding)
    pad_h = int(h * padding)

    x1 = max(0, x - pad_w)
    y1 = max(0, y - pad_h)
    x2 = min(width, x + w + pad_w)
    y2 = min(height, y + h + pad_h)

    if x2 <= x1 or y2 <= y1:
        return None

    face_crop = image[y1:y2, x1:x2]
    return face_crop if face_crop.size > 0 else None
