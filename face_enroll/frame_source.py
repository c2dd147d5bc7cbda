"""
Frame Source Module

Supplies successive BGR frames from a camera, a video file, or a list of
image files.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Union

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class FrameSource(ABC):
    """Source of the most recent available frame."""

    @abstractmethod
    def next_frame(self) -> Optional[np.ndarray]:
        """Return the next frame, or None if none is available right now."""

    @abstractmethod
    def is_open(self) -> bool:
        """False once the source can produce no more frames."""

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class CameraFrameSource(FrameSource):
    """OpenCV capture over a camera device id or a video file path."""

    def __init__(self, device: Union[int, str] = 0, width: int = 640, height: int = 480):
        self.device = device
        self.cap = cv2.VideoCapture(device)

        if not self.cap.isOpened():
            logger.error(f"Failed to open capture device {device}")
        elif isinstance(device, int):
            self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
            self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
            logger.info(f"Camera {device} initialized successfully")
        else:
            logger.info(f"Video file {device} opened")

        self._exhausted = False

    def next_frame(self) -> Optional[np.ndarray]:
        if self._exhausted or not self.cap.isOpened():
            return None
        ret, frame = self.cap.read()
        if not ret:
            logger.warning("Failed to read frame")
            # a video file has ended; a camera may recover
            if isinstance(self.device, str):
                self._exhausted = True
            return None
        return frame

    def is_open(self) -> bool:
        return not self._exhausted and self.cap.isOpened()

    def close(self):
        if self.cap is not None:
            self.cap.release()


class ImageSequenceFrameSource(FrameSource):
    """Reads image files in order; exhausted after the last one."""

    def __init__(self, paths: Sequence[str]):
        self.paths: List[str] = list(paths)
        self._position = 0

    def next_frame(self) -> Optional[np.ndarray]:
        if self._position >= len(self.paths):
            return None
        path = self.paths[self._position]
        self._position += 1

        frame = cv2.imread(path)
        if frame is None:
            logger.warning(f"Could not read image {path}")
        return frame

    def is_open(self) -> bool:
        return self._position < len(self.paths)
