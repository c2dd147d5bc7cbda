"""
Presentation Module

One-way notification targets for enrollment progress. Presentations never
return anything into the core.
"""

import logging
import threading
from typing import Optional

from .detection import DetectionResult

logger = logging.getLogger(__name__)


class Presentation:
    """No-op base presentation."""

    def on_pose_changed(self, instruction: str, progress: float):
        pass

    def on_detection_update(self, detection: Optional[DetectionResult]):
        pass


class LoggingPresentation(Presentation):
    """Reports instructions and progress through the log."""

    def on_pose_changed(self, instruction: str, progress: float):
        logger.info(f"[{progress * 100:3.0f}%] {instruction}")


class OverlayState(Presentation):
    """Latest instruction, progress and detection, for drawing a preview.

    Notifications may arrive from any thread; readers take a consistent
    snapshot.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.instruction = ""
        self.progress = 0.0
        self.detection: Optional[DetectionResult] = None

    def on_pose_changed(self, instruction: str, progress: float):
        with self._lock:
            self.instruction = instruction
            self.progress = progress

    def on_detection_update(self, detection: Optional[DetectionResult]):
        with self._lock:
            self.detection = detection

    def snapshot(self):
        with self._lock:
            return self.instruction, self.progress, self.detection
