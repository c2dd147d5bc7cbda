"""
Face Detection Module

Detects the primary face in a frame with the face_recognition library and
estimates head orientation from its landmarks with OpenCV's PnP solver.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import cv2
import face_recognition
import numpy as np

from .detection import DetectionResult, crop_face

logger = logging.getLogger(__name__)

# Canonical 3-D face model (arbitrary units): x to image right, y down,
# z away from the camera, nose tip at the origin.
MODEL_POINTS = np.array([
    (0.0, 0.0, 0.0),          # nose tip
    (0.0, 330.0, 65.0),       # chin
    (-225.0, -170.0, 135.0),  # outer corner of the image-left eye
    (225.0, -170.0, 135.0),   # outer corner of the image-right eye
    (-150.0, 150.0, 125.0),   # image-left mouth corner
    (150.0, 150.0, 125.0),    # image-right mouth corner
], dtype=np.float64)

# (feature, index) in face_recognition's landmark dict, matching MODEL_POINTS.
LANDMARK_KEYS = [
    ('nose_tip', 2),
    ('chin', 8),
    ('left_eye', 0),
    ('right_eye', 3),
    ('top_lip', 0),
    ('top_lip', 6),
]


class FaceDetector:
    """Primary-face detector reporting bounding box, head angles and contours."""

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize face detector.

        Args:
            config: Configuration dictionary with face detection settings
        """
        self.config = config.get('face_detection', {}) or {}
        self.model = self.config.get('model', 'hog')
        self.upsample = int(self.config.get('upsample', 1))
        self.mirror = bool(self.config.get('mirror', False))
        self.crop_padding = float(self.config.get('crop_padding', 0.0))

        if self.model not in ('hog', 'cnn'):
            logger.warning(f"Unsupported detection model: {self.model}, falling back to hog")
            self.model = 'hog'

        logger.info(f"Face detector initialized with model: {self.model}")

    def detect(self, image: np.ndarray) -> Optional[DetectionResult]:
        """
        Detect the primary (largest) face in an image.

        Args:
            image: Input image as numpy array (BGR format)

        Returns:
            DetectionResult, or None if no face was found or its pose could
            not be estimated
        """
        if image is None or image.size == 0:
            return None

        try:
            rgb_image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
            locations = face_recognition.face_locations(
                rgb_image, number_of_times_to_upsample=self.upsample, model=self.model
            )
            if not locations:
                return None

            # (top, right, bottom, left); keep the largest face only
            location = max(locations, key=lambda loc: (loc[2] - loc[0]) * (loc[1] - loc[3]))
            landmarks_list = face_recognition.face_landmarks(rgb_image, face_locations=[location])
            if not landmarks_list:
                return None
            landmarks = landmarks_list[0]

            pose = self.estimate_head_pose(landmarks, image.shape)
            if pose is None:
                logger.debug("Head pose estimation failed")
                return None
            pitch, yaw, roll = pose

            top, right, bottom, left = location
            return DetectionResult(
                bbox=[int(left), int(top), int(right - left), int(bottom - top)],
                pitch=pitch,
                yaw=yaw,
                roll=roll,
                contours={name: [(int(x), int(y)) for x, y in points]
                          for name, points in landmarks.items()}
            )

        except Exception as e:
            logger.warning(f"Face detection failed: {e}")
            return None

    def estimate_head_pose(self, landmarks: Dict[str, List[Tuple[int, int]]],
                           image_shape: Tuple[int, ...]) -> Optional[Tuple[float, float, float]]:
        """
        Estimate head rotation from 68-point landmarks.

        Args:
            landmarks: face_recognition landmark dictionary
            image_shape: Shape of the source image

        Returns:
            (pitch, yaw, roll) in degrees, pitch positive looking up and yaw
            positive turned toward the image right; None if unsolvable
        """
        try:
            image_points = np.array(
                [landmarks[name][index] for name, index in LANDMARK_KEYS], dtype=np.float64
            )
        except (KeyError, IndexError):
            return None

        height, width = image_shape[:2]
        focal_length = float(width)
        camera_matrix = np.array([
            [focal_length, 0, width / 2.0],
            [0, focal_length, height / 2.0],
            [0, 0, 1]
        ], dtype=np.float64)
        dist_coeffs = np.zeros((4, 1))

        success, rvec, _ = cv2.solvePnP(
            MODEL_POINTS, image_points, camera_matrix, dist_coeffs,
            flags=cv2.SOLVEPNP_ITERATIVE
        )
        if not success:
            return None

        rotation_matrix, _ = cv2.Rodrigues(rvec)
        angles = cv2.RQDecomp3x3(rotation_matrix)[0]

        pitch = -float(angles[0])
        yaw = -float(angles[1])
        roll = float(angles[2])
        if self.mirror:
            yaw = -yaw
        return pitch, yaw, roll

    def crop_face(self, image: np.ndarray, bbox: List[int]) -> Optional[np.ndarray]:
        """Crop the detected face with the configured padding."""
        return crop_face(image, bbox, padding=self.crop_padding)
