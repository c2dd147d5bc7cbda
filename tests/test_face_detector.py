"""
Test cases for Face Detection Module
"""

import math
import os
import sys

import cv2
import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

pytest.importorskip("face_recognition")

from face_enroll.face_detector import LANDMARK_KEYS, MODEL_POINTS, FaceDetector

IMAGE_SHAPE = (480, 640, 3)


def synthetic_landmarks(rotation_deg=(0.0, 0.0, 0.0)):
    """Project the model points through a known head rotation."""
    height, width = IMAGE_SHAPE[:2]
    camera_matrix = np.array([
        [width, 0, width / 2.0],
        [0, width, height / 2.0],
        [0, 0, 1]
    ], dtype=np.float64)
    rvec = np.array([math.radians(a) for a in rotation_deg], dtype=np.float64)
    tvec = np.array([0.0, 0.0, 2000.0])
    projected, _ = cv2.projectPoints(MODEL_POINTS, rvec, tvec, camera_matrix, np.zeros((4, 1)))

    landmarks = {name: [(0, 0)] * 12 for name in ('nose_tip', 'chin', 'left_eye', 'right_eye', 'top_lip')}
    for (name, index), point in zip(LANDMARK_KEYS, projected.reshape(-1, 2)):
        points = list(landmarks[name])
        points[index] = (float(point[0]), float(point[1]))
        landmarks[name] = points
    return landmarks


class TestFaceDetector:
    """Test cases for FaceDetector class."""

    @pytest.fixture
    def config(self):
        """Test configuration."""
        return {
            'face_detection': {
                'model': 'hog',
                'upsample': 0,
                'crop_padding': 0.0
            }
        }

    @pytest.fixture
    def detector(self, config):
        """Create face detector instance."""
        return FaceDetector(config)

    def test_detector_initialization(self, detector):
        assert detector.model == 'hog'
        assert detector.upsample == 0
        assert detector.mirror is False

    def test_unknown_model_falls_back_to_hog(self):
        detector = FaceDetector({'face_detection': {'model': 'yolo'}})
        assert detector.model == 'hog'

    def test_detect_empty_image(self, detector):
        empty_image = np.zeros((100, 100, 3), dtype=np.uint8)
        assert detector.detect(empty_image) is None

    def test_detect_invalid_input(self, detector):
        assert detector.detect(None) is None
        assert detector.detect(np.array([])) is None

    def test_frontal_pose(self, detector):
        pose = detector.estimate_head_pose(synthetic_landmarks(), IMAGE_SHAPE)
        assert pose is not None
        pitch, yaw, roll = pose
        assert abs(pitch) < 2.0
        assert abs(yaw) < 2.0
        assert abs(roll) < 2.0

    def test_pitch_rotation(self, detector):
        pitch, yaw, _ = detector.estimate_head_pose(synthetic_landmarks((20.0, 0.0, 0.0)), IMAGE_SHAPE)
        assert abs(pitch) == pytest.approx(20.0, abs=2.0)
        assert abs(yaw) < 2.0

    def test_yaw_rotation(self, detector):
        pitch, yaw, _ = detector.estimate_head_pose(synthetic_landmarks((0.0, 25.0, 0.0)), IMAGE_SHAPE)
        assert abs(yaw) == pytest.approx(25.0, abs=2.0)
        assert abs(pitch) < 2.0

    def test_opposite_rotations_have_opposite_signs(self, detector):
        _, yaw_a, _ = detector.estimate_head_pose(synthetic_landmarks((0.0, 25.0, 0.0)), IMAGE_SHAPE)
        _, yaw_b, _ = detector.estimate_head_pose(synthetic_landmarks((0.0, -25.0, 0.0)), IMAGE_SHAPE)
        assert yaw_a * yaw_b < 0

    def test_mirror_flips_yaw(self, config):
        landmarks = synthetic_landmarks((0.0, 25.0, 0.0))
        _, yaw, _ = FaceDetector(config).estimate_head_pose(landmarks, IMAGE_SHAPE)

        config['face_detection']['mirror'] = True
        _, mirrored_yaw, _ = FaceDetector(config).estimate_head_pose(landmarks, IMAGE_SHAPE)
        assert mirrored_yaw == pytest.approx(-yaw)

    def test_missing_landmarks(self, detector):
        landmarks = synthetic_landmarks()
        del landmarks['chin']
        assert detector.estimate_head_pose(landmarks, IMAGE_SHAPE) is None

    def test_crop_face(self, detector):
        image = np.zeros((200, 200, 3), dtype=np.uint8)
        assert detector.crop_face(image, [50, 50, 100, 100]).shape == (100, 100, 3)
        assert detector.crop_face(image, [150, 150, 100, 100]).shape == (50, 50, 3)
        assert detector.crop_face(image, [300, 300, 50, 50]) is None

    def test_crop_padding(self, config):
        config['face_detection']['crop_padding'] = 0.2
        detector = FaceDetector(config)
        image = np.zeros((200, 200, 3), dtype=np.uint8)
        assert detector.crop_face(image, [50, 50, 100, 100]).shape == (140, 140, 3)
