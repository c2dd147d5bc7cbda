"""
Test cases for pose steps and the pose validator.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from face_enroll.pose import (CAPTURE_STEPS, POSE_SEQUENCE, PoseStep, PoseThresholds,
                              PoseValidator, accepts)


@pytest.mark.parametrize("step, pitch, yaw, expected", [
    (PoseStep.FRONTAL, 0, 0, True),
    (PoseStep.FRONTAL, 20, 0, False),
    (PoseStep.FRONTAL, 0, -12, False),
    (PoseStep.FRONTAL, 11.9, -11.9, True),
    (PoseStep.LEFT, 0, 20, True),
    (PoseStep.LEFT, 0, 10, False),
    (PoseStep.LEFT, 0, 15, False),
    (PoseStep.RIGHT, 0, -20, True),
    (PoseStep.RIGHT, 0, 20, False),
    (PoseStep.UP, 20, 0, True),
    (PoseStep.UP, -20, 0, False),
    (PoseStep.DOWN, -20, 0, True),
    (PoseStep.DOWN, -15, 0, False),
    (PoseStep.COMPLETE, 0, 0, False),
    (PoseStep.COMPLETE, 30, 30, False),
])
def test_accepts_table(step, pitch, yaw, expected):
    assert accepts(step, pitch, yaw) is expected


def test_sequence_order():
    assert POSE_SEQUENCE == (PoseStep.FRONTAL, PoseStep.LEFT, PoseStep.RIGHT,
                             PoseStep.UP, PoseStep.DOWN, PoseStep.COMPLETE)
    assert PoseStep.COMPLETE not in CAPTURE_STEPS
    assert len(CAPTURE_STEPS) == 5


def test_successor_chain_ends_at_complete():
    step = PoseStep.FRONTAL
    visited = [step]
    while not step.is_terminal:
        step = step.successor()
        visited.append(step)
    assert visited == list(POSE_SEQUENCE)
    assert PoseStep.COMPLETE.successor() is PoseStep.COMPLETE


def test_instructions():
    assert PoseStep.FRONTAL.instruction == "Look straight at the camera"
    assert PoseStep.COMPLETE.instruction == "Capture Complete!"


def test_thresholds_are_tunable():
    validator = PoseValidator(PoseThresholds(frontal_max_deg=25.0, directional_min_deg=5.0))
    assert validator.accepts(PoseStep.FRONTAL, 20, 0)
    assert validator.accepts(PoseStep.LEFT, 0, 10)


def test_thresholds_from_config():
    validator = PoseValidator.from_config({'pose': {'directional_min_deg': 30}})
    assert validator.thresholds.frontal_max_deg == 12.0
    assert validator.thresholds.directional_min_deg == 30.0
    assert not validator.accepts(PoseStep.UP, 20, 0)
