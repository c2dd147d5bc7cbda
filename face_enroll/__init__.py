"""
Face Enrollment System

Pose-guided biometric enrollment: walks a person through a fixed sequence
of head poses, captures one face descriptor per pose, stores their average
as the identity template, and recognizes live faces against stored
templates by cosine similarity.
"""

__version__ = "1.0.0"
__author__ = "Face Recognition System Team"

from .descriptor import Descriptor
from .exceptions import (
    DimensionMismatch,
    EmptyInput,
    ExtractionFailed,
    FaceEnrollError,
    StoreWriteFailed,
)
from .matcher import DEFAULT_THRESHOLD, is_match, similarity
from .pose import PoseStep, PoseThresholds, PoseValidator
from .reducer import average
from .recognition import RecognitionQuery, identify
from .session import DetectionCycle, EnrollmentSession, FeedOutcome, FeedResult, RejectReason

__all__ = [
    "Descriptor",
    "DimensionMismatch",
    "EmptyInput",
    "ExtractionFailed",
    "FaceEnrollError",
    "StoreWriteFailed",
    "DEFAULT_THRESHOLD",
    "similarity",
    "is_match",
    "PoseStep",
    "PoseThresholds",
    "PoseValidator",
    "average",
    "identify",
    "RecognitionQuery",
    "DetectionCycle",
    "EnrollmentSession",
    "FeedOutcome",
    "FeedResult",
    "RejectReason",
]
