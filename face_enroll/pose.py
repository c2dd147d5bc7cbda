"""
Pose Step Module

The fixed enrollment pose sequence and the angular acceptance predicate
for each step.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional


class PoseStep(Enum):
    """Ordered enrollment steps; COMPLETE is the only terminal step."""

    FRONTAL = "Look straight at the camera"
    LEFT = "Turn your head slightly LEFT"
    RIGHT = "Turn your head slightly RIGHT"
    UP = "Look slightly UP"
    DOWN = "Look slightly DOWN"
    COMPLETE = "Capture Complete!"

    @property
    def instruction(self) -> str:
        return self.value

    @property
    def index(self) -> int:
        return POSE_SEQUENCE.index(self)

    @property
    def is_terminal(self) -> bool:
        return self is PoseStep.COMPLETE

    def successor(self) -> 'PoseStep':
        if self.is_terminal:
            return self
        return POSE_SEQUENCE[self.index + 1]


POSE_SEQUENCE = tuple(PoseStep)
CAPTURE_STEPS = tuple(step for step in POSE_SEQUENCE if not step.is_terminal)


@dataclass(frozen=True)
class PoseThresholds:
    # Tight gate for the frontal capture, looser gate for directional poses.
    frontal_max_deg: float = 12.0
    directional_min_deg: float = 15.0

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'PoseThresholds':
        pose_config = config.get('pose', {}) or {}
        return cls(
            frontal_max_deg=float(pose_config.get('frontal_max_deg', cls.frontal_max_deg)),
            directional_min_deg=float(pose_config.get('directional_min_deg', cls.directional_min_deg)),
        )


_Predicate = Callable[[float, float, PoseThresholds], bool]

_PREDICATES: Dict[PoseStep, _Predicate] = {
    PoseStep.FRONTAL: lambda pitch, yaw, t: abs(yaw) < t.frontal_max_deg and abs(pitch) < t.frontal_max_deg,
    PoseStep.LEFT: lambda pitch, yaw, t: yaw > t.directional_min_deg,
    PoseStep.RIGHT: lambda pitch, yaw, t: yaw < -t.directional_min_deg,
    PoseStep.UP: lambda pitch, yaw, t: pitch > t.directional_min_deg,
    PoseStep.DOWN: lambda pitch, yaw, t: pitch < -t.directional_min_deg,
    PoseStep.COMPLETE: lambda pitch, yaw, t: False,
}


class PoseValidator:
    """Decides whether a head orientation satisfies a pose step."""

    def __init__(self, thresholds: Optional[PoseThresholds] = None):
        self.thresholds = thresholds or PoseThresholds()

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'PoseValidator':
        return cls(PoseThresholds.from_config(config))

    def accepts(self, step: PoseStep, pitch: float, yaw: float) -> bool:
        """
        Check a head-orientation reading against a step's predicate.

        Args:
            step: Pose step being captured
            pitch: Head pitch in degrees
            yaw: Head yaw in degrees

        Returns:
            True if the reading satisfies the step
        """
        return bool(_PREDICATES[step](float(pitch), float(yaw), self.thresholds))


_DEFAULT_VALIDATOR = PoseValidator()


def accepts(step: PoseStep, pitch: float, yaw: float) -> bool:
    """Check a reading against the default thresholds."""
    return _DEFAULT_VALIDATOR.accepts(step, pitch, yaw)
