"""
Enrollment Session Module

Stateful orchestrator that walks one identity through the fixed pose
sequence, accumulates one descriptor per accepted pose, and writes a single
reduced template to the store on completion.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence, Tuple

import numpy as np

from .descriptor import Descriptor
from .detection import DetectionResult
from .exceptions import DimensionMismatch, StoreWriteFailed
from .pose import CAPTURE_STEPS, POSE_SEQUENCE, PoseStep, PoseValidator
from .reducer import average

logger = logging.getLogger(__name__)


class FeedOutcome(Enum):
    ADVANCED = 'advanced'
    REJECTED = 'rejected'
    COMPLETED = 'completed'
    ABORTED = 'aborted'


class RejectReason(Enum):
    NO_FACE = 'no_face'
    POSE_REJECTED = 'pose_rejected'
    EXTRACTION_FAILED = 'extraction_failed'
    COMMIT_PENDING = 'commit_pending'


class SessionStatus(Enum):
    ACTIVE = 'active'
    COMMIT_PENDING = 'commit_pending'
    COMPLETED = 'completed'
    ABORTED = 'aborted'


@dataclass(frozen=True)
class DetectionCycle:
    """What one detection cycle observed."""

    face_found: bool
    pitch: float = 0.0
    yaw: float = 0.0
    descriptor: Optional[Descriptor] = None
    detection: Optional[DetectionResult] = None
    frame: Optional[np.ndarray] = None

    @classmethod
    def no_face(cls, frame: Optional[np.ndarray] = None) -> 'DetectionCycle':
        return cls(face_found=False, frame=frame)

    @classmethod
    def capture(cls, pitch: float, yaw: float,
                descriptor: Optional[Descriptor]) -> 'DetectionCycle':
        return cls(face_found=True, pitch=pitch, yaw=yaw, descriptor=descriptor)


@dataclass(frozen=True)
class FeedResult:
    outcome: FeedOutcome
    step: PoseStep
    reason: Optional[RejectReason] = None


class EnrollmentSession:
    """One enrollment attempt for one identity.

    The session is driven by :meth:`feed`, one call per detection cycle.
    Every accepted capture advances exactly one pose step, so while the
    session is active ``len(accepted) == current_step.index``. Reaching
    COMPLETE reduces the accepted descriptors and performs exactly one
    store write; :meth:`abort` discards everything without writing.

    All public methods are serialized by an internal lock, so ``abort`` may
    be called from a different thread than the one feeding cycles.
    """

    def __init__(self, identity_id: str, name: str, store: Any,
                 validator: Optional[PoseValidator] = None,
                 reducer: Callable[[Sequence[Descriptor]], Descriptor] = average,
                 presentation: Optional[Any] = None):
        """
        Initialize an enrollment session.

        Args:
            identity_id: Unique id the template is stored under
            name: Display name stored with the template
            store: Persistent store exposing ``put(id, name, descriptor)``
            validator: Pose validator (default thresholds if omitted)
            reducer: Combines accepted descriptors into one template
            presentation: Optional receiver of pose-change notifications
        """
        self.identity_id = str(identity_id)
        self.name = name
        self.store = store
        self.validator = validator or PoseValidator()
        self.reducer = reducer
        self.presentation = presentation

        self._lock = threading.RLock()
        self._step = POSE_SEQUENCE[0]
        self._accepted: List[Descriptor] = []
        self._status = SessionStatus.ACTIVE
        self._template: Optional[Descriptor] = None

        logger.info(f"Enrollment session started for '{self.identity_id}' ({self.name})")

    @property
    def current_step(self) -> PoseStep:
        return self._step

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def accepted(self) -> Tuple[Descriptor, ...]:
        with self._lock:
            return tuple(self._accepted)

    @property
    def template(self) -> Optional[Descriptor]:
        """Reduced descriptor written to the store, once completed."""
        return self._template

    @property
    def progress(self) -> float:
        if self._status is SessionStatus.COMPLETED:
            return 1.0
        return len(self._accepted) / len(CAPTURE_STEPS)

    @property
    def is_active(self) -> bool:
        return self._status is SessionStatus.ACTIVE

    @property
    def is_inert(self) -> bool:
        return self._status in (SessionStatus.COMPLETED, SessionStatus.ABORTED)

    def accepts_pose(self, pitch: float, yaw: float) -> bool:
        """Whether a reading would satisfy the current step (used to gate extraction)."""
        return self.is_active and self.validator.accepts(self._step, pitch, yaw)

    def announce(self):
        """Publish the current instruction and progress to the presentation."""
        self._notify(self._step.instruction, self.progress)

    def feed(self, cycle: DetectionCycle) -> FeedResult:
        """
        Apply one detection cycle to the state machine.

        Args:
            cycle: Observation from one detection cycle

        Returns:
            Typed outcome of the cycle

        Raises:
            DimensionMismatch: If the descriptor length differs from those
                already accepted (no state change)
            StoreWriteFailed: If this cycle completed the sequence but the
                store write failed; call :meth:`commit` to retry
        """
        with self._lock:
            if self._status is SessionStatus.ABORTED:
                return FeedResult(FeedOutcome.ABORTED, self._step)
            if self._status is SessionStatus.COMPLETED:
                return FeedResult(FeedOutcome.COMPLETED, self._step)
            if self._status is SessionStatus.COMMIT_PENDING:
                return self._reject(RejectReason.COMMIT_PENDING)

            if not cycle.face_found:
                return self._reject(RejectReason.NO_FACE)
            if not self.validator.accepts(self._step, cycle.pitch, cycle.yaw):
                return self._reject(RejectReason.POSE_REJECTED)
            if cycle.descriptor is None:
                return self._reject(RejectReason.EXTRACTION_FAILED)

            descriptor = cycle.descriptor
            if not isinstance(descriptor, Descriptor):
                descriptor = Descriptor(descriptor)
            if self._accepted and descriptor.dim != self._accepted[0].dim:
                raise DimensionMismatch(self._accepted[0].dim, descriptor.dim)

            accepted_step = self._step
            self._accepted.append(descriptor)
            self._step = self._step.successor()
            logger.info(f"Pose {accepted_step.name} accepted "
                        f"(pitch={cycle.pitch:.1f}, yaw={cycle.yaw:.1f}), next: {self._step.name}")

            if self._step.is_terminal:
                self._status = SessionStatus.COMMIT_PENDING
                self._commit_locked()
                return FeedResult(FeedOutcome.COMPLETED, self._step)

            self._notify(self._step.instruction, self.progress)
            return FeedResult(FeedOutcome.ADVANCED, self._step)

    def commit(self) -> bool:
        """
        Retry the final store write after a StoreWriteFailed.

        Returns:
            True if the session is now completed, False if there was
            nothing to commit (still capturing, or aborted)

        Raises:
            StoreWriteFailed: If the store write fails again
        """
        with self._lock:
            if self._status is SessionStatus.COMPLETED:
                return True
            if self._status is not SessionStatus.COMMIT_PENDING:
                return False
            self._commit_locked()
            return True

    def abort(self) -> bool:
        """
        Cancel the session without writing anything.

        Returns:
            True if the session was aborted by this call
        """
        with self._lock:
            if self.is_inert:
                return False
            self._status = SessionStatus.ABORTED
            discarded = len(self._accepted)
            self._accepted.clear()
            logger.info(f"Enrollment for '{self.identity_id}' aborted, "
                        f"{discarded} captured descriptor(s) discarded")
            return True

    def _reject(self, reason: RejectReason) -> FeedResult:
        logger.debug(f"Cycle rejected at {self._step.name}: {reason.value}")
        return FeedResult(FeedOutcome.REJECTED, self._step, reason)

    def _commit_locked(self):
        template = self.reducer(self._accepted)
        try:
            self.store.put(self.identity_id, self.name, template)
        except StoreWriteFailed:
            logger.error(f"Store write failed for '{self.identity_id}', "
                         f"{len(self._accepted)} descriptor(s) kept for retry")
            raise
        except Exception as e:
            logger.error(f"Store write failed for '{self.identity_id}': {e}")
            raise StoreWriteFailed(str(e)) from e

        self._template = template
        self._accepted.clear()
        self._status = SessionStatus.COMPLETED
        logger.info(f"Enrollment for '{self.identity_id}' committed (dim={template.dim})")
        self._notify(PoseStep.COMPLETE.instruction, 1.0)

    def _notify(self, instruction: str, progress: float):
        if self.presentation is None:
            return
        try:
            self.presentation.on_pose_changed(instruction, progress)
        except Exception:
            logger.exception("Presentation on_pose_changed failed")
