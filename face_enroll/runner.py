"""
Enrollment Capture Loop

Drives an EnrollmentSession with one detection cycle at a time. Frame
acquisition, detection, cropping and embedding run on a background worker;
state transitions and next-cycle scheduling stay on the calling thread.
"""

import logging
import threading
import time
from collections import Counter
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from concurrent.futures import wait
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from .detection import crop_face
from .exceptions import DimensionMismatch, ExtractionFailed
from .pose import PoseStep
from .session import DetectionCycle, EnrollmentSession, FeedOutcome, FeedResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Upper bound on an enrollment attempt; None means unbounded."""

    max_cycles: Optional[int] = None
    max_seconds: Optional[float] = None

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'RetryPolicy':
        enrollment_config = config.get('enrollment', {}) or {}
        max_cycles = enrollment_config.get('max_cycles')
        max_seconds = enrollment_config.get('max_seconds')
        return cls(
            max_cycles=int(max_cycles) if max_cycles is not None else None,
            max_seconds=float(max_seconds) if max_seconds is not None else None,
        )

    def exceeded(self, cycles: int, elapsed: float) -> Optional[str]:
        if self.max_cycles is not None and cycles >= self.max_cycles:
            return 'max_cycles'
        if self.max_seconds is not None and elapsed >= self.max_seconds:
            return 'max_seconds'
        return None


@dataclass
class EnrollmentReport:
    identity_id: str
    outcome: FeedOutcome
    stop_reason: str
    cycles: int = 0
    elapsed: float = 0.0
    rejections: Counter = field(default_factory=Counter)

    @property
    def completed(self) -> bool:
        return self.outcome is FeedOutcome.COMPLETED


class EnrollmentRunner:
    """Runs the retry cycle for one enrollment session."""

    def __init__(self, session: EnrollmentSession, frame_source: Any,
                 detector: Any, extractor: Any,
                 presentation: Optional[Any] = None,
                 cycle_delay: float = 0.15,
                 retry_policy: Optional[RetryPolicy] = None,
                 detection_timeout: Optional[float] = None,
                 on_cycle: Optional[Callable[[FeedResult, DetectionCycle], bool]] = None):
        """
        Initialize the capture loop.

        Args:
            session: Session to drive
            frame_source: Object with ``next_frame()`` and ``is_open()``
            detector: Object with ``detect(image)`` returning a DetectionResult or None
            extractor: Object with ``embed(crop)`` returning a Descriptor
            presentation: Receiver of ``on_detection_update`` notifications
            cycle_delay: Seconds to wait between cycles
            retry_policy: Bound on cycles / wall-clock time
            detection_timeout: Seconds to wait for one worker call (None waits forever)
            on_cycle: Called on the controlling thread after every cycle;
                returning False cancels the enrollment
        """
        self.session = session
        self.frame_source = frame_source
        self.detector = detector
        self.extractor = extractor
        self.presentation = presentation
        self.cycle_delay = max(0.0, float(cycle_delay))
        self.retry_policy = retry_policy or RetryPolicy()
        self.detection_timeout = detection_timeout
        self.on_cycle = on_cycle

        self._cancelled = threading.Event()
        self._pending: Optional[Future] = None
        self.report: Optional[EnrollmentReport] = None

    @classmethod
    def from_config(cls, session: EnrollmentSession, frame_source: Any,
                    detector: Any, extractor: Any, config: Dict[str, Any],
                    **kwargs) -> 'EnrollmentRunner':
        enrollment_config = config.get('enrollment', {}) or {}
        return cls(
            session, frame_source, detector, extractor,
            cycle_delay=float(enrollment_config.get('cycle_delay_ms', 150)) / 1000.0,
            retry_policy=RetryPolicy.from_config(config),
            detection_timeout=enrollment_config.get('detection_timeout_s'),
            **kwargs
        )

    def cancel(self):
        """Abort the session and stop the loop. Safe from any thread."""
        self._cancelled.set()
        self.session.abort()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def run(self) -> EnrollmentReport:
        """
        Run cycles until the session completes or is aborted.

        Returns:
            Summary of the attempt

        Raises:
            StoreWriteFailed: If the completing store write failed
        """
        report = EnrollmentReport(identity_id=self.session.identity_id,
                                  outcome=FeedOutcome.REJECTED, stop_reason='')
        self.report = report
        self._pending = None
        start = time.monotonic()
        self.session.announce()

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='enroll-worker')
        try:
            while True:
                if self._cancelled.is_set():
                    self.session.abort()
                    report.stop_reason = 'cancelled'
                    break

                step = self.session.current_step
                cycle = self._await_cycle(executor, step)
                report.cycles += 1
                try:
                    result = self.session.feed(cycle)
                except DimensionMismatch as e:
                    logger.error(f"Enrollment for '{self.session.identity_id}' stopped: {e}")
                    self.session.abort()
                    report.outcome = FeedOutcome.ABORTED
                    report.stop_reason = 'dimension_mismatch'
                    break
                report.outcome = result.outcome
                if result.reason is not None:
                    report.rejections[result.reason.value] += 1

                self._notify_detection(cycle)

                if self.on_cycle is not None and self.on_cycle(result, cycle) is False:
                    self.cancel()

                if result.outcome is FeedOutcome.COMPLETED:
                    report.stop_reason = 'completed'
                    break
                if result.outcome is FeedOutcome.ABORTED:
                    report.stop_reason = 'cancelled'
                    break

                stop_reason = self.retry_policy.exceeded(report.cycles, time.monotonic() - start)
                if stop_reason is None and not self.frame_source.is_open():
                    stop_reason = 'source_exhausted'
                if stop_reason is not None:
                    logger.warning(f"Enrollment for '{self.session.identity_id}' stopped: {stop_reason}")
                    self.session.abort()
                    report.outcome = FeedOutcome.ABORTED
                    report.stop_reason = stop_reason
                    break

                self._cancelled.wait(self.cycle_delay)
        finally:
            # never block on a hung collaborator call
            executor.shutdown(wait=False, cancel_futures=True)
            report.elapsed = time.monotonic() - start

        if report.stop_reason == 'cancelled':
            report.outcome = FeedOutcome.ABORTED

        logger.info(f"Enrollment run for '{report.identity_id}' finished: {report.stop_reason} "
                    f"after {report.cycles} cycle(s) in {report.elapsed:.1f}s")
        return report

    def _await_cycle(self, executor: ThreadPoolExecutor, step: PoseStep) -> DetectionCycle:
        if self._pending is not None:
            # a timed-out call still owns the worker; its result is stale either way
            wait([self._pending], timeout=self.detection_timeout)
            if not self._pending.done():
                logger.debug("Previous detection cycle still running, skipping")
                return DetectionCycle.no_face()
            self._pending = None

        future = executor.submit(self._analyze, step)
        try:
            return future.result(timeout=self.detection_timeout)
        except FutureTimeoutError:
            logger.warning(f"Detection cycle timed out after {self.detection_timeout}s")
            self._pending = future
            return DetectionCycle.no_face()

    def _analyze(self, step: PoseStep) -> DetectionCycle:
        """Worker side of one cycle: frame, detection, pose gate, crop, embed."""
        frame = self.frame_source.next_frame()
        if frame is None:
            return DetectionCycle.no_face()

        try:
            detection = self.detector.detect(frame)
        except Exception as e:
            logger.warning(f"Face detector raised, treating as no face: {e}")
            detection = None

        if detection is None:
            return DetectionCycle.no_face(frame)

        descriptor = None
        # extraction only pays off when the pose can be accepted
        if self.session.validator.accepts(step, detection.pitch, detection.yaw):
            cropper = getattr(self.detector, 'crop_face', None)
            face_crop = cropper(frame, detection.bbox) if cropper else crop_face(frame, detection.bbox)
            if face_crop is not None:
                try:
                    descriptor = self.extractor.embed(face_crop)
                except ExtractionFailed as e:
                    logger.debug(f"Extraction failed: {e}")
                except Exception as e:
                    logger.warning(f"Embedding extractor raised: {e}")

        return DetectionCycle(face_found=True, pitch=detection.pitch, yaw=detection.yaw,
                              descriptor=descriptor, detection=detection, frame=frame)

    def _notify_detection(self, cycle: DetectionCycle):
        if self.presentation is None:
            return
        try:
            self.presentation.on_detection_update(cycle.detection)
        except Exception:
            logger.exception("Presentation on_detection_update failed")
