"""
Main Application Module

Command line entry point: pose-guided enrollment, live recognition, and
administration of enrolled identities.
"""

import argparse
import logging
import time
from typing import Any, Dict, List, Optional

import cv2
import numpy as np

from .config import DEFAULT_CONFIG_PATH, load_config, setup_logging
from .detection import DetectionResult
from .embedding_generator import EmbeddingGenerator
from .exceptions import DimensionMismatch, ExtractionFailed, StoreWriteFailed
from .face_detector import FaceDetector
from .frame_source import CameraFrameSource, FrameSource, ImageSequenceFrameSource
from .pose import PoseValidator
from .presentation import LoggingPresentation, OverlayState
from .recognition import RecognitionQuery
from .runner import EnrollmentReport, EnrollmentRunner
from .session import DetectionCycle, EnrollmentSession, FeedOutcome, FeedResult
from .vector_store import VectorStore

logger = logging.getLogger(__name__)

WINDOW_NAME = 'Face Enrollment'


class _CompositePresentation:
    def __init__(self, *targets):
        self.targets = targets

    def on_pose_changed(self, instruction: str, progress: float):
        for target in self.targets:
            target.on_pose_changed(instruction, progress)

    def on_detection_update(self, detection: Optional[DetectionResult]):
        for target in self.targets:
            target.on_detection_update(detection)


class FaceEnrollmentApp:
    """Main face enrollment application."""

    def __init__(self, config: Dict[str, Any], display: Optional[bool] = None):
        """
        Initialize the application.

        Args:
            config: Configuration dictionary
            display: Show an OpenCV preview window (defaults to ``video.display``)
        """
        self.config = config
        self.video_config = config.get('video', {}) or {}
        self.enrollment_config = config.get('enrollment', {}) or {}
        self.display = self.video_config.get('display', True) if display is None else display

        self.store = VectorStore(config)
        self.query = RecognitionQuery.from_config(self.store, config)
        self.validator = PoseValidator.from_config(config)

        # Model adapters are loaded on first use
        self._detector = None
        self._extractor = None

        self.overlay = OverlayState()
        self.font = cv2.FONT_HERSHEY_SIMPLEX
        self.font_scale = 0.6
        self.font_thickness = 2

        logger.info("Face enrollment application initialized")

    @property
    def detector(self):
        if self._detector is None:
            self._detector = FaceDetector(self.config)
        return self._detector

    @property
    def extractor(self):
        if self._extractor is None:
            self._extractor = EmbeddingGenerator(self.config)
        return self._extractor

    def open_source(self, camera: Optional[int] = None, video: Optional[str] = None,
                    images: Optional[List[str]] = None) -> FrameSource:
        if images:
            return ImageSequenceFrameSource(images)
        if video:
            return CameraFrameSource(video)
        device = self.video_config.get('camera_id', 0) if camera is None else camera
        return CameraFrameSource(
            device,
            width=self.video_config.get('frame_width', 640),
            height=self.video_config.get('frame_height', 480)
        )

    def enroll(self, identity_id: str, name: str, source: FrameSource) -> EnrollmentReport:
        """
        Run one pose-guided enrollment.

        Args:
            identity_id: Unique id for the enrolled template
            name: Display name
            source: Frame source to capture from

        Returns:
            Report of the attempt
        """
        session = EnrollmentSession(
            identity_id, name, self.store,
            validator=self.validator,
            presentation=_CompositePresentation(LoggingPresentation(), self.overlay)
        )
        runner = EnrollmentRunner.from_config(
            session, source, self.detector, self.extractor, self.config,
            presentation=self.overlay,
            on_cycle=self._show_enrollment_frame if self.display else None
        )

        try:
            return runner.run()
        except StoreWriteFailed as e:
            return self._retry_commit(session, runner.report, e)
        finally:
            if self.display:
                cv2.destroyAllWindows()

    def _retry_commit(self, session: EnrollmentSession, report: EnrollmentReport,
                      error: StoreWriteFailed) -> EnrollmentReport:
        attempts = int(self.enrollment_config.get('commit_attempts', 3))
        last_error = error
        for attempt in range(1, attempts + 1):
            logger.warning(f"Retrying store write ({attempt}/{attempts}) after: {last_error}")
            try:
                session.commit()
                break
            except StoreWriteFailed as e:
                last_error = e
                if attempt < attempts:
                    time.sleep(0.5)
        else:
            raise last_error

        report.outcome = FeedOutcome.COMPLETED
        report.stop_reason = 'completed'
        return report

    def _show_enrollment_frame(self, result: FeedResult, cycle: DetectionCycle) -> bool:
        if cycle.frame is None:
            return cv2.waitKey(1) & 0xFF != ord('q')

        annotated = cycle.frame.copy()
        instruction, progress, detection = self.overlay.snapshot()
        if detection is not None:
            self._draw_detection(annotated, detection, (0, 255, 0))
        self._draw_text_with_background(annotated, instruction, (10, 30), (255, 255, 255), (0, 0, 0))
        self._draw_progress(annotated, progress)

        cv2.imshow(WINDOW_NAME, annotated)
        key = cv2.waitKey(1) & 0xFF
        if key == ord('q'):
            logger.info("Enrollment cancelled by user")
            return False
        return True

    def recognize_frame(self, frame: np.ndarray) -> Dict[str, Any]:
        """
        Detect, embed and identify the primary face of a frame.

        Args:
            frame: Input frame

        Returns:
            Recognition result dictionary
        """
        result = {
            'detection': None,
            'identity_id': None,
            'name': None,
            'score': 0.0,
            'error': None
        }

        detection = self.detector.detect(frame)
        if detection is None:
            return result
        result['detection'] = detection

        face_crop = self.detector.crop_face(frame, detection.bbox)
        try:
            descriptor = self.extractor.embed(face_crop)
            match = self.query.identify(descriptor)
        except (ExtractionFailed, DimensionMismatch) as e:
            result['error'] = str(e)
            return result

        if match is not None:
            record = self.store.get(match.identity_id)
            result.update({
                'identity_id': match.identity_id,
                'name': record.name if record else match.identity_id,
                'score': match.score
            })
        return result

    def run_recognition_loop(self, source: FrameSource):
        """Run live recognition until the source ends or 'q' is pressed."""
        logger.info("Starting face recognition loop")
        max_failed_reads = int(self.video_config.get('max_failed_reads', 30))
        retry_delay = float(self.enrollment_config.get('cycle_delay_ms', 150)) / 1000.0
        failed_reads = 0
        last_identity = None
        try:
            while source.is_open():
                frame = source.next_frame()
                if frame is None:
                    failed_reads += 1
                    if failed_reads >= max_failed_reads:
                        logger.error(f"No frame after {failed_reads} attempts, stopping recognition")
                        break
                    time.sleep(retry_delay)
                    continue
                failed_reads = 0

                result = self.recognize_frame(frame)
                if result['identity_id'] != last_identity:
                    if result['identity_id'] is not None:
                        logger.info(f"Recognized {result['name']} ({result['identity_id']}) "
                                    f"score={result['score']:.3f}")
                    elif result['detection'] is not None:
                        logger.info("Unknown face")
                    last_identity = result['identity_id']

                if self.display:
                    cv2.imshow(WINDOW_NAME, self.annotate_frame(frame, result))
                    if cv2.waitKey(1) & 0xFF == ord('q'):
                        logger.info("Quit requested by user")
                        break
        except KeyboardInterrupt:
            logger.info("Interrupted by user")
        finally:
            source.close()
            if self.display:
                cv2.destroyAllWindows()

    def annotate_frame(self, frame: np.ndarray, result: Dict[str, Any]) -> np.ndarray:
        """Draw the recognition result on a copy of the frame."""
        annotated_frame = frame.copy()
        detection = result.get('detection')
        if detection is None:
            return annotated_frame

        if result.get('identity_id') is not None:
            color = (0, 255, 0)
            label_text = f"{result['name']} | {result['score']:.2f}"
        else:
            color = (0, 0, 255)
            label_text = "UNKNOWN"

        self._draw_detection(annotated_frame, detection, color)
        x, y = detection.bbox[0], detection.bbox[1]
        self._draw_text_with_background(annotated_frame, label_text, (x, max(20, y - 5)),
                                        (255, 255, 255), color)
        return annotated_frame

    def _draw_detection(self, frame: np.ndarray, detection: DetectionResult, color: tuple):
        x, y, w, h = detection.bbox
        cv2.rectangle(frame, (x, y), (x + w, y + h), color, 2)
        for points in detection.contours.values():
            for point in points:
                cv2.circle(frame, point, 1, color, -1)

    def _draw_progress(self, frame: np.ndarray, progress: float):
        height, width = frame.shape[:2]
        x1, y1, x2, y2 = 10, height - 30, width - 10, height - 15
        cv2.rectangle(frame, (x1, y1), (x2, y2), (255, 255, 255), 1)
        filled = x1 + int((x2 - x1) * max(0.0, min(1.0, progress)))
        cv2.rectangle(frame, (x1, y1), (filled, y2), (0, 255, 0), -1)

    def _draw_text_with_background(self, frame: np.ndarray, text: str,
                                   position: tuple, text_color: tuple, bg_color: tuple):
        """Draw text with background rectangle."""
        text_size = cv2.getTextSize(text, self.font, self.font_scale, self.font_thickness)[0]
        x, y = position

        cv2.rectangle(frame, (x - 2, y - text_size[1] - 2),
                      (x + text_size[0] + 2, y + 2), bg_color, -1)
        cv2.putText(frame, text, position, self.font, self.font_scale, text_color, self.font_thickness)

    def list_identities(self) -> List[Dict[str, Any]]:
        return [
            {'id': record.identity_id, 'name': record.name, 'dim': record.descriptor.dim}
            for record in sorted(self.store.get_all().values(), key=lambda r: r.identity_id)
        ]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Pose-guided face enrollment and recognition')
    parser.add_argument('--config', '-c', default=DEFAULT_CONFIG_PATH,
                        help='Configuration file path')

    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument('--enroll', metavar='ID', help='Enroll an identity under this id')
    mode.add_argument('--recognize', action='store_true', help='Run live recognition')
    mode.add_argument('--list', action='store_true', help='List enrolled identities')
    mode.add_argument('--delete', metavar='ID', help='Delete an enrolled identity')

    parser.add_argument('--name', help='Display name for --enroll')
    source = parser.add_mutually_exclusive_group()
    source.add_argument('--camera', type=int, help='Camera device ID')
    source.add_argument('--video', '-v', type=str, help='Video file path (instead of camera)')
    source.add_argument('--images', nargs='+', help='Image files to use as frames')
    parser.add_argument('--headless', action='store_true', help='Do not open a preview window')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.enroll and not args.name:
        parser.error('--enroll requires --name')

    config = load_config(args.config)
    setup_logging(config)

    try:
        app = FaceEnrollmentApp(config, display=False if args.headless else None)

        if args.list:
            identities = app.list_identities()
            print(f"Enrolled identities ({len(identities)}):")
            for identity in identities:
                print(f"  {identity['id']}: {identity['name']} (dim {identity['dim']})")
            return 0

        if args.delete:
            if app.store.delete(args.delete):
                print(f"Deleted {args.delete}")
                return 0
            print(f"No identity with id {args.delete}")
            return 1

        source = app.open_source(camera=args.camera, video=args.video, images=args.images)
        if not source.is_open():
            logger.error("Failed to open frame source")
            return 1

        if args.recognize:
            app.run_recognition_loop(source)
            return 0

        with source:
            report = app.enroll(args.enroll, args.name, source)
        if report.completed:
            print(f"Enrollment successful for {args.name} ({args.enroll})")
            return 0
        print(f"Enrollment not completed: {report.stop_reason}")
        return 1

    except StoreWriteFailed as e:
        logger.error(f"Enrollment could not be saved: {e}")
        return 1
    except Exception as e:
        logger.error(f"Application error: {e}")
        return 1


if __name__ == '__main__':
    raise SystemExit(main())
