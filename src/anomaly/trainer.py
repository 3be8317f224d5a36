"""
Scheduled retraining for the anomaly detector.

Periodically checks whether enough new samples have been buffered since the
last training pass and, if so, retrains the detector in the background.
"""

import threading
import time
from typing import Optional

import structlog

from .detector import AnomalyDetector
from .models import InsufficientDataError

logger = structlog.get_logger(__name__)


class ModelTrainer:
    """Runs the detector's retraining check on a schedule"""

    def __init__(self, detector: AnomalyDetector, min_new_samples: int = 100):
        self.detector = detector
        self.min_new_samples = min_new_samples

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self.stats = {
            "checks": 0,
            "successful": 0,
            "failed": 0,
            "skipped": 0,
        }

    def check_and_retrain(self) -> bool | None:
        """Retrain if enough new samples arrived since the last training

        Returns:
            True if retrained, False if training failed, None if skipped
        """
        self.stats["checks"] += 1
        pending = self.detector.samples_since_training

        if self.detector.is_ready() and pending < self.min_new_samples:
            logger.debug(
                "Not enough new samples, skipping retraining",
                pending=pending,
                required=self.min_new_samples,
            )
            self.stats["skipped"] += 1
            return None

        start_time = time.time()
        try:
            self.detector.train_model()
        except InsufficientDataError as e:
            logger.info("Skipping retraining", reason=str(e))
            self.stats["skipped"] += 1
            return None
        except Exception as e:
            logger.error("Scheduled retraining failed", error=str(e), exc_info=True)
            self.stats["failed"] += 1
            return False

        self.stats["successful"] += 1
        logger.info(
            "Scheduled retraining completed",
            new_samples=pending,
            elapsed_sec=round(time.time() - start_time, 2),
        )
        return True

    def start(self, interval_seconds: float) -> None:
        """Start the retraining check on a daemon thread"""
        if self._thread is not None and self._thread.is_alive():
            logger.warning("Trainer already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, args=(interval_seconds,), name="model-trainer", daemon=True
        )
        self._thread.start()
        logger.info("Scheduled retraining started", interval_seconds=interval_seconds)

    def stop(self, timeout: float | None = None) -> None:
        """Stop the background thread and wait for it to exit"""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("Scheduled retraining stopped", stats=self.stats)

    def _run(self, interval_seconds: float) -> None:
        while not self._stop_event.wait(interval_seconds):
            self.check_and_retrain()
