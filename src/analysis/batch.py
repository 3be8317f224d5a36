"""
Buffered batch processing on a fixed interval.

Records are appended to a buffer without blocking on the timer. A daemon
thread wakes every interval and, once the buffer holds a full batch, swaps
the batch out under the lock and hands it to the handler outside the lock.
"""

import threading
import time
from collections.abc import Callable
from typing import Any, Optional

import structlog

logger = structlog.get_logger(__name__)


class BatchProcessor:
    """Accumulates items and drains them in fixed-size batches"""

    def __init__(
        self,
        handler: Callable[[list[Any]], Any],
        batch_size: int = 100,
        interval_seconds: float = 5.0,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        self.handler = handler
        self.batch_size = batch_size
        self.interval_seconds = interval_seconds

        self._buffer: list[Any] = []
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self.stats = {
            "batches_processed": 0,
            "batch_errors": 0,
            "items_processed": 0,
            "items_dropped": 0,
        }

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._buffer)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def get_stats(self) -> dict[str, int]:
        with self._lock:
            return dict(self.stats)

    def add(self, item: Any) -> int:
        """Append an item and return the buffer size"""
        with self._lock:
            self._buffer.append(item)
            return len(self._buffer)

    def tick(self) -> bool:
        """Drain one batch if the buffer holds a full one

        Returns:
            True if a batch was handed to the handler
        """
        with self._lock:
            if len(self._buffer) < self.batch_size:
                return False
            batch = self._buffer[: self.batch_size]
            del self._buffer[: self.batch_size]

        self._process(batch)
        return True

    def flush(self) -> int:
        """Drain everything buffered, including a partial last batch

        Returns:
            Number of batches handed to the handler
        """
        with self._lock:
            drained = self._buffer
            self._buffer = []

        batches = [
            drained[i : i + self.batch_size] for i in range(0, len(drained), self.batch_size)
        ]
        for batch in batches:
            self._process(batch)
        return len(batches)

    def start(self) -> None:
        if self.running:
            logger.warning("Batch processing already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="batch-processor", daemon=True)
        self._thread.start()
        logger.info(
            "Batch processing started",
            batch_size=self.batch_size,
            interval_seconds=self.interval_seconds,
        )

    def stop(self, timeout: float | None = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("Batch processing stopped", pending=self.pending, stats=self.get_stats())

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            self.tick()

    def _process(self, batch: list[Any]) -> None:
        start_time = time.time()
        logger.info("Processing batch", items=len(batch))

        try:
            self.handler(batch)
        except Exception as e:
            # Failed batches are dropped, retries belong to the transport layer
            with self._lock:
                self.stats["batch_errors"] += 1
                self.stats["items_dropped"] += len(batch)
            logger.error("Error processing batch", items=len(batch), error=str(e), exc_info=True)
            return

        with self._lock:
            self.stats["batches_processed"] += 1
            self.stats["items_processed"] += len(batch)
        logger.debug(
            "Batch processed",
            items=len(batch),
            elapsed_ms=round((time.time() - start_time) * 1000, 1),
        )
