from __future__ import annotations

import logging
import queue
import threading
from typing import List, Optional

from .dispatcher import STOP
from .models import ExtractionResult

logger = logging.getLogger(__name__)


class ResultCollector:
    """
    Single consumer of the result queue. Successful results are buffered in
    completion order; failures are kept apart for reporting.
    """

    def __init__(self, results: "queue.Queue[Optional[ExtractionResult]]"):
        self.results = results
        self.collected: List[ExtractionResult] = []
        self.failures: List[ExtractionResult] = []
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self._thread = threading.Thread(target=self.drain, name="result-collector", daemon=True)
        self._thread.start()

    def drain(self) -> None:
        while True:
            result = self.results.get()
            if result is STOP:
                break
            if result.error is not None:
                logger.warning(
                    "Worker %s error (index %d): %s. Skipping this entry.",
                    result.worker_id,
                    result.index,
                    result.error,
                )
                self.failures.append(result)
                continue
            self.collected.append(result)
        logger.info("Result collection finished")

    def close(self) -> None:
        self.results.put(STOP)

    def join(self) -> None:
        if self._thread is not None:
            self._thread.join()


def reconcile(results: List[ExtractionResult]) -> List[ExtractionResult]:
    """
    Restore source order. Completion order carries no meaning, so the original
    index is the only sort key.
    """
    return sorted(results, key=lambda r: r.index)
