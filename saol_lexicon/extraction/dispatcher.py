from __future__ import annotations

import logging
import queue
from typing import Any, Iterable, List, Optional, Tuple

from .models import Document, Job

logger = logging.getLogger(__name__)

# Marks the end of a queue; each consumer stops on the first one it sees.
STOP = None


class MalformedEntry(ValueError):
    pass


def decode_document(index: int, element: Any) -> Document:
    if not isinstance(element, dict):
        raise MalformedEntry(f"expected an object, got {type(element).__name__}")
    markup = element.get("html")
    if not isinstance(markup, str):
        raise MalformedEntry("missing or non-text 'html' field")
    family_id = element.get("familyID")
    if family_id is not None and (isinstance(family_id, bool) or not isinstance(family_id, int)):
        raise MalformedEntry(f"'familyID' must be an integer, got {family_id!r}")
    return Document(index=index, markup=markup, family_id=family_id)


class JobDispatcher:
    """
    Feeds jobs from a lazily produced collection into a bounded queue. Every
    element consumes one index, including elements that fail to decode, so
    indices always match positions in the source collection.
    """

    def __init__(self, jobs: "queue.Queue[Optional[Job]]", progress_every: int = 1000):
        self.jobs = jobs
        self.progress_every = progress_every
        self.dispatched = 0
        self.skipped: List[Tuple[int, str]] = []

    def dispatch(self, elements: Iterable[Any]) -> int:
        index = 0
        for element in elements:
            try:
                document = decode_document(index, element)
            except MalformedEntry as exc:
                logger.warning("Error decoding entry at index %d: %s. Skipping.", index, exc)
                self.skipped.append((index, str(exc)))
                index += 1
                continue
            self.jobs.put(Job(index=index, document=document))
            self.dispatched += 1
            index += 1
            if self.progress_every and index % self.progress_every == 0:
                logger.info("...dispatched %d entries", index)
        logger.info("Finished reading input: %d jobs dispatched, %d entries skipped", self.dispatched, len(self.skipped))
        return index

    def close(self, consumers: int) -> None:
        for _ in range(consumers):
            self.jobs.put(STOP)
