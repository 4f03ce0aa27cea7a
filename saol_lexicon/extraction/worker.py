from __future__ import annotations

import logging
import queue
import threading
from typing import List, Optional

from .config import Selectors
from .dispatcher import STOP
from .engine import MarkupParser
from .errors import MarkupParseError
from .grammar import CATEGORY_SPECS, TabularExtractor
from .models import ExtractionResult, Job, Payload, PipelineStage

logger = logging.getLogger(__name__)


class StageHandler:
    """
    Turns one parsed document into zero or more sub-records. An empty list
    means the sub-document selector matched nothing, which is not an error.
    """

    def __init__(self, selectors: Selectors):
        self.selectors = selectors

    def extract(self, tree) -> List[Payload]:
        raise NotImplementedError


class ArticleHandler(StageHandler):
    def extract(self, tree) -> List[Payload]:
        article = tree.select_one(self.selectors.article)
        if article is None:
            return []
        return [article.decode_contents()]


class LemmaHandler(StageHandler):
    def extract(self, tree) -> List[Payload]:
        article = tree.select_one(self.selectors.article)
        if article is None:
            return []
        return [str(lemma) for lemma in article.select(self.selectors.lemma)]


class WordHandler(StageHandler):
    def __init__(self, selectors: Selectors):
        super().__init__(selectors)
        self.extractor = TabularExtractor(selectors)

    def extract(self, tree) -> List[Payload]:
        records: List[Payload] = []
        for lemma in tree.select(self.selectors.lemma):
            word_class = self.extractor.classify(lemma)
            if word_class is None:
                logger.debug("Skipping lemma without a supported word class")
                continue
            records.append(self.extractor.extract(lemma, CATEGORY_SPECS[word_class]))
        return records


def build_handler(stage: PipelineStage, selectors: Optional[Selectors] = None) -> StageHandler:
    selectors = selectors or Selectors()
    handlers = {
        PipelineStage.ARTICLES: ArticleHandler,
        PipelineStage.LEMMAS: LemmaHandler,
        PipelineStage.WORDS: WordHandler,
    }
    return handlers[stage](selectors)


class ExtractionWorker:
    """
    Runs a single job: parse the markup, then hand the tree to the stage
    handler. Always returns exactly one result; failures are reported in the
    result instead of raised so they never reach sibling jobs.
    """

    def __init__(self, parser: MarkupParser, handler: StageHandler):
        self.parser = parser
        self.handler = handler

    def run_job(self, job: Job, worker_id: Optional[int] = None) -> ExtractionResult:
        document = job.document
        try:
            tree = self.parser.parse(document.markup)
        except MarkupParseError as exc:
            return ExtractionResult(index=job.index, error=str(exc), worker_id=worker_id, family_id=document.family_id)
        except Exception as exc:  # noqa: BLE001
            return ExtractionResult(
                index=job.index,
                error=f"failed to parse markup: {exc}",
                worker_id=worker_id,
                family_id=document.family_id,
            )
        try:
            payload = self.handler.extract(tree)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Worker %s failed extracting entry %d", worker_id, job.index)
            return ExtractionResult(
                index=job.index,
                error=f"extraction failed: {exc}",
                worker_id=worker_id,
                family_id=document.family_id,
            )
        return ExtractionResult(
            index=job.index,
            payload=tuple(payload),
            worker_id=worker_id,
            family_id=document.family_id,
        )


class WorkerPool:
    """
    Fixed set of threads pulling jobs until they see the stop marker. The job
    and result queues are the only state they share.
    """

    def __init__(
        self,
        worker: ExtractionWorker,
        jobs: "queue.Queue[Optional[Job]]",
        results: "queue.Queue[Optional[ExtractionResult]]",
        size: int,
    ):
        if size < 1:
            raise ValueError("worker pool needs at least one worker")
        self.worker = worker
        self.jobs = jobs
        self.results = results
        self.size = size
        self.threads: List[threading.Thread] = []

    def start(self) -> None:
        logger.info("Launching %d workers", self.size)
        for worker_id in range(1, self.size + 1):
            thread = threading.Thread(target=self._loop, args=(worker_id,), name=f"extract-worker-{worker_id}", daemon=True)
            thread.start()
            self.threads.append(thread)

    def _loop(self, worker_id: int) -> None:
        while True:
            job = self.jobs.get()
            if job is STOP:
                break
            self.results.put(self.worker.run_job(job, worker_id))

    def join(self) -> None:
        for thread in self.threads:
            thread.join()
        logger.info("All workers finished")
