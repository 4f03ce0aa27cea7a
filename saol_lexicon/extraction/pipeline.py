from __future__ import annotations

import logging
import queue
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, List, Optional, Tuple

from .assembler import assemble, category_outputs, keyed_output
from .collector import ResultCollector, reconcile
from .config import PipelineConfig
from .dispatcher import JobDispatcher
from .engine import MarkupParser, SoupMarkupParser
from .errors import PipelineError
from .models import (
    ExtractionResult,
    FailureRecord,
    FinalOutputEntry,
    PipelineStage,
    RunRecord,
    RunState,
    RunSummary,
)
from .repository import InMemoryRunRepository, RunRepository
from .source import iter_json_collection
from .storage import OutputStorage, open_input
from .worker import ExtractionWorker, WorkerPool, build_handler

logger = logging.getLogger(__name__)


@dataclass
class BatchOutcome:
    results: List[ExtractionResult]
    failures: List[ExtractionResult] = field(default_factory=list)
    skipped: List[Tuple[int, str]] = field(default_factory=list)
    dispatched: int = 0

    def summary(self, entries: List[FinalOutputEntry]) -> RunSummary:
        return RunSummary(
            dispatched=self.dispatched,
            processed=len(self.results),
            failed=len(self.failures),
            skipped=len(self.skipped),
            empty=sum(1 for r in self.results if not r.payload),
            records=len(entries),
        )


class BatchPipeline:
    """
    Drives one batch through dispatch -> extraction -> collection ->
    reconciliation -> assembly -> output. Per-document problems are counted
    and recorded; only PipelineError aborts a run, and an aborted run writes
    no output.
    """

    def __init__(
        self,
        config: PipelineConfig,
        parser: Optional[MarkupParser] = None,
        repository: Optional[RunRepository] = None,
    ):
        self.config = config
        self.parser = parser or SoupMarkupParser()
        self.repo = repository or InMemoryRunRepository()
        self.handler = build_handler(config.stage, config.selectors)
        self.storage = OutputStorage(config.output_path, config.category_dir)

    def process(self, elements: Iterable[Any]) -> BatchOutcome:
        jobs: queue.Queue = queue.Queue(maxsize=self.config.job_queue_size)
        results: queue.Queue = queue.Queue(maxsize=self.config.result_queue_size)
        pool = WorkerPool(ExtractionWorker(self.parser, self.handler), jobs, results, self.config.worker_count())
        collector = ResultCollector(results)
        dispatcher = JobDispatcher(jobs)

        pool.start()
        collector.start()
        try:
            dispatcher.dispatch(elements)
        finally:
            # Shut down in order even on a fatal input error, so no thread is left blocked.
            dispatcher.close(pool.size)
            pool.join()
            collector.close()
            collector.join()

        return BatchOutcome(
            results=reconcile(collector.collected),
            failures=collector.failures,
            skipped=dispatcher.skipped,
            dispatched=dispatcher.dispatched,
        )

    def run(self, run_id: Optional[str] = None) -> RunSummary:
        run_id = run_id or f"run-{uuid.uuid4().hex[:12]}"
        self._mark_running(run_id)
        logger.info("Starting %s run %s on '%s'", self.config.stage.value, run_id, self.config.input_path)
        try:
            with open_input(self.config.input_path) as fp:
                outcome = self.process(iter_json_collection(fp))
            entries = assemble(outcome.results)
            self.storage.write_entries(keyed_output(entries))
            if self.config.stage == PipelineStage.WORDS:
                self.storage.write_categories(category_outputs(entries))
        except PipelineError as exc:
            logger.error("Run %s failed during %s: %s", run_id, exc.stage, exc)
            self.repo.update_run(run_id, state=RunState.FAILED, error_message=f"{exc.stage}: {exc}")
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("Run %s failed unexpectedly", run_id)
            self.repo.update_run(run_id, state=RunState.FAILED, error_message=f"pipeline: {exc}")
            raise

        summary = outcome.summary(entries)
        self._record_failures(run_id, outcome)
        self.repo.update_run(
            run_id,
            state=RunState.COMPLETED,
            dispatched=summary.dispatched,
            processed=summary.processed,
            failed=summary.failed,
            skipped=summary.skipped,
            records=summary.records,
        )
        logger.info(
            "Run %s finished: %d documents processed, %d records produced, %d failed, %d skipped",
            run_id,
            summary.processed,
            summary.records,
            summary.failed,
            summary.skipped,
        )
        return summary

    def _mark_running(self, run_id: str) -> None:
        run = self.repo.get_run(run_id)
        if run is None:
            run = RunRecord(
                id=run_id,
                stage=self.config.stage,
                input_path=str(self.config.input_path),
                output_path=str(self.config.output_path),
            )
        run.state = RunState.RUNNING
        run.started_at = datetime.utcnow()
        self.repo.save_run(run)

    def _record_failures(self, run_id: str, outcome: BatchOutcome) -> None:
        failures = [
            FailureRecord(run_id=run_id, document_index=index, reason=f"malformed entry: {reason}")
            for index, reason in outcome.skipped
        ]
        failures.extend(
            FailureRecord(run_id=run_id, document_index=r.index, reason=r.error or "", worker_id=r.worker_id)
            for r in outcome.failures
        )
        if failures:
            self.repo.add_failures(failures)


def run_pipeline(
    config: PipelineConfig,
    parser: Optional[MarkupParser] = None,
    repository: Optional[RunRepository] = None,
    run_id: Optional[str] = None,
) -> RunSummary:
    return BatchPipeline(config, parser=parser, repository=repository).run(run_id)
