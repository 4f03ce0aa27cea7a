"""
Command line entry point.

Usage:
    saol-lexicon run --input saol_entries.json --output cleaned_articles.json --stage articles
    saol-lexicon run --input cleaned_articles.json --output flattened_lemmas.json --stage lemmas
    saol-lexicon run --input flattened_lemmas.json --output words.json --stage words --category-dir ./words
    saol-lexicon enqueue --input ... --output ... --database-url sqlite+pysqlite:///./data/runs.db
    saol-lexicon worker
"""

from __future__ import annotations

import argparse
import logging
import sys
import uuid
from pathlib import Path
from typing import List, Optional

from saol_lexicon.extraction import (
    BatchPipeline,
    PipelineConfig,
    PipelineError,
    PipelineStage,
    QueuedRunSettings,
    RQJobQueue,
    RunRecord,
    SqlAlchemyRunRepository,
)

logger = logging.getLogger("saol_lexicon")

DEFAULT_DATABASE_URL = "sqlite+pysqlite:///./data/saol_runs.db"
DEFAULT_REDIS_URL = "redis://localhost:6379/0"


def setup_logging(verbose: bool = False, log_file: Optional[Path] = None) -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
        force=True,
    )


def _add_run_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--input", required=True, type=Path, help="Input JSON array (or keyed object) of entries")
    parser.add_argument("--output", required=True, type=Path, help="Output JSON path")
    parser.add_argument(
        "--stage",
        choices=[stage.value for stage in PipelineStage],
        default=PipelineStage.ARTICLES.value,
        help="Pipeline stage to run",
    )
    parser.add_argument("--workers", type=int, default=0, help="Worker threads (0 = one per CPU)")
    parser.add_argument("--queue-size", type=int, default=100, help="Capacity of the job and result queues")
    parser.add_argument("--category-dir", type=Path, default=None, help="Directory for per-word-class files (words stage)")
    parser.add_argument("--run-id", default=None, help="Run id (generated when omitted)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="saol-lexicon")
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level")
    parser.add_argument("--log-file", type=Path, default=None, help="Also write logs to this file")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run a pipeline stage in this process")
    _add_run_arguments(run)
    run.add_argument("--database-url", default=None, help="Record the run in this SQL database")

    enqueue = sub.add_parser("enqueue", help="Queue a pipeline run on Redis")
    _add_run_arguments(enqueue)
    enqueue.add_argument("--database-url", default=DEFAULT_DATABASE_URL, help="Run ledger database")
    enqueue.add_argument("--redis-url", default=DEFAULT_REDIS_URL)

    worker = sub.add_parser("worker", help="Start an RQ worker for queued runs")
    worker.add_argument("--redis-url", default=DEFAULT_REDIS_URL)
    return parser


def config_from_args(args: argparse.Namespace) -> PipelineConfig:
    return PipelineConfig(
        input_path=args.input,
        output_path=args.output,
        stage=PipelineStage(args.stage),
        workers=args.workers,
        job_queue_size=args.queue_size,
        result_queue_size=args.queue_size,
        category_dir=args.category_dir,
    )


def _run(args: argparse.Namespace) -> int:
    config = config_from_args(args)
    repo = SqlAlchemyRunRepository(args.database_url) if args.database_url else None
    pipeline = BatchPipeline(config, repository=repo)
    try:
        summary = pipeline.run(args.run_id)
    except PipelineError as exc:
        logger.error("Aborted during %s stage: %s", exc.stage, exc)
        return 1
    logger.info(
        "Processed %d documents into %d records (%d failed, %d skipped, %d empty)",
        summary.processed,
        summary.records,
        summary.failed,
        summary.skipped,
        summary.empty,
    )
    return 0


def _enqueue(args: argparse.Namespace) -> int:
    config = config_from_args(args)
    run_id = args.run_id or f"run-{uuid.uuid4().hex[:12]}"
    repo = SqlAlchemyRunRepository(args.database_url)
    repo.save_run(
        RunRecord(
            id=run_id,
            stage=config.stage,
            input_path=str(config.input_path),
            output_path=str(config.output_path),
        )
    )
    RQJobQueue(args.redis_url).enqueue_run(run_id, QueuedRunSettings(database_url=args.database_url, config=config))
    logger.info("Queued run %s", run_id)
    print(run_id)
    return 0


def _worker(args: argparse.Namespace) -> int:
    RQJobQueue(args.redis_url).work()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(verbose=args.verbose, log_file=args.log_file)
    commands = {"run": _run, "enqueue": _enqueue, "worker": _worker}
    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
