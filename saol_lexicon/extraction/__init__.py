"""
Extraction subsystem exports.
"""

from .assembler import assemble, category_outputs, keyed_output
from .collector import ResultCollector, reconcile
from .config import PipelineConfig, Selectors
from .dispatcher import JobDispatcher, decode_document
from .engine import MarkupParser, SoupMarkupParser
from .errors import (
    InputOpenError,
    InputStructureError,
    MarkupParseError,
    OutputWriteError,
    PipelineError,
)
from .grammar import CATEGORY_SPECS, CategorySpec, TabularExtractor, fold_category, group_by_context
from .job_queue import QueuedRunSettings, RQJobQueue, run_batch_job
from .models import (
    CategoryRecord,
    Document,
    ExtractionResult,
    FailureRecord,
    FinalOutputEntry,
    Job,
    PipelineStage,
    RunRecord,
    RunState,
    RunSummary,
    TaggedRecord,
    WordClass,
)
from .pipeline import BatchOutcome, BatchPipeline, run_pipeline
from .repository import InMemoryRunRepository, RunRepository, SqlAlchemyRunRepository
from .source import iter_json_collection
from .storage import OutputStorage
from .worker import ExtractionWorker, WorkerPool, build_handler

__all__ = [
    "BatchOutcome",
    "BatchPipeline",
    "CATEGORY_SPECS",
    "CategoryRecord",
    "CategorySpec",
    "Document",
    "ExtractionResult",
    "ExtractionWorker",
    "FailureRecord",
    "FinalOutputEntry",
    "InMemoryRunRepository",
    "InputOpenError",
    "InputStructureError",
    "Job",
    "JobDispatcher",
    "MarkupParseError",
    "MarkupParser",
    "OutputStorage",
    "OutputWriteError",
    "PipelineConfig",
    "PipelineError",
    "PipelineStage",
    "QueuedRunSettings",
    "RQJobQueue",
    "ResultCollector",
    "RunRecord",
    "RunRepository",
    "RunState",
    "RunSummary",
    "Selectors",
    "SoupMarkupParser",
    "SqlAlchemyRunRepository",
    "TabularExtractor",
    "TaggedRecord",
    "WordClass",
    "WorkerPool",
    "assemble",
    "build_handler",
    "category_outputs",
    "decode_document",
    "fold_category",
    "group_by_context",
    "iter_json_collection",
    "keyed_output",
    "reconcile",
    "run_batch_job",
    "run_pipeline",
]
