from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


class PipelineStage(str, Enum):
    ARTICLES = "articles"
    LEMMAS = "lemmas"
    WORDS = "words"


class WordClass(str, Enum):
    NOUN = "substantiv"
    VERB = "verb"
    ADJECTIVE = "adjektiv"

    @property
    def file_name(self) -> str:
        return {
            WordClass.NOUN: "nouns.json",
            WordClass.VERB: "verbs.json",
            WordClass.ADJECTIVE: "adjectives.json",
        }[self]


class RunState(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class Document:
    index: int
    markup: str
    family_id: Optional[int] = None


@dataclass(frozen=True)
class Job:
    index: int
    document: Document


@dataclass
class TaggedRecord:
    value: str
    context: str


@dataclass
class CategoryRecord:
    word_class: WordClass
    forms: Dict[str, List[str]]

    def to_json(self) -> Dict[str, Any]:
        return {"class": self.word_class.value, "forms": {k: list(v) for k, v in self.forms.items()}}


Payload = Union[str, CategoryRecord]


@dataclass(frozen=True)
class ExtractionResult:
    """
    Outcome of one job. Either `error` is set or `payload` holds the derived
    sub-records (possibly none).
    """

    index: int
    payload: Optional[Tuple[Payload, ...]] = None
    error: Optional[str] = None
    worker_id: Optional[int] = None
    family_id: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class FinalOutputEntry:
    key: int
    payload: Payload
    family_id: int

    def to_json(self) -> Dict[str, Any]:
        if isinstance(self.payload, CategoryRecord):
            data = self.payload.to_json()
        else:
            data = {"html": self.payload}
        data["familyID"] = self.family_id
        return data


@dataclass
class RunSummary:
    dispatched: int = 0
    processed: int = 0
    failed: int = 0
    skipped: int = 0
    empty: int = 0
    records: int = 0


@dataclass
class RunRecord:
    id: str
    stage: PipelineStage
    input_path: str
    output_path: str
    state: RunState = RunState.QUEUED
    dispatched: int = 0
    processed: int = 0
    failed: int = 0
    skipped: int = 0
    records: int = 0
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class FailureRecord:
    run_id: str
    document_index: int
    reason: str
    worker_id: Optional[int] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
