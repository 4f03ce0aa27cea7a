from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .models import PipelineStage


@dataclass(frozen=True)
class Selectors:
    """
    CSS selectors locating sub-documents and table rows in SAOL markup.
    """

    article: str = "div.article"
    lemma: str = "div.lemma"
    word_class: str = ".ordklass"
    table_row: str = ".tabell tr"
    header_marker: str = "th.ordformth"
    header_label: str = "i"
    value_cell: str = "td"


@dataclass
class PipelineConfig:
    input_path: Path
    output_path: Path
    stage: PipelineStage = PipelineStage.ARTICLES
    workers: int = 0
    job_queue_size: int = 100
    result_queue_size: int = 100
    category_dir: Optional[Path] = None
    selectors: Selectors = field(default_factory=Selectors)

    def worker_count(self) -> int:
        if self.workers > 0:
            return self.workers
        return max(os.cpu_count() or 1, 1)

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        category_dir = os.getenv("SAOL_CATEGORY_DIR")
        queue_size = int(os.getenv("SAOL_QUEUE_SIZE", "100"))
        return cls(
            input_path=Path(os.getenv("SAOL_INPUT_PATH", "./data/saol_entries.json")),
            output_path=Path(os.getenv("SAOL_OUTPUT_PATH", "./data/cleaned_articles.json")),
            stage=PipelineStage(os.getenv("SAOL_STAGE", PipelineStage.ARTICLES.value)),
            workers=int(os.getenv("SAOL_WORKERS", "0")),
            job_queue_size=queue_size,
            result_queue_size=queue_size,
            category_dir=Path(category_dir) if category_dir else None,
        )
