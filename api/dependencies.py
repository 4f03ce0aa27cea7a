from __future__ import annotations

import os
import uuid
from functools import lru_cache

from saol_lexicon.extraction import RunRepository, SqlAlchemyRunRepository


@lru_cache(maxsize=1)
def get_repo() -> RunRepository:
    db_url = os.getenv("DATABASE_URL", "sqlite+pysqlite:///./data/saol_runs.db")
    return SqlAlchemyRunRepository(db_url)


def default_workers() -> int:
    return int(os.getenv("SAOL_WORKERS", "0"))


def build_run_id() -> str:
    return f"run-{uuid.uuid4().hex[:12]}"
