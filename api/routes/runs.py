from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel

from saol_lexicon.extraction import (
    BatchPipeline,
    PipelineConfig,
    PipelineError,
    PipelineStage,
    RunRecord,
    RunRepository,
)

from api.dependencies import build_run_id, default_workers, get_repo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/runs", tags=["runs"])


class RunRequest(BaseModel):
    input_path: str
    output_path: str
    stage: PipelineStage = PipelineStage.ARTICLES
    workers: Optional[int] = None
    category_dir: Optional[str] = None


def _execute_run(run_id: str, config: PipelineConfig, repo: RunRepository) -> None:
    try:
        BatchPipeline(config, repository=repo).run(run_id)
    except PipelineError as exc:
        # Already recorded on the run; nothing to return from a background task.
        logger.error("Background run %s failed: %s", run_id, exc)
    except Exception:  # noqa: BLE001
        logger.exception("Background run %s failed unexpectedly", run_id)


@router.post("", status_code=202)
def create_run(
    request: RunRequest,
    background_tasks: BackgroundTasks,
    repo: RunRepository = Depends(get_repo),
):
    config = PipelineConfig(
        input_path=Path(request.input_path),
        output_path=Path(request.output_path),
        stage=request.stage,
        workers=request.workers if request.workers is not None else default_workers(),
        category_dir=Path(request.category_dir) if request.category_dir else None,
    )
    run_id = build_run_id()
    repo.save_run(
        RunRecord(
            id=run_id,
            stage=config.stage,
            input_path=str(config.input_path),
            output_path=str(config.output_path),
        )
    )
    background_tasks.add_task(_execute_run, run_id, config, repo)
    return {"run_id": run_id}


@router.get("/{run_id}")
def get_run(run_id: str, repo: RunRepository = Depends(get_repo)):
    run = repo.get_run(run_id)
    if not run:
        raise HTTPException(status_code=404, detail=f"Run not found: {run_id}")
    return {
        "id": run.id,
        "stage": run.stage,
        "state": run.state,
        "input_path": run.input_path,
        "output_path": run.output_path,
        "dispatched": run.dispatched,
        "processed": run.processed,
        "failed": run.failed,
        "skipped": run.skipped,
        "records": run.records,
        "error_message": run.error_message,
    }


@router.get("/{run_id}/failures")
def list_run_failures(run_id: str, repo: RunRepository = Depends(get_repo)):
    if not repo.get_run(run_id):
        raise HTTPException(status_code=404, detail=f"Run not found: {run_id}")
    return [
        {"document_index": f.document_index, "worker_id": f.worker_id, "reason": f.reason}
        for f in repo.list_failures(run_id)
    ]
