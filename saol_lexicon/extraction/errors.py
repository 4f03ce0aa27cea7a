from __future__ import annotations

from typing import Optional


class PipelineError(Exception):
    """
    Fatal pipeline error. Aborts the whole run; `stage` names where it happened.
    """

    stage = "pipeline"

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        if stage is not None:
            self.stage = stage


class InputOpenError(PipelineError):
    stage = "input"


class InputStructureError(PipelineError):
    stage = "dispatch"


class OutputWriteError(PipelineError):
    stage = "output"


class MarkupParseError(Exception):
    """
    Raised by a markup parser for a single document. Recoverable: the job is
    reported as failed and the batch continues.
    """
