from __future__ import annotations

import json
import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, TextIO

from .errors import InputOpenError, OutputWriteError
from .models import WordClass

logger = logging.getLogger(__name__)


@contextmanager
def open_input(path: Path) -> Iterator[TextIO]:
    try:
        fp = path.open("r", encoding="utf-8")
    except OSError as exc:
        raise InputOpenError(f"Error opening input file '{path}': {exc}") from exc
    with fp:
        yield fp


def write_json(target: Path, data: Any) -> Path:
    """
    Write JSON next to the target and rename it into place, so readers never
    observe a half-written file and a failed run leaves the old one intact.
    """
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
    except OSError as exc:
        raise OutputWriteError(f"Error creating output file '{target}': {exc}") from exc
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
            f.write("\n")
        os.replace(tmp_path, target)
    except (OSError, TypeError, ValueError) as exc:
        tmp_path.unlink(missing_ok=True)
        raise OutputWriteError(f"Error writing output file '{target}': {exc}") from exc
    return target


class OutputStorage:
    """
    Owns the output locations of one run: the keyed entry map and, for the
    words stage, one list file per word class.
    """

    def __init__(self, output_path: Path, category_dir: Optional[Path] = None):
        self.output_path = output_path
        self.category_dir = category_dir

    def write_entries(self, entries: Dict[str, Dict[str, Any]]) -> Path:
        path = write_json(self.output_path, entries)
        logger.info("Wrote %d entries to '%s'", len(entries), path)
        return path

    def category_path(self, word_class: WordClass) -> Optional[Path]:
        if self.category_dir is None:
            return None
        return self.category_dir / word_class.file_name

    def write_categories(self, categories: Dict[WordClass, list]) -> Dict[WordClass, Path]:
        written: Dict[WordClass, Path] = {}
        for word_class, records in categories.items():
            target = self.category_path(word_class)
            if target is None:
                continue
            written[word_class] = write_json(target, records)
            logger.info("Wrote %d %s records to '%s'", len(records), word_class.value, target)
        return written
