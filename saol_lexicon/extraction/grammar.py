"""
Table grammar for SAOL inflection tables.

An inflection table is a flat run of `tr` rows. A row holding a single
`th.ordformth` marker is a header: its label becomes the current context and
the row yields nothing. Every other row is a value row; when its cell count
matches the word class arity it yields one TaggedRecord tagged with the
current context. Rows with any other cell count are skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .config import Selectors
from .models import CategoryRecord, TaggedRecord, WordClass

logger = logging.getLogger(__name__)


def _noun_value(cells: Sequence[str]) -> str:
    parts = cells[1].split()
    if not parts:
        return cells[0]
    return f"{cells[0]}-{parts[0]}"


def _verb_value(cells: Sequence[str]) -> str:
    if not cells[1]:
        return cells[0]
    return f"{cells[0]}-{cells[1]}"


def _adjective_value(cells: Sequence[str]) -> str:
    # "större + subst." style cells keep only the form itself.
    return cells[0].split("+", 1)[0].strip()


@dataclass(frozen=True)
class CategorySpec:
    word_class: WordClass
    cell_arity: int
    labels: Tuple[str, ...]
    compose: Callable[[Sequence[str]], str]

    def empty_forms(self) -> Dict[str, List[str]]:
        return {label: [] for label in self.labels}


CATEGORY_SPECS: Dict[WordClass, CategorySpec] = {
    WordClass.NOUN: CategorySpec(
        word_class=WordClass.NOUN,
        cell_arity=2,
        labels=("Singular", "Plural"),
        compose=_noun_value,
    ),
    WordClass.VERB: CategorySpec(
        word_class=WordClass.VERB,
        cell_arity=2,
        labels=("Finita former", "Infinita former", "Presens particip", "Perfekt particip"),
        compose=_verb_value,
    ),
    WordClass.ADJECTIVE: CategorySpec(
        word_class=WordClass.ADJECTIVE,
        cell_arity=1,
        labels=("Positiv", "Komparativ", "Superlativ"),
        compose=_adjective_value,
    ),
}


def _text(node) -> str:
    return node.get_text().strip()


class TabularExtractor:
    """
    Single-pass walker over table rows. Holds only selectors, never row state,
    so one instance is safe to share across threads.
    """

    def __init__(self, selectors: Optional[Selectors] = None):
        self.selectors = selectors or Selectors()

    def header_label(self, row) -> Optional[str]:
        markers = row.select(self.selectors.header_marker)
        if len(markers) != 1:
            return None
        marker = markers[0]
        labels = marker.select(self.selectors.header_label)
        if labels:
            return "".join(label.get_text() for label in labels).strip()
        return _text(marker)

    def tagged_rows(
        self,
        tree,
        cell_arity: int,
        compose: Callable[[Sequence[str]], str],
    ) -> List[TaggedRecord]:
        records: List[TaggedRecord] = []
        current_context = ""
        for row in tree.select(self.selectors.table_row):
            label = self.header_label(row)
            if label is not None:
                current_context = label
                continue
            cells = row.select(self.selectors.value_cell)
            if len(cells) != cell_arity:
                continue
            value = compose([_text(cell) for cell in cells])
            records.append(TaggedRecord(value=value, context=current_context))
        return records

    def classify(self, tree) -> Optional[WordClass]:
        node = tree.select_one(self.selectors.word_class)
        if node is None:
            return None
        try:
            return WordClass(_text(node))
        except ValueError:
            return None

    def extract(self, tree, spec: CategorySpec) -> CategoryRecord:
        records = self.tagged_rows(tree, spec.cell_arity, spec.compose)
        return fold_category(spec, records)


def fold_category(spec: CategorySpec, records: Iterable[TaggedRecord]) -> CategoryRecord:
    forms = spec.empty_forms()
    for record in records:
        bucket = forms.get(record.context)
        if bucket is None:
            logger.debug("Dropping %s form %r with unknown context %r", spec.word_class.value, record.value, record.context)
            continue
        bucket.append(record.value)
    return CategoryRecord(word_class=spec.word_class, forms=forms)


def group_by_context(
    records: Iterable[TaggedRecord],
    labels: Optional[Iterable[str]] = None,
) -> Dict[str, List[str]]:
    """
    Bucket record values by context. With `labels`, only those contexts are
    kept (all of them present, possibly empty); without, every context seen
    becomes a bucket in first-seen order.
    """
    if labels is not None:
        grouped: Dict[str, List[str]] = {label: [] for label in labels}
        for record in records:
            if record.context in grouped:
                grouped[record.context].append(record.value)
        return grouped
    grouped = {}
    for record in records:
        grouped.setdefault(record.context, []).append(record.value)
    return grouped
