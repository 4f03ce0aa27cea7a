from __future__ import annotations

from typing import Any, Dict, Iterable, List

from .models import CategoryRecord, ExtractionResult, FinalOutputEntry, WordClass


def assemble(results: Iterable[ExtractionResult]) -> List[FinalOutputEntry]:
    """
    Flatten index-ordered results into entries keyed 1..n. Each entry keeps
    the family id of the document it came from: a pre-assigned familyID when
    the input had one, otherwise the source position plus one.
    """
    entries: List[FinalOutputEntry] = []
    key = 1
    for result in results:
        family_id = result.family_id if result.family_id is not None else result.index + 1
        for payload in result.payload or ():
            entries.append(FinalOutputEntry(key=key, payload=payload, family_id=family_id))
            key += 1
    return entries


def keyed_output(entries: Iterable[FinalOutputEntry]) -> Dict[str, Dict[str, Any]]:
    return {str(entry.key): entry.to_json() for entry in entries}


def category_outputs(entries: Iterable[FinalOutputEntry]) -> Dict[WordClass, List[Dict[str, Any]]]:
    grouped: Dict[WordClass, List[Dict[str, Any]]] = {word_class: [] for word_class in WordClass}
    for entry in entries:
        if isinstance(entry.payload, CategoryRecord):
            grouped[entry.payload.word_class].append(entry.payload.to_json())
    return grouped
