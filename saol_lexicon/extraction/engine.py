from __future__ import annotations

import logging

from bs4 import BeautifulSoup

from .errors import MarkupParseError

logger = logging.getLogger(__name__)


class MarkupParser:
    """
    Abstract markup parser. Implementations turn raw markup text into a
    traversable node tree that supports CSS selection, and must be stateless
    so one instance can be shared by every worker thread.
    """

    def parse(self, markup: str):
        raise NotImplementedError


class SoupMarkupParser(MarkupParser):
    """
    BeautifulSoup-based parser. `features` picks the tree builder; lxml is the
    default because it is the fastest builder bs4 supports.
    """

    def __init__(self, features: str = "lxml"):
        self.features = features

    def parse(self, markup: str) -> BeautifulSoup:
        if not isinstance(markup, str):
            raise MarkupParseError(f"markup must be text, got {type(markup).__name__}")
        try:
            return BeautifulSoup(markup, self.features)
        except Exception as exc:  # noqa: BLE001
            raise MarkupParseError(f"failed to parse markup: {exc}") from exc
