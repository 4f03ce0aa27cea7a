"""
Incremental reader for the top-level JSON collection of entries.

The scraped SAOL dump is a single JSON array that can run to hundreds of
megabytes, so elements are decoded one at a time from a sliding text buffer
instead of loading the whole file. A top-level object (the keyed output of an
earlier stage) is also accepted; its values are yielded in file order.
"""

from __future__ import annotations

import json
from typing import Any, Iterator, TextIO

from .errors import InputStructureError

_WHITESPACE = " \t\n\r"
# Longest token that can be cut by a chunk boundary and still look like a syntax error.
_LOOKAHEAD = 16


class JsonCollectionReader:
    def __init__(self, fp: TextIO, chunk_size: int = 64 * 1024):
        self.fp = fp
        self.chunk_size = chunk_size
        self.decoder = json.JSONDecoder()
        self.buf = ""
        self.pos = 0
        self.eof = False

    def _fill(self) -> bool:
        if self.eof:
            return False
        try:
            chunk = self.fp.read(self.chunk_size)
        except UnicodeDecodeError as exc:
            raise InputStructureError(f"input is not valid UTF-8: {exc}") from exc
        if not chunk:
            self.eof = True
            return False
        # Drop the consumed prefix so the buffer stays bounded.
        self.buf = self.buf[self.pos:] + chunk
        self.pos = 0
        return True

    def _peek(self) -> str:
        while True:
            while self.pos < len(self.buf) and self.buf[self.pos] in _WHITESPACE:
                self.pos += 1
            if self.pos < len(self.buf):
                return self.buf[self.pos]
            if not self._fill():
                return ""

    def _expect(self, chars: str, what: str) -> str:
        ch = self._peek()
        if not ch or ch not in chars:
            found = repr(ch) if ch else "end of input"
            raise InputStructureError(f"expected {what} at offset {self.pos}, found {found}")
        self.pos += 1
        return ch

    def _may_be_truncated(self, exc: json.JSONDecodeError) -> bool:
        # An open string or an error near the buffer end may just be a chunk boundary.
        return exc.msg.startswith("Unterminated string") or exc.pos >= len(self.buf) - _LOOKAHEAD

    def _value(self) -> Any:
        self._peek()
        while True:
            try:
                value, end = self.decoder.raw_decode(self.buf, self.pos)
            except json.JSONDecodeError as exc:
                if self._may_be_truncated(exc) and self._fill():
                    continue
                raise InputStructureError(f"malformed JSON element: {exc.msg} at offset {exc.pos}") from exc
            # A value touching the buffer end may continue in the next chunk (numbers, literals).
            if end >= len(self.buf) and self._fill():
                continue
            self.pos = end
            return value

    def __iter__(self) -> Iterator[Any]:
        opening = self._peek()
        if opening == "[":
            return self._iter_array()
        if opening == "{":
            return self._iter_object()
        found = repr(opening) if opening else "empty input"
        raise InputStructureError(f"expected a JSON array or object, found {found}")

    def _iter_array(self) -> Iterator[Any]:
        self._expect("[", "'['")
        if self._peek() == "]":
            self.pos += 1
            return
        while True:
            yield self._value()
            if self._expect(",]", "',' or ']'") == "]":
                break

    def _iter_object(self) -> Iterator[Any]:
        self._expect("{", "'{'")
        if self._peek() == "}":
            self.pos += 1
            return
        while True:
            if self._peek() != '"':
                raise InputStructureError(f"expected an object key at offset {self.pos}")
            self._value()
            self._expect(":", "':'")
            yield self._value()
            if self._expect(",}", "',' or '}'") == "}":
                break


def iter_json_collection(fp: TextIO, chunk_size: int = 64 * 1024) -> Iterator[Any]:
    # Structural errors surface on the first next(), inside the dispatch loop.
    yield from JsonCollectionReader(fp, chunk_size=chunk_size)
