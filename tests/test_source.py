import io
import json

import pytest

from saol_lexicon.extraction import InputStructureError, iter_json_collection


def read_all(text: str, chunk_size: int = 7):
    return list(iter_json_collection(io.StringIO(text), chunk_size=chunk_size))


def test_reads_array_across_small_chunks():
    entries = [{"html": f"<div class=\"article\">ord {i} – åäö</div>"} for i in range(25)]
    entries.append(12345678)
    entries.append(None)
    text = json.dumps(entries, ensure_ascii=False, indent=2)
    assert read_all(text) == entries
    assert read_all(text, chunk_size=1) == entries


def test_number_split_across_chunks_is_not_truncated():
    assert read_all("[1234567890123, 42]", chunk_size=3) == [1234567890123, 42]


def test_reads_keyed_object_values_in_file_order():
    text = json.dumps({"2": {"html": "b", "familyID": 7}, "1": {"html": "a", "familyID": 3}})
    assert read_all(text) == [{"html": "b", "familyID": 7}, {"html": "a", "familyID": 3}]


@pytest.mark.parametrize("text", ["[]", "  [ ]  ", "{}"])
def test_empty_collections(text):
    assert read_all(text) == []


@pytest.mark.parametrize(
    "text",
    [
        "",
        '"just a string"',
        "42",
        '[{"html": "a"} {"html": "b"}]',
        '[{"html": "a"},',
        '[{"html": "a"',
        '{"html" "a"}',
        "{1: 2}",
    ],
)
def test_structural_errors_are_fatal(text):
    with pytest.raises(InputStructureError):
        read_all(text)


def test_elements_before_a_syntax_error_are_still_yielded():
    reader = iter_json_collection(io.StringIO('[{"html": "a"}, {"html": ]'), chunk_size=4)
    assert next(reader) == {"html": "a"}
    with pytest.raises(InputStructureError):
        next(reader)


def test_invalid_utf8_is_a_structural_error():
    fp = io.TextIOWrapper(io.BytesIO(b'[{"html": "\xff"}]'), encoding="utf-8")
    with pytest.raises(InputStructureError, match="UTF-8"):
        list(iter_json_collection(fp))


def test_syntax_error_stops_reading_without_buffering_the_rest():
    tail = '{"html": "b"}, ' * 5000 + '{"html": "c"}]'
    fp = io.StringIO('[{"html": "a"}, {"html": x}, ' + tail)
    reader = iter_json_collection(fp, chunk_size=16)
    assert next(reader) == {"html": "a"}
    with pytest.raises(InputStructureError):
        next(reader)
    assert fp.tell() < 200


def test_long_strings_split_across_many_chunks():
    html = "<div class=\"article\">" + "ord " * 500 + "</div>"
    assert read_all(json.dumps([{"html": html}, {"html": "x"}]), chunk_size=5) == [{"html": html}, {"html": "x"}]
