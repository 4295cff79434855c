import base64
import io
import json
from datetime import datetime, timezone

import pytest

from porygo.config import format_duration
from porygo.presenter import JsonPresenter, TextPresenter
from porygo.scraper import ScrapedData
from porygo.storage import CacheEntry


def sample(**changes):
    values = dict(
        url="https://example.com",
        status=200,
        content_type="text/html",
        size=1234,
        response_time=1.5,
        timestamp=datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc),
    )
    values.update(changes)
    return ScrapedData(**values)


def test_json_round_trips_plain_mapping():
    stream = io.StringIO()
    payload = {"name": "porygo", "items": [1, 2, 3], "nested": {"ok": True}}
    JsonPresenter(stream).write(payload)
    assert json.loads(stream.getvalue()) == payload
    assert stream.getvalue().endswith("\n")


def test_json_writes_scraped_data_via_to_dict():
    stream = io.StringIO()
    data = sample(extracted={"h1": ["Title"]})
    JsonPresenter(stream).write(data)
    assert json.loads(stream.getvalue()) == data.to_dict()


def test_json_is_indented_two_spaces():
    stream = io.StringIO()
    JsonPresenter(stream).write({"key": "value"})
    assert '\n  "key": "value"\n' in stream.getvalue()


def test_json_escapes_html_characters():
    stream = io.StringIO()
    JsonPresenter(stream).write({"html": "<a>&</a>"})
    text = stream.getvalue()
    assert "<" not in text and ">" not in text and "&" not in text
    assert "\\u003c" in text
    assert json.loads(text) == {"html": "<a>&</a>"}


def test_json_encodes_cache_entry_bytes_as_base64():
    stream = io.StringIO()
    stamp = datetime(2024, 1, 1, tzinfo=timezone.utc)
    JsonPresenter(stream).write(CacheEntry(value=b"cached body", expiration_time=stamp))
    out = json.loads(stream.getvalue())
    assert base64.b64decode(out["value"]) == b"cached body"
    assert datetime.fromisoformat(out["expiration_time"]) == stamp


def test_json_rejects_unserialisable_value():
    with pytest.raises(TypeError, match="failed to marshal result to JSON"):
        JsonPresenter(io.StringIO()).write(object())


def test_text_metadata_block():
    stream = io.StringIO()
    data = sample()
    TextPresenter(stream).write(data)
    lines = stream.getvalue().splitlines()
    assert lines[:6] == [
        "--- Metadata ---",
        "URL:          https://example.com",
        "Status:       200",
        "Content-Type: text/html",
        "Size:         1234 bytes",
        f"Response Time: {format_duration(data.response_time)}",
    ]
    assert "--- Extracted by CSS Selectors ---" not in stream.getvalue()
    assert "--- Matched by Regex Patterns ---" not in stream.getvalue()


def test_text_extracted_section_indents_multiline_items():
    stream = io.StringIO()
    TextPresenter(stream).write(sample(extracted={"p": ["first\nsecond"], "h2": []}))
    text = stream.getvalue()
    assert "\n--- Extracted by CSS Selectors ---\n" in text
    assert "Selector: p\n  - first\n    second\n" in text
    assert "Selector: h2\n  (No results found)\n" in text


def test_text_matches_section():
    stream = io.StringIO()
    TextPresenter(stream).write(sample(matches={"hel+o": ["hello", "hello"], "zzz": []}))
    text = stream.getvalue()
    assert "\n--- Matched by Regex Patterns ---\n" in text
    assert "Pattern: hel+o\n  - hello\n  - hello\n" in text
    assert "Pattern: zzz\n  (No matches found)\n" in text


def test_text_rejects_other_types():
    with pytest.raises(TypeError, match="expected ScrapedData, got dict"):
        TextPresenter(io.StringIO()).write({"url": "https://example.com"})