"""Formatting of scrape results for output."""

from __future__ import annotations

import base64
import dataclasses
import json
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, TextIO

from porygo.config import format_duration
from porygo.scraper import ScrapedData

_JSON_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


class Presenter(ABC):
    """Writes one result to an output stream."""

    @abstractmethod
    def write(self, data: Any) -> None:
        """Render ``data`` to the stream."""


def _json_default(obj: Any) -> Any:
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if isinstance(obj, (bytes, bytearray)):
        return base64.b64encode(bytes(obj)).decode("ascii")
    if isinstance(obj, datetime):
        return obj.isoformat()
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: getattr(obj, f.name) for f in dataclasses.fields(obj)}
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


class JsonPresenter(Presenter):
    """Writes each result as indented JSON."""

    def __init__(self, stream: TextIO) -> None:
        self.stream = stream

    def write(self, data: Any) -> None:
        try:
            text = json.dumps(data, indent=2, ensure_ascii=False, default=_json_default)
        except (TypeError, ValueError) as exc:
            raise TypeError(f"failed to marshal result to JSON: {exc}") from exc
        for char, escape in _JSON_ESCAPES.items():
            text = text.replace(char, escape)
        print(text, file=self.stream)


class TextPresenter(Presenter):
    """Writes a :class:`ScrapedData` as a human-readable report."""

    def __init__(self, stream: TextIO) -> None:
        self.stream = stream

    def write(self, data: Any) -> None:
        if not isinstance(data, ScrapedData):
            raise TypeError(
                "unexpected type for text presenter: expected ScrapedData, "
                f"got {type(data).__name__}"
            )

        lines = [
            "--- Metadata ---",
            f"URL:          {data.url}",
            f"Status:       {data.status}",
            f"Content-Type: {data.content_type}",
            f"Size:         {data.size} bytes",
            f"Response Time: {format_duration(data.response_time)}",
        ]

        if data.extracted:
            lines += ["", "--- Extracted by CSS Selectors ---"]
            for selector, items in data.extracted.items():
                lines.append(f"Selector: {selector}")
                if not items:
                    lines.append("  (No results found)")
                    continue
                lines.extend("  - " + item.replace("\n", "\n    ") for item in items)

        if data.matches:
            lines += ["", "--- Matched by Regex Patterns ---"]
            for pattern, items in data.matches.items():
                lines.append(f"Pattern: {pattern}")
                if not items:
                    lines.append("  (No matches found)")
                    continue
                lines.extend(f"  - {item}" for item in items)

        print("\n".join(lines) + "\n", file=self.stream)