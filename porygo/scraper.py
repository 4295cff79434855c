"""HTTP fetching with retries and caching, plus CSS and regex extraction."""

from __future__ import annotations

import logging
import random
import re
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import requests
from bs4 import BeautifulSoup

from porygo.config import Config, format_duration
from porygo.storage import CacheEntry, CacheStorage, NotFoundError, StorageError
from porygo.workerpool import Result

_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/58.0.3029.110 Safari/537.3"
)
_BACKOFF_MULTIPLIER = 2.0
_MIN_MAX_DELAY = 30.0
_MIME_CHARS = r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+"
_MEDIA_TYPE = re.compile(rf"{_MIME_CHARS}(?:/{_MIME_CHARS})?")


class ScrapeError(Exception):
    """A URL could not be fetched or its body could not be processed."""


@dataclass
class ScrapedData:
    """What was learned from one successful request. Times are in seconds."""

    url: str
    status: int
    title: str = ""
    content_type: str = ""
    size: int = 0
    response_time: float = 0.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    extracted: dict[str, list[str]] | None = None
    matches: dict[str, list[str]] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-ready mapping; empty optional fields are left out."""
        out: dict[str, Any] = {"url": self.url, "status": self.status}
        if self.title:
            out["title"] = self.title
        if self.content_type:
            out["content_type"] = self.content_type
        if self.size:
            out["size"] = self.size
        out["response_time"] = round(self.response_time * 1_000_000_000)
        out["timestamp"] = self.timestamp.isoformat()
        if self.extracted:
            out["extracted"] = {key: list(items) for key, items in self.extracted.items()}
        if self.matches:
            out["matches"] = {key: list(items) for key, items in self.matches.items()}
        return out


def _content_length(headers: Mapping[str, str]) -> int:
    try:
        return int(headers.get("Content-Length", ""))
    except (TypeError, ValueError):
        return -1


def _media_type(content_type: str) -> str:
    head = content_type.split(";", 1)[0].strip().lower()
    if not head:
        raise ScrapeError("cannot parse content type: no media type")
    if not _MEDIA_TYPE.fullmatch(head):
        raise ScrapeError(f"cannot parse content type: invalid media type {head!r}")
    return head


class Scraper:
    """Fetches URLs, applying the configured selectors, patterns and cache."""

    def __init__(
        self,
        cfg: Config,
        log: logging.Logger | None = None,
        cache: CacheStorage | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.cfg = cfg
        self.log = log if log is not None else logging.getLogger("porygo")
        self.cache = cache
        self.session = session if session is not None else requests.Session()

    def scrape_with_retry(self, url: str) -> Result:
        """Return a cached entry when fresh, otherwise scrape with retries."""
        if not self.cfg.force:
            cached = self._check_cache(url)
            if cached is not None:
                return cached

        result = self._perform_with_retries(url)
        if result.error is not None:
            self.log.error("Failed to scrape %s: %s", url, result.error)
            return result

        value = result.value
        if isinstance(value, (bytes, bytearray)):
            data = bytes(value)
        elif isinstance(value, str):
            data = value.encode("utf-8")
        else:
            self.log.warning("Unsupported result type for %s: %s", url, type(value).__name__)
            data = b""

        if data:
            self._store(url, data)
        return result

    def _perform_with_retries(self, url: str) -> Result:
        retries = self.cfg.retry
        last_error: Exception | None = None
        self.log.debug("Starting scrape retry loop for URL %s with %d retries.", url, retries)

        for attempt in range(1, retries + 1):
            self.log.info("Attempting to scrape URL %s (attempt %d of %d)", url, attempt, retries)
            try:
                data = self.scrape(url)
            except ScrapeError as exc:
                last_error = exc
                self.log.warning("Scraping attempt %d for URL %s failed: %s", attempt, url, exc)
            else:
                self.log.info("Successfully scraped URL %s.", url)
                return Result(value=data)

            if attempt < retries:
                delay = self.calculate_backoff_delay(attempt - 1)
                self.log.info("Waiting %s before the next retry.", format_duration(delay))
                time.sleep(delay)

        reason = str(last_error) if last_error is not None else "no attempts were made"
        return Result(error=ScrapeError(f"all attempts failed: {reason}"))

    def scrape(self, url: str) -> ScrapedData:
        """Fetch ``url`` once and process its body; raise :class:`ScrapeError` on failure."""
        start = time.monotonic()
        try:
            response = self.session.get(
                url,
                headers={"User-Agent": _USER_AGENT},
                timeout=self.cfg.timeout,
                stream=True,
            )
        except requests.RequestException as exc:
            raise ScrapeError(str(exc)) from exc

        with response:
            elapsed = time.monotonic() - start
            finished = datetime.now(timezone.utc)
            if not 200 <= response.status_code < 300:
                raise ScrapeError(f"request failed with status code: {response.status_code}")

            data = ScrapedData(
                url=url,
                status=response.status_code,
                title=response.headers.get("Title", ""),
                content_type=response.headers.get("Content-Type", ""),
                size=_content_length(response.headers),
                response_time=elapsed,
                timestamp=finished,
            )
            try:
                body = response.content
            except requests.RequestException as exc:
                raise ScrapeError(str(exc)) from exc

        self.process_body(data, body)
        return data

    def process_body(self, data: ScrapedData, body: bytes) -> None:
        """Fill ``data`` with selector results, then regex matches."""
        selectors = self.cfg.selectors.select
        patterns = self.cfg.selectors.pattern
        texts = [body.decode("utf-8", errors="replace")]

        if selectors:
            media_type = _media_type(data.content_type)
            if media_type != "text/html":
                raise ScrapeError(f"CSS selectors require HTML, got {media_type}")
            data.extracted, texts = self.apply_selectors(body, selectors)

        if patterns:
            data.matches = self.apply_regex_patterns(texts, patterns)

    def apply_selectors(
        self, body: bytes | str, selectors: list[str]
    ) -> tuple[dict[str, list[str]], list[str]]:
        """Run each selector against the document.

        A selector of the form ``css@attr`` collects that attribute, otherwise
        the trimmed text of each match. Returns results per selector and all
        values in order.
        """
        try:
            soup = BeautifulSoup(body, "html.parser", multi_valued_attributes=None)
        except Exception as exc:  # the parser may reject arbitrary bytes
            self.log.error("Cannot create DOM document from response body: %s", exc)
            return {}, []

        results: dict[str, list[str]] = {}
        all_texts: list[str] = []
        for selector in selectors:
            css, _, attr = selector.partition("@")
            try:
                elements = soup.select(css)
            except Exception as exc:  # invalid selector matches nothing
                self.log.warning("Invalid CSS selector '%s': %s", css, exc)
                elements = []
            if attr:
                values = [str(element.get(attr) or "") for element in elements]
            else:
                values = [element.get_text().strip() for element in elements]
            results[selector] = values
            all_texts.extend(values)
        return results, all_texts

    def apply_regex_patterns(self, texts: list[str], patterns: list[str]) -> dict[str, list[str]]:
        """Collect every match of each valid pattern across ``texts``."""
        results: dict[str, list[str]] = {}
        for pattern in patterns:
            try:
                regex = re.compile(pattern)
            except re.error as exc:
                self.log.warning("Invalid regex pattern '%s', skipping: %s", pattern, exc)
                continue
            results[pattern] = [
                match.group(0) for text in texts for match in regex.finditer(text)
            ]
        return results

    def calculate_backoff_delay(self, attempt: int) -> float:
        """Exponential delay in seconds, capped at max(30s, 16 × base), optionally jittered."""
        base = self.cfg.backoff.base_delay
        delay = base * _BACKOFF_MULTIPLIER**attempt
        max_delay = max(_MIN_MAX_DELAY, base * 16)
        delay = min(delay, max_delay)
        if self.cfg.backoff.jitter:
            delay = random.random() * delay
        return delay

    def _check_cache(self, url: str) -> Result | None:
        if self.cache is None:
            return None
        try:
            cached = self.cache.get(url)
        except NotFoundError:
            return None
        except StorageError as exc:
            self.log.error("Failed to retrieve %s from cache: %s", url, exc)
            return None

        if datetime.now(timezone.utc) > cached.expiration_time:
            self._discard(url)
            return None

        self.log.debug("Using cached data for %s, not expired yet", url)
        return Result(value=cached)

    def _store(self, url: str, data: bytes) -> None:
        if self.cache is None:
            return
        self.log.debug("Adding %s to cache...", url)
        entry = CacheEntry(
            value=data,
            expiration_time=datetime.now(timezone.utc)
            + timedelta(seconds=self.cfg.database.expiration),
        )
        try:
            self.cache.set(url, entry)
        except StorageError as exc:
            self.log.error("Failed to store %s in cache: %s", url, exc)
        else:
            self.log.debug("Cache put operation successful.")

    def _discard(self, url: str) -> None:
        self.log.debug("Cached data for %s is old, discarding...", url)
        try:
            self.cache.delete(url)
        except StorageError as exc:
            self.log.error("Failed to delete %s from cache: %s", url, exc)