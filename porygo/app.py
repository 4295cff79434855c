"""Runs a scraping session: fans URLs out to workers and presents results."""

from __future__ import annotations

import functools
import logging
import sys
import threading
from collections.abc import Iterable

from porygo.config import Config
from porygo.presenter import JsonPresenter, Presenter, TextPresenter
from porygo.scraper import Scraper
from porygo.storage import CacheStorage, get_cache_manager
from porygo.workerpool import PoolCancelled, WorkerPool


class App:
    """Ties together configuration, cache, scraper and presenter."""

    def __init__(
        self,
        log: logging.Logger,
        cfg: Config,
        cache: CacheStorage | None = None,
        presenter: Presenter | None = None,
        scraper: Scraper | None = None,
    ) -> None:
        self.log = log
        self.cfg = cfg
        self.cache = cache if cache is not None else get_cache_manager().get_cache()
        if presenter is None:
            if cfg.format == "json":
                presenter = JsonPresenter(sys.stdout)
            else:
                presenter = TextPresenter(sys.stdout)
        self.presenter = presenter
        self.scraper = scraper

    def run(self, urls: Iterable[str], cancel: threading.Event | None = None) -> None:
        """Scrape every URL concurrently, presenting results as they arrive."""
        if cancel is None:
            cancel = threading.Event()
        scraper = self.scraper
        if scraper is None:
            scraper = Scraper(self.cfg, self.log, self.cache)

        concurrency = self.cfg.concurrency
        pool = WorkerPool(concurrency, concurrency)
        pool.run(cancel, concurrency)

        submitter = threading.Thread(
            target=self._submit, args=(pool, scraper, list(urls), cancel), daemon=True
        )
        submitter.start()

        for result in pool.results():
            if result.error is not None:
                self.log.error("Failed to get response: %s", result.error)
                continue
            try:
                self.presenter.write(result.value)
            except Exception as exc:  # one bad result must not stop the run
                self.log.error("Failed to write output: %s", exc)

        submitter.join()

    def _submit(
        self, pool: WorkerPool, scraper: Scraper, urls: list[str], cancel: threading.Event
    ) -> None:
        try:
            for url in urls:
                pool.submit(cancel, functools.partial(scraper.scrape_with_retry, url))
        except PoolCancelled as exc:
            self.log.warning("Shutting down job submission: %s", exc)
        finally:
            pool.close()