"""Command line interface: scrape URLs, manage the cache and the config file."""

from __future__ import annotations

import argparse
import copy
import csv
import re
import signal
import sys
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import TextIO
from urllib.parse import urlsplit

from porygo.app import App
from porygo.config import (
    DEFAULT_CONFIG_PATH,
    FLAG_CONCURRENCY,
    FLAG_CONFIG,
    FLAG_DEBUG,
    FLAG_FORCE,
    FLAG_FORMAT,
    FLAG_HEADERS,
    FLAG_LOG,
    FLAG_PATTERN,
    FLAG_QUIET,
    FLAG_RETRY,
    FLAG_RETRY_DELAY,
    FLAG_RETRY_JITTER,
    FLAG_SELECT,
    FLAG_TIMEOUT,
    FLAG_VERBOSE,
    Config,
    ConfigError,
    ConfigManager,
    parse_duration,
)
from porygo.log import create_logger
from porygo.storage import StorageError, get_cache_manager

_PROG = "porygo"
_DESCRIPTION = (
    "Scrape web pages or APIs from a list of URLs, using a concurrent worker pool.\n"
    "Supports rate limiting, retries, and caching of results to avoid redundant requests.\n"
    "Output can be saved in JSON or CSV format, and verbose logging is available for "
    "progress tracking."
)
_CACHE_DESCRIPTION = (
    "This command provides tools for clearing cached scraping results.\n"
    "This helps avoid unnecessary network requests and enables quick access to past data.\n"
    "Subcommands include 'clear' to remove entries."
)
_CONFIG_DESCRIPTION = (
    "View or update the scraper's configuration settings, such as default concurrency,\n"
    "rate limits, output paths, or user-agent strings.\n"
    "Supports a config file (TOML) to persist settings across sessions."
)

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


class _CsvListAction(argparse.Action):
    """Collects comma separated values; the option may be repeated."""

    def __call__(self, parser, namespace, values, option_string=None):
        current = getattr(namespace, self.dest) or []
        try:
            items = next(csv.reader([values]), [])
        except csv.Error as exc:
            raise argparse.ArgumentError(self, str(exc)) from exc
        setattr(namespace, self.dest, [*current, *items])


def _duration(text: str) -> float:
    try:
        return parse_duration(text)
    except ConfigError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _common_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-l", f"--{FLAG_LOG}", default="", help="file path to write logs")
    common.add_argument(
        "-d", f"--{FLAG_DEBUG}", action="store_true", help="output debug messages"
    )
    common.add_argument(
        "-v", f"--{FLAG_VERBOSE}", action="store_true", help="show logs for each step"
    )
    common.add_argument(f"--{FLAG_CONFIG}", default="", help="specify config file")
    return common


def build_parser() -> argparse.ArgumentParser:
    """Return the parser for the scraping command; unset options parse to None."""
    parser = argparse.ArgumentParser(
        prog=_PROG,
        usage=f"{_PROG} [urls...] [options]\n       {_PROG} {{cache,config}} ...",
        description="Scrape one or more URLs concurrently and save results.\n\n" + _DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        parents=[_common_parser()],
    )
    parser.add_argument("urls", nargs="*", help="URLs to scrape")
    parser.add_argument(
        "-c", f"--{FLAG_CONCURRENCY}", type=int, default=None, help="number of workers"
    )
    parser.add_argument(
        "-t", f"--{FLAG_TIMEOUT}", type=_duration, default=None, help="request timeout per URL"
    )
    parser.add_argument(
        "-r",
        f"--{FLAG_RETRY}",
        type=int,
        default=None,
        help="number of retries per URL on failure",
    )
    parser.add_argument(
        f"--{FLAG_RETRY_DELAY}",
        dest="retry_delay",
        type=_duration,
        default=None,
        help="base delay between retries (exponential backoff applied)",
    )
    parser.add_argument(
        f"--{FLAG_RETRY_JITTER}",
        dest="retry_jitter",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="enable jitter for retry delays",
    )
    parser.add_argument(
        "-f",
        f"--{FLAG_FORCE}",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="ignore cache and scrape fresh data",
    )
    parser.add_argument(
        "-s", f"--{FLAG_SELECT}", action=_CsvListAction, default=None, help="CSS selectors to extract"
    )
    parser.add_argument(
        "-p", f"--{FLAG_PATTERN}", action=_CsvListAction, default=None, help="regex patterns to match"
    )
    parser.add_argument(
        "-o", f"--{FLAG_FORMAT}", default=None, help="output format (json|text), default json"
    )
    parser.add_argument(
        "-q",
        f"--{FLAG_QUIET}",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="only output extracted data",
    )
    parser.add_argument(
        "-H",
        f"--{FLAG_HEADERS}",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="include response headers",
    )
    return parser


def _cache_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=f"{_PROG} cache",
        description="Manage cached scraping results.\n\n" + _CACHE_DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        parents=[_common_parser()],
    )
    commands = parser.add_subparsers(dest="command")
    commands.add_parser(
        "clear",
        help="Clears the local cache of all scraped data.",
        parents=[_common_parser()],
    )
    return parser


def _config_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=f"{_PROG} config",
        description="View and modify CLI configuration.\n\n" + _CONFIG_DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        parents=[_common_parser()],
    )
    commands = parser.add_subparsers(dest="command")
    init = commands.add_parser(
        "init",
        help=f"Initialize a config file with default settings. Defaults to {DEFAULT_CONFIG_PATH}",
        parents=[_common_parser()],
    )
    init.add_argument("filename", nargs="?", default=DEFAULT_CONFIG_PATH)
    return parser


def validate_urls(inputs: Sequence[str]) -> None:
    """Raise ValueError naming the first input that cannot be parsed as a URL."""
    for text in inputs:
        try:
            if _CONTROL_CHARS.search(text) or text.startswith(":"):
                raise ValueError(text)
            parts = urlsplit(text)
            for piece in (parts.netloc, parts.path, parts.fragment):
                if _BAD_ESCAPE.search(piece):
                    raise ValueError(text)
        except ValueError as exc:
            raise ValueError(f"invalid URL: {text}") from exc


def get_urls(args: Sequence[str], stdin: TextIO | None = None) -> list[str]:
    """Return URLs piped on stdin, else those given as arguments."""
    stream = sys.stdin if stdin is None else stdin
    if stream is not None and not stream.isatty():
        try:
            urls = [line.removesuffix("\n").removesuffix("\r") for line in stream]
        except OSError as exc:
            raise OSError(f"error reading stdin: {exc}") from exc
        if urls:
            validate_urls(urls)
            return urls
    if args:
        validate_urls(args)
        return list(args)
    return []


def merge_cli_flags(args: argparse.Namespace, cfg: Config) -> Config:
    """Return a copy of ``cfg`` with every option given on the command line applied."""
    cfg = copy.deepcopy(cfg)
    if args.concurrency is not None:
        cfg.concurrency = args.concurrency
    if args.timeout is not None:
        cfg.timeout = args.timeout
    if args.retry is not None:
        cfg.retry = args.retry
    if args.retry_delay is not None:
        cfg.backoff.base_delay = args.retry_delay
    if args.retry_jitter is not None:
        cfg.backoff.jitter = args.retry_jitter
    if args.force is not None:
        cfg.force = args.force
    if args.select is not None:
        cfg.selectors.select = list(args.select)
    if args.pattern is not None:
        cfg.selectors.pattern = list(args.pattern)
    if args.format is not None:
        cfg.format = args.format.lower()
    if args.quiet is not None:
        cfg.quiet = args.quiet
    if args.headers is not None:
        cfg.headers = args.headers
    return cfg


def setup_config(args: argparse.Namespace) -> Config:
    """Load the configuration file or defaults, apply flags and validate."""
    manager = ConfigManager.default()
    try:
        if args.config:
            cfg = manager.load_from_file(args.config)
        else:
            cfg = manager.load_defaults()
    except ConfigError as exc:
        raise ConfigError(f"failed to load configuration: {exc}") from exc

    cfg = merge_cli_flags(args, cfg)
    try:
        cfg.validate()
    except ConfigError as exc:
        raise ConfigError(f"invalid configuration: {exc}") from exc
    return cfg


@contextmanager
def _interrupt_sets(cancel: threading.Event) -> Iterator[None]:
    try:
        previous = signal.signal(signal.SIGINT, lambda *_: cancel.set())
    except ValueError:  # not on the main thread
        yield
        return
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _run_root(argv: list[str]) -> int:
    parser = build_parser()
    args = parser.parse_intermixed_args(argv)

    try:
        log = create_logger(args.log or None, args.debug, args.verbose)
    except OSError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    try:
        cfg = setup_config(args)
        log.debug("scraping with config : %s", cfg)
        urls = get_urls(args.urls, sys.stdin)
        if not urls:
            parser.print_help()
            return 0
        app = App(log, cfg)
        cancel = threading.Event()
        with _interrupt_sets(cancel):
            app.run(urls, cancel)
    except (ConfigError, ValueError, OSError, StorageError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        for handler in log.handlers:
            handler.flush()
    return 0


def _run_cache(argv: list[str]) -> int:
    parser = _cache_parser()
    args = parser.parse_args(argv)
    if args.command != "clear":
        parser.print_help()
        return 0
    try:
        cache = get_cache_manager().get_cache()
    except StorageError as exc:
        print(f"Error: failed to get cache: {exc}", file=sys.stderr)
        return 1
    try:
        cache.clear()
    except StorageError as exc:
        print(f"Error: failed to clear cache: {exc}", file=sys.stderr)
        return 1
    print("Cache cleared successfully.")
    return 0


def _run_config(argv: list[str]) -> int:
    args = _config_parser().parse_args(argv)
    if args.command == "init":
        try:
            ConfigManager(args.filename).init_defaults()
        except ConfigError as exc:
            print(f"error creating config file: {exc}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line tool and return its exit status."""
    arguments = list(sys.argv[1:] if argv is None else argv)
    if arguments and arguments[0] == "cache":
        return _run_cache(arguments[1:])
    if arguments and arguments[0] == "config":
        return _run_config(arguments[1:])
    return _run_root(arguments)


if __name__ == "__main__":
    raise SystemExit(main())