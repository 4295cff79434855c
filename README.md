# porygo

A command-line tool that fetches web pages or APIs from a list of URLs with a
pool of worker threads. Each URL is fetched with a timeout and retried with
exponential backoff. Data can be pulled out of the responses with CSS selectors
and regular expressions, and each result is printed as JSON or as a plain-text
report.

## Installation

```
pip install .
```

This installs the `porygo` command.

## Usage

Scrape one or more URLs given as arguments:

```
porygo https://example.com https://example.org
```

Or pipe URLs in, one per line:

```
cat urls.txt | porygo
```

When standard input is not a terminal and holds at least one line, those lines
are used as the URLs and the arguments are ignored. With no URLs at all, the
help text is printed. An input that cannot be parsed as a URL stops the run
with `invalid URL: ...`.

Results are printed in the order they finish. A URL that fails after all its
attempts is logged as an error and the run goes on with the others. Ctrl-C
stops the submission of further URLs.

### Options

| Flag | Description |
| --- | --- |
| `-c, --concurrency N` | number of workers (default 5) |
| `-t, --timeout DUR` | request timeout per URL (default `10s`) |
| `-r, --retry N` | number of attempts per URL (default 3) |
| `--retry-delay DUR` | base delay between attempts (default `1s`) |
| `--retry-jitter`, `--no-retry-jitter` | randomise retry delays (on by default) |
| `-f, --force`, `--no-force` | skip the cache lookup and always fetch |
| `-s, --select SEL` | CSS selectors to extract; `sel@attr` extracts an attribute |
| `-p, --pattern RE` | regular expressions to match |
| `-o, --format FMT` | output format, `json` or `text` (default `json`) |
| `-q, --quiet`, `--no-quiet` | stored in the configuration; see *Limitations* |
| `-H, --headers`, `--no-headers` | stored in the configuration; see *Limitations* |
| `--config FILE` | load settings from a TOML file |
| `-l, --log FILE` | write logs to a file instead of standard error |
| `-v, --verbose` | log each step (info level) |
| `-d, --debug` | output debug messages |

Without `-v` or `-d` only warnings and errors are logged.

Durations are written like `500ms`, `10s`, `1m30s` or `24h`.

The delay before attempt *n + 1* is `base × 2^(n-1)`, capped at the larger of
30 seconds and 16 × base. With jitter on, a random fraction of that delay is
used.

### Extraction

Selectors and patterns accept comma-separated lists and may be repeated:

```
porygo -s "h1,a@href" -p "https?://[^\"]+" https://example.com
```

A selector collects the stripped text of every matching element; `css@attr`
collects that attribute instead. When selectors are given the response's
`Content-Type` must be `text/html`, otherwise the attempt fails, and the
patterns then run over the extracted values. Without selectors the patterns
run over the whole body. An invalid pattern is skipped with a warning.

### Output

In JSON format each result is an indented object with `url`, `status`,
`response_time` (nanoseconds) and `timestamp`, plus `title`, `content_type`,
`size`, `extracted` and `matches` when they are not empty. In text format each
result is a report with a metadata section followed by the selector and
pattern results.

### Configuration file

Write a config file with the default settings:

```
porygo config init
porygo config init my-config.toml
```

Then use it, overriding any value on the command line:

```
porygo --config my-config.toml -c 10 https://example.com
```

A file is only read when `--config` is given; otherwise the built-in defaults
apply. Options set on the command line always take precedence over the file.
Keys missing from the file take zero values, so a file should set every value
that validation requires (`concurrency`, `timeout`, `format`,
`backoff.base_delay`). Durations in the file are strings such as `"10s"`, or
integers counting nanoseconds. An invalid configuration stops the run with a
message listing every problem.

### Cache

The cache is an SQLite file at `$XDG_CACHE_HOME/porygo/cache.db`, or else
`~/.cache/porygo/cache.db` (`~/Library/Caches/porygo` on macOS,
`~/AppData/Local/porygo` on Windows). Entries past their expiration
(`[database] expiration`, 24 hours by default) are discarded on lookup. To
empty it:

```
porygo cache clear
```

## Limitations

- `--quiet` and `--headers` are accepted and validated as part of the
  configuration, but they do not change what is printed.
- The scraper looks a URL up in the cache before fetching it, but it only
  stores results that are raw bytes or text. Scrape results are structured
  records, so they are not written to the cache and each run fetches the URLs
  again.
- `porygo config` offers only `init`; there is no command to view or edit
  settings.
- There is no rate limiting, and output is only JSON or text.

## Development

```
pip install -e ".[test]"
pytest
```