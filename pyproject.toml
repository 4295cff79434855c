[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "porygo"
version = "0.1.0"
description = "Scrape one or more URLs concurrently, with retries, a response cache and CSS/regex extraction"
requires-python = ">=3.11"
keywords = ["scraper", "crawler", "css-selectors", "regex", "cli", "worker-pool"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: Indexing/Search",
]
dependencies = [
    "requests",
    "beautifulsoup4",
    "tomli-w",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[project.scripts]
porygo = "porygo.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["porygo"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
