import logging

import pytest

from porygo.log import create_logger


def test_debug_level_writes_debug_messages(tmp_path):
    path = tmp_path / "run.log"
    logger = create_logger(path, debug=True, verbose=False)
    logger.debug("debug detail %s", "here")
    assert logger.level == logging.DEBUG
    assert "debug detail here" in path.read_text(encoding="utf-8")


def test_verbose_level_shows_info_but_not_debug(tmp_path):
    path = tmp_path / "run.log"
    logger = create_logger(path, debug=False, verbose=True)
    logger.debug("hidden debug")
    logger.info("visible info")
    content = path.read_text(encoding="utf-8")
    assert logger.level == logging.INFO
    assert "visible info" in content
    assert "hidden debug" not in content


def test_default_level_only_warnings_and_errors(tmp_path):
    path = tmp_path / "run.log"
    logger = create_logger(path, debug=False, verbose=False)
    logger.info("quiet info")
    logger.warning("loud warning")
    logger.error("loud error")
    content = path.read_text(encoding="utf-8")
    assert logger.level == logging.WARNING
    assert "quiet info" not in content
    assert "loud warning" in content
    assert "loud error" in content


def test_debug_takes_precedence_over_verbose(tmp_path):
    logger = create_logger(tmp_path / "run.log", debug=True, verbose=True)
    assert logger.level == logging.DEBUG


def test_without_filename_writes_to_stderr(capsys):
    logger = create_logger(None, debug=False, verbose=False)
    logger.warning("to stderr")
    captured = capsys.readouterr()
    assert "to stderr" in captured.err
    assert captured.out == ""


def test_recreating_logger_keeps_a_single_handler(tmp_path):
    create_logger(tmp_path / "a.log", debug=False, verbose=False)
    logger = create_logger(tmp_path / "b.log", debug=False, verbose=False)
    logger.warning("only once")
    assert len(logger.handlers) == 1
    assert (tmp_path / "b.log").read_text(encoding="utf-8").count("only once") == 1
    assert "only once" not in (tmp_path / "a.log").read_text(encoding="utf-8")


def test_unwritable_path_raises(tmp_path):
    with pytest.raises(OSError, match="failed to initialize logger"):
        create_logger(tmp_path / "missing" / "run.log", debug=False, verbose=False)