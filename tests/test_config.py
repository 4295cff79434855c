import pytest

from porygo.config import (
    Config,
    ConfigError,
    ConfigManager,
    defaults,
    format_duration,
    parse_duration,
)


def test_defaults_match_documented_values():
    cfg = defaults()
    assert cfg.concurrency == 5
    assert cfg.timeout == 10
    assert cfg.format == "json"
    assert cfg.retry == 3
    assert cfg.backoff.base_delay == 1
    assert cfg.backoff.jitter is True
    assert cfg.selectors.select == []
    assert cfg.selectors.pattern == []
    assert cfg.database.expiration == 24 * 3600
    assert (cfg.force, cfg.quiet, cfg.headers) == (False, False, False)


def test_defaults_are_independent_copies():
    first = defaults()
    first.selectors.select.append("h1")
    assert defaults().selectors.select == []


@pytest.mark.parametrize(
    "left, right",
    [("1h30m", "90m"), ("1500ms", "1.5s"), ("1s", "1000000000ns"), ("2us", "2\u00b5s")],
)
def test_parse_duration_equivalent_forms(left, right):
    assert parse_duration(left) == pytest.approx(parse_duration(right))


def test_parse_duration_simple_values():
    assert parse_duration("10s") == defaults().timeout
    assert parse_duration("24h") == defaults().database.expiration
    assert parse_duration("0") == 0.0
    assert parse_duration("-1s") == -parse_duration("1s")


@pytest.mark.parametrize("text", ["", "10", "abc", "5 s", "s", "-", "1x"])
def test_parse_duration_rejects_invalid(text):
    with pytest.raises(ConfigError, match="invalid duration"):
        parse_duration(text)


@pytest.mark.parametrize("seconds", [0, 0.5, 1, 10, 90, 3600.25, 86400, 0.000001, 2.5e-8])
def test_format_duration_round_trips(seconds):
    assert parse_duration(format_duration(seconds)) == pytest.approx(seconds)


def test_format_duration_fixed_forms():
    assert format_duration(86400) == "24h0m0s"
    assert format_duration(0) == "0s"


def test_validate_format_is_case_insensitive_and_restricted():
    cfg = defaults()
    cfg.format = "Text"
    cfg.validate()
    cfg.format = "csv"
    with pytest.raises(ConfigError, match="format must be either 'json' or 'text'"):
        cfg.validate()


def test_validate_collects_every_error():
    with pytest.raises(ConfigError) as info:
        Config().validate()
    message = str(info.value)
    assert message.startswith("configuration validation failed: ")
    for expected in (
        "concurrency must be greater than 0",
        "timeout must be greater than 0",
        "format must be either 'json' or 'text'",
        "backoff base_delay must be greater than 0",
    ):
        assert expected in message
    assert "retry count cannot be negative" not in message


def test_validate_negative_retry():
    cfg = defaults()
    cfg.retry = -1
    with pytest.raises(ConfigError, match="retry count cannot be negative"):
        cfg.validate()


def test_to_toml_writes_durations_as_strings():
    text = defaults().to_toml()
    assert 'timeout = "10s"' in text
    assert "[backoff]" in text
    assert str(defaults()) == text


def test_dict_round_trip():
    cfg = defaults()
    cfg.selectors.select = ["a@href"]
    cfg.selectors.pattern = [r"\d+"]
    assert Config.from_dict(cfg.to_dict()) == cfg


def test_init_defaults_and_load_round_trip(tmp_path):
    path = tmp_path / "nested" / "dir" / "config.toml"
    manager = ConfigManager(path)
    manager.init_defaults()
    assert path.exists()
    assert manager.load_from_file(path) == defaults()


def test_save_in_current_directory(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    cfg = defaults()
    cfg.concurrency = 9
    manager = ConfigManager("plain.toml")
    manager.save(cfg)
    assert manager.load_from_file(tmp_path / "plain.toml").concurrency == 9


def test_load_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="failed to read config file"):
        ConfigManager.default().load_from_file(tmp_path / "missing.toml")


def test_load_invalid_toml(tmp_path):
    path = tmp_path / "bad.toml"
    path.write_text("concurrency = = 3\n")
    with pytest.raises(ConfigError, match="failed to parse config file"):
        ConfigManager(path).load_from_file(path)


def test_load_wrong_type(tmp_path):
    path = tmp_path / "bad.toml"
    path.write_text('concurrency = "many"\n')
    with pytest.raises(ConfigError, match="failed to parse config file"):
        ConfigManager(path).load_from_file(path)


def test_partial_file_leaves_zero_values(tmp_path):
    path = tmp_path / "partial.toml"
    path.write_text("concurrency = 7\n[backoff]\njitter = true\n")
    cfg = ConfigManager(path).load_from_file(path)
    assert cfg.concurrency == 7
    assert cfg.backoff.jitter is True
    assert cfg.timeout == 0
    assert cfg.format == ""
    with pytest.raises(ConfigError, match="timeout must be greater than 0"):
        cfg.validate()


def test_integer_duration_is_nanoseconds(tmp_path):
    path = tmp_path / "ns.toml"
    path.write_text("timeout = 10000000000\n")
    cfg = ConfigManager(path).load_from_file(path)
    assert cfg.timeout == defaults().timeout


def test_default_manager_path():
    manager = ConfigManager.default()
    assert manager.config_path.name == "config.toml"
    assert manager.load_defaults() == defaults()