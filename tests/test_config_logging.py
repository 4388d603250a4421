import logging

import pytest

from trial_merger.config import CONFIG_PATH, load_config
from trial_merger.logging import get_logger, get_trial_logger, list_active_loggers


def test_default_config_values():
    cfg = load_config(CONFIG_PATH)
    assert cfg.split_id_length == 17
    assert cfg.alias_delimiter == "|"
    assert cfg.logging.get("file") == "trial_merger.log"


def test_config_overrides(tmp_path):
    path = tmp_path / "custom.yml"
    path.write_text("identity:\n  split_id_length: 20\n  alias_delimiter: ';'\n", encoding="utf-8")
    cfg = load_config(path)
    assert cfg.split_id_length == 20
    assert cfg.alias_delimiter == ";"
    assert cfg.sources == []


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.yml")


def test_short_names_live_under_project_namespace():
    log = get_logger("some_module")
    assert log.name == "trial_merger.some_module"
    assert "trial_merger.some_module" in list_active_loggers()


def test_trial_logger_prefixes_trial_id(caplog):
    adapter = get_trial_logger("adapter_test", "NCT00000001")
    base = logging.getLogger("trial_merger")
    base.addHandler(caplog.handler)
    try:
        with caplog.at_level(logging.WARNING, logger="trial_merger"):
            adapter.warning("something odd")
            adapter.bind("2020-001234-56")
            adapter.warning("again")
    finally:
        base.removeHandler(caplog.handler)

    messages = [r.getMessage() for r in caplog.records]
    assert "[NCT00000001] something odd" in messages
    assert "[2020-001234-56] again" in messages
