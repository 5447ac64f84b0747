"""Tests for configuration loading, logging setup and the headless entry point."""

import json
import logging

import pytest

from config import SimulationConfig
from errors import DegenerateConfiguration
from main import main
from utils import load_config, load_simulation_config, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def config_file(tmp_path):
    def write(content):
        path = tmp_path / "config.json"
        if isinstance(content, str):
            path.write_text(content, encoding="utf-8")
        else:
            path.write_text(json.dumps(content), encoding="utf-8")
        return str(path)
    return write


HEADLESS_CONFIG = {
    "logging": {"level": "WARNING", "log_file": None},
    "simulation_parameters": {
        "seed": 1,
        "particle_types": 2,
        "particle_count": 40,
        "world_width": 120,
        "world_height": 80,
        "min_distance_range": [2, 5],
        "max_distance_range": [15, 25],
    },
    "run_control": {"headless": True, "max_steps": 3, "log_throttle_steps": 1, "profile": False},
}


class TestLoadConfig:

    def test_loads_json_object(self, config_file):
        assert load_config(config_file({"a": 1})) == {"a": 1}

    def test_missing_file(self, tmp_path, caplog):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "missing.json"))
        assert "not found" in caplog.text

    def test_invalid_json(self, config_file):
        with pytest.raises(json.JSONDecodeError):
            load_config(config_file("{not json"))

    def test_non_object_rejected(self, config_file):
        with pytest.raises(ValueError):
            load_config(config_file("[1, 2, 3]"))

    def test_load_simulation_config(self, config_file):
        raw, sim_config = load_simulation_config(config_file(HEADLESS_CONFIG))
        assert raw["run_control"]["max_steps"] == 3
        assert isinstance(sim_config, SimulationConfig)
        assert sim_config.particle_count == 40

    def test_load_simulation_config_rejects_bad_world(self, config_file):
        bad = dict(HEADLESS_CONFIG, simulation_parameters={"world_width": 0})
        with pytest.raises(DegenerateConfiguration):
            load_simulation_config(config_file(bad))


class TestSetupLogging:

    def test_file_handler_written(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "logs" / "run.log"
        setup_logging({"logging": {"level": "debug", "log_file": str(log_file)}})
        logging.info("hello from the test")
        for handler in restore_root_logger.handlers:
            handler.flush()
        assert restore_root_logger.level == logging.DEBUG
        assert "hello from the test" in log_file.read_text(encoding="utf-8")

    def test_null_log_file_disables_file_handler(self, restore_root_logger):
        setup_logging({"logging": {"log_file": None}})
        assert len(restore_root_logger.handlers) == 1
        assert isinstance(restore_root_logger.handlers[0], logging.StreamHandler)


class TestMain:

    def test_headless_run(self, config_file, restore_root_logger):
        assert main([config_file(HEADLESS_CONFIG)]) == 0

    def test_unreadable_config_returns_error(self, tmp_path, capsys):
        assert main([str(tmp_path / "missing.json")]) == 1
        assert "FATAL" in capsys.readouterr().out
