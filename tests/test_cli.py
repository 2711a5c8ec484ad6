"""
Tests for the command line entry point.
"""

import json
import logging

import pytest

from frpinstall import index
from frpinstall.config import DEFAULT_MODULE_CONFIG
from frpinstall.errors import ChecksumMismatch, VersionResolutionFailed
from frpinstall.utils.index import LOGGER_NAME


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True


@pytest.fixture
def settings_file(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps(DEFAULT_MODULE_CONFIG))
    return str(path)


class StubOrchestrator:

    def __init__(self, error=None, update_available=False):
        self.error = error
        self.update_available = update_available

    def run(self):
        if self.error:
            raise self.error

    def check(self):
        if self.error:
            raise self.error
        return {"success": True, "update_available": self.update_available}


def test_build_config_applies_overrides(settings_file):
    args = index.build_parser().parse_args([
        "--config-file", settings_file, "install",
        "--repo", "acme/widget", "--install-dir", "/opt/bin", "--version", "v1.2.3", "--no-service"
    ])
    config = index.build_config(args)
    assert config.repository == "acme/widget"
    assert config.install_dir == "/opt/bin"
    assert config.config_dir == "/etc/frp"
    assert config.pinned_version == "v1.2.3"
    assert config.register_service is False
    assert config.require_root is True


@pytest.mark.parametrize("argv, debug", [
    (["install", "--debug"], True),
    (["--debug", "install"], True),
    (["check", "--debug"], True),
    (["show-config"], False),
])
def test_debug_flag_position(argv, debug):
    assert index.build_parser().parse_args(argv).debug is debug


def test_check_does_not_require_root(settings_file):
    args = index.build_parser().parse_args(["--config-file", settings_file, "check"])
    assert index.build_config(args).require_root is False


def test_show_config(settings_file, capsys):
    assert index.main(["--config-file", settings_file, "show-config"]) == index.EXIT_OK
    assert "repository: fatedier/frp" in capsys.readouterr().out


def test_invalid_repository(settings_file, capsys):
    code = index.main(["--config-file", settings_file, "install", "--repo", "not-a-repo"])
    assert code == index.EXIT_FAILURE
    assert "[config]" in capsys.readouterr().err


def test_install_failure_names_stage(config, capsys):
    error = ChecksumMismatch("widget.tar.gz", "a" * 64, "b" * 64)
    assert index.run_install(config, StubOrchestrator(error)) == index.EXIT_FAILURE
    err = capsys.readouterr().err
    assert "[verify]" in err
    assert "CHECKSUM MISMATCH" in err


def test_install_success(config):
    assert index.run_install(config, StubOrchestrator()) == index.EXIT_OK


@pytest.mark.parametrize("update_available, expected", [
    (True, index.EXIT_UPDATE_AVAILABLE),
    (False, index.EXIT_OK),
])
def test_check_exit_codes(config, update_available, expected):
    orchestrator = StubOrchestrator(update_available=update_available)
    assert index.run_check(config, orchestrator) == expected


def test_check_failure(config, capsys):
    orchestrator = StubOrchestrator(VersionResolutionFailed("rate limited"))
    assert index.run_check(config, orchestrator) == index.EXIT_FAILURE
    assert "[resolve] rate limited" in capsys.readouterr().err


def test_keyboard_interrupt(settings_file, monkeypatch):
    def interrupted(config):
        raise KeyboardInterrupt

    monkeypatch.setattr(index, "run_install", interrupted)
    assert index.main(["--config-file", settings_file, "install"]) == index.EXIT_INTERRUPTED
