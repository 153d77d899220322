"""End-to-end tests for CLI workflows"""

import logging

import pytest
from typer.testing import CliRunner

from ordinals_data.cli import main as cli_main
from ordinals_data.service import BitcoinService

from fixtures.upstream import INSCRIPTION_ID

runner = CliRunner()


@pytest.fixture(autouse=True)
def restore_logging():
    """The CLI callback reconfigures the root logger"""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    for name in ("ORDINALS_ENV", "ORDINALS_API_BASE_URL", "ORDINALS_CONFIG_PATH"):
        monkeypatch.delenv(name, raising=False)
    return tmp_path / "config.toml"


@pytest.fixture
def fake_service(monkeypatch, test_config, block_upstream):
    """Route every CLI command to the fake upstream"""

    class ServiceFactory:
        @staticmethod
        def from_config(config=None):
            return BitcoinService.from_config(test_config, adapter=block_upstream)

    monkeypatch.setattr(cli_main, "BitcoinService", ServiceFactory)
    return block_upstream


def test_cli_help():
    """Test CLI help command"""
    result = runner.invoke(cli_main.app, ["--help"])
    assert result.exit_code == 0
    assert "block" in result.output
    assert "inscription" in result.output


def test_block_command(fake_service, config_path):
    result = runner.invoke(cli_main.app, ["block", "800000", "800001", "-c", str(config_path)])

    assert result.exit_code == 0, result.output
    assert "800000" in result.output
    assert "800001" in result.output
    assert sorted(fake_service.calls) == ["block:800000", "block:800001"]


def test_block_command_invalid_height(fake_service, config_path):
    """Test an out-of-range height fails before any upstream call"""
    result = runner.invoke(cli_main.app, ["block", "100", "-c", str(config_path)])

    assert result.exit_code == 1
    assert "Error (fatal)" in result.output
    assert fake_service.calls == []


def test_height_command(fake_service, config_path):
    result = runner.invoke(cli_main.app, ["height", "-c", str(config_path)])

    assert result.exit_code == 0
    assert "850000" in result.output


def test_invalid_config_reported(fake_service, config_path):
    """Test a bad config file exits with a message instead of a traceback"""
    config_path.write_text("[retry]\nmax_attempts = 0\n")

    result = runner.invoke(cli_main.app, ["height", "-c", str(config_path)])

    assert result.exit_code == 1
    assert "Configuration error" in result.output
    assert fake_service.calls == []


def test_inscription_command(fake_service, config_path):
    result = runner.invoke(cli_main.app, ["inscription", INSCRIPTION_ID, "-c", str(config_path)])

    assert result.exit_code == 0, result.output
    assert "hello ordinals" in result.output


def test_stats_command(fake_service, config_path):
    result = runner.invoke(cli_main.app, ["stats", "800000", "-c", str(config_path)])

    assert result.exit_code == 0, result.output
    assert '"total_requests": 1' in result.output
    assert '"status": "closed"' in result.output


def test_config_init_and_show(config_path):
    """Test writing and displaying the configuration file"""
    result = runner.invoke(cli_main.app, ["config", "--init", "-c", str(config_path)])
    assert result.exit_code == 0
    assert config_path.exists()

    result = runner.invoke(cli_main.app, ["config", "-c", str(config_path)])
    assert result.exit_code == 0
    assert "min_block_height" in result.output
    assert "https://ordinals.com" in result.output
