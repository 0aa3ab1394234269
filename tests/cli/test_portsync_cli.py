"""Tests for the portsync command line interface."""

from __future__ import annotations

import ipaddress
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from portsync.cli.main import build_loop, cli
from portsync.cli.verbosity import VerbosityManager
from portsync.config.config import ConfigManager
from portsync.models import LogLevel
from portsync.nat.exceptions import NATPMPError
from portsync.nat.natpmp import PortMapping
from portsync.renewal import IterationResult
from portsync.utils.exceptions import AddressQueryError

pytestmark = [pytest.mark.unit, pytest.mark.cli]


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def gateway_env(monkeypatch):
    monkeypatch.setenv("NATPMP_GATEWAY", "10.2.0.1")


class TestConfigurationErrors:
    """Startup failures exit non-zero with a message."""

    def test_run_without_gateway(self, runner):
        result = runner.invoke(cli, ["run"])

        assert result.exit_code == 1
        assert "You must specify NATPMP_GATEWAY" in result.output

    def test_once_without_gateway(self, runner):
        result = runner.invoke(cli, ["once"])

        assert result.exit_code == 1
        assert "NATPMP_GATEWAY" in result.output

    def test_invalid_gateway(self, runner, monkeypatch):
        monkeypatch.setenv("NATPMP_GATEWAY", "gateway.lan")

        result = runner.invoke(cli, ["run"])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.output

    def test_missing_config_file(self, runner, tmp_path):
        result = runner.invoke(cli, ["-c", str(tmp_path / "nope.toml"), "run"])

        assert result.exit_code == 2


class TestBuildLoop:
    """Wiring of configuration into the renewal loop."""

    def test_build_loop_uses_config(self, monkeypatch):
        monkeypatch.setenv("NATPMP_GATEWAY", "10.2.0.1")
        monkeypatch.setenv("PORTSYNC_LEASE_LIFETIME", "60")
        monkeypatch.setenv("PORTSYNC_DELUGE_URL", "http://nas:8112")
        monkeypatch.setenv("PORTSYNC_MAX_TIMEOUT", "20")

        loop = build_loop(ConfigManager(), show_tracebacks=True)

        assert loop.gateway == ipaddress.IPv4Address("10.2.0.1")
        assert loop.mapper.lifetime == 60
        assert loop.sink.client.endpoint == "http://nas:8112/json"
        assert loop.schedule.max_timeout == 20.0
        assert loop.schedule.current == 0.25
        assert loop.show_tracebacks is True


class TestRunCommand:
    def test_run_starts_loop(self, runner, gateway_env):
        with patch(
            "portsync.cli.main.RenewalLoop.run", new_callable=AsyncMock
        ) as mock_run:
            result = runner.invoke(cli, ["run"])

        assert result.exit_code == 0, result.output
        mock_run.assert_awaited_once()


class TestOnceCommand:
    def test_once_success(self, runner, gateway_env):
        outcome = IterationResult(
            success=True,
            timeout_used=0.25,
            next_timeout=0.25,
            sleep_for=180.0,
            mapping=PortMapping(0, 51413, 360),
        )
        with patch(
            "portsync.cli.main.RenewalLoop.run_once",
            new_callable=AsyncMock,
            return_value=outcome,
        ):
            result = runner.invoke(cli, ["once"])

        assert result.exit_code == 0, result.output
        assert "51413" in result.output
        assert "180.000s" in result.output

    def test_once_failure_exits_non_zero(self, runner, gateway_env):
        outcome = IterationResult(
            success=False,
            timeout_used=0.25,
            next_timeout=0.5,
            sleep_for=0.0,
            error=AddressQueryError("could not get external address"),
        )
        with patch(
            "portsync.cli.main.RenewalLoop.run_once",
            new_callable=AsyncMock,
            return_value=outcome,
        ):
            result = runner.invoke(cli, ["once"])

        assert result.exit_code == 1
        assert "address_query_failed" in result.output
        assert "AddressQueryError" not in result.output

    def test_once_failure_traceback_when_debugging(self, runner, gateway_env):
        outcome = IterationResult(
            success=False,
            timeout_used=0.25,
            next_timeout=0.5,
            sleep_for=0.0,
            error=AddressQueryError("could not get external address"),
        )
        with patch(
            "portsync.cli.main.RenewalLoop.run_once",
            new_callable=AsyncMock,
            return_value=outcome,
        ):
            result = runner.invoke(cli, ["-vv", "once"])

        assert result.exit_code == 1
        assert "AddressQueryError" in result.output


class TestExternalIPCommand:
    def test_external_ip(self, runner, gateway_env):
        client = MagicMock()
        client.get_external_ip = AsyncMock(
            return_value=ipaddress.IPv4Address("203.0.113.7")
        )
        with patch("portsync.cli.main.NATPMPClient", return_value=client) as cls:
            result = runner.invoke(cli, ["external-ip", "--timeout", "1.5"])

        assert result.exit_code == 0, result.output
        assert "203.0.113.7" in result.output
        cls.assert_called_once_with(ipaddress.IPv4Address("10.2.0.1"), timeout=1.5)

    def test_external_ip_failure(self, runner, gateway_env):
        client = MagicMock()
        client.get_external_ip = AsyncMock(
            side_effect=NATPMPError("Timeout getting external IP")
        )
        with patch("portsync.cli.main.NATPMPClient", return_value=client):
            result = runner.invoke(cli, ["external-ip"])

        assert result.exit_code == 1
        assert "Timeout getting external IP" in result.output

    def test_external_ip_without_gateway(self, runner):
        result = runner.invoke(cli, ["external-ip"])

        assert result.exit_code == 1
        assert "NATPMP_GATEWAY" in result.output


class TestVerbosity:
    @pytest.mark.parametrize(
        ("count", "configured", "expected"),
        [
            (0, LogLevel.WARNING, LogLevel.WARNING),
            (1, LogLevel.WARNING, LogLevel.INFO),
            (2, LogLevel.INFO, LogLevel.DEBUG),
            (1, LogLevel.DEBUG, LogLevel.DEBUG),
            (7, LogLevel.ERROR, LogLevel.DEBUG),
        ],
    )
    def test_log_level(self, count, configured, expected):
        assert VerbosityManager.from_count(count).log_level(configured) is expected

    def test_stack_traces_only_at_trace(self):
        assert not VerbosityManager(2).should_show_stack_trace()
        assert VerbosityManager(3).should_show_stack_trace()
        assert VerbosityManager(2).is_debug()
