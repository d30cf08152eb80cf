"""Tests for the command line interface."""

import logging

import pytest
from typer.testing import CliRunner

from ingress_dns import cli
from ingress_dns.cli import app
from ingress_dns.controller import Controller
from ingress_dns.converger import DNSConverger
from ingress_dns.exceptions import EventStreamError, NomadError
from ingress_dns.logging_config import setup_logging
from ingress_dns.metrics import ControllerMetrics
from ingress_dns.resolver import NodeSetResolver

runner = CliRunner()

NAME = "ingress.example.com"
UNSET_ENV = {
    "NOMAD_TOKEN": "",
    "CLOUDFLARE_API_TOKEN": "",
    "CLOUDFLARE_ZONE_ID": "",
    "DNS_RECORD_NAME": "",
}


@pytest.fixture
def wired(monkeypatch, fake_nomad, fake_cloudflare):
    """Route the CLI to in-memory Nomad and Cloudflare stand-ins."""
    fake_nomad.add_node("n1", address="1.1.1.1", name="edge-1")
    fake_nomad.add_allocation("n1")
    fake_cloudflare.seed(NAME, "2.2.2.2", record_id="stale")
    built = []

    def build(config, metrics=None):
        controller = Controller(
            NodeSetResolver(fake_nomad, config.traefik_job_name),
            DNSConverger(fake_cloudflare, config.dns_record_name),
            metrics or ControllerMetrics(),
            poll_interval=0.01,
        )
        built.append(controller)
        return controller

    monkeypatch.setattr(cli, "_build_controller", build)
    return fake_nomad, fake_cloudflare, built


def test_help():
    result = runner.invoke(app, ["--help"])

    assert result.exit_code == 0
    assert "run" in result.stdout
    assert "sync" in result.stdout
    assert "nodes" in result.stdout


def test_version():
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert "ingress-dns version 0.1.0" in result.stdout


@pytest.mark.parametrize("command", [["run"], ["sync"], ["sync", "--dry-run"], ["nodes"]])
def test_missing_configuration_exits_non_zero(command):
    result = runner.invoke(app, command, env=UNSET_ENV)

    assert result.exit_code == 1
    assert "Configuration Error" in result.stdout
    assert "NOMAD_TOKEN" in result.stdout


def test_sync_dry_run(wired, sample_env):
    _, fake_cloudflare, built = wired

    result = runner.invoke(app, ["sync", "--dry-run"], env=sample_env)

    assert result.exit_code == 0
    assert "DRY RUN" in result.stdout
    assert "1 records checked" in result.stdout
    assert "1.1.1.1" in result.stdout
    assert fake_cloudflare.contents() == {"2.2.2.2"}
    assert built[0].last_outcome.trigger == "manual"
    assert not built[0].metrics.ready


def test_sync_dry_run_nomad_failure(wired, sample_env, monkeypatch):
    fake_nomad, _, built = wired
    resolve = NodeSetResolver.resolve
    calls = []

    def fail_on_second_read(self):
        calls.append(1)
        if len(calls) > 1:
            fake_nomad.list_error = NomadError("Failed to reach Nomad")
        return resolve(self)

    monkeypatch.setattr(NodeSetResolver, "resolve", fail_on_second_read)

    result = runner.invoke(app, ["sync", "--dry-run"], env=sample_env)

    assert result.exit_code == 1
    assert "Sync failed" in result.stdout


def test_log_level_from_environment(wired, sample_env):
    result = runner.invoke(app, ["nodes"], env={**sample_env, "LOG_LEVEL": "debug"})

    assert result.exit_code == 0
    assert logging.getLogger().level == logging.DEBUG
    setup_logging(level="INFO")


def test_log_level_option_overrides_environment(wired, sample_env):
    result = runner.invoke(
        app, ["--log-level", "error", "nodes"], env={**sample_env, "LOG_LEVEL": "debug"}
    )

    assert result.exit_code == 0
    assert logging.getLogger().level == logging.ERROR
    setup_logging(level="INFO")


def test_invalid_log_level_rejected(sample_env):
    result = runner.invoke(app, ["nodes"], env={**sample_env, "LOG_LEVEL": "chatty"})

    assert result.exit_code == 1
    assert "LOG_LEVEL" in result.stdout


def test_sync_applies_changes(wired, sample_env):
    _, fake_cloudflare, _ = wired

    result = runner.invoke(app, ["sync"], env=sample_env)

    assert result.exit_code == 0
    assert "Created 1, deleted 1" in result.stdout
    assert fake_cloudflare.contents() == {"1.1.1.1"}


def test_sync_up_to_date(wired, sample_env):
    _, fake_cloudflare, _ = wired
    del fake_cloudflare.records["stale"]
    fake_cloudflare.seed(NAME, "1.1.1.1")

    result = runner.invoke(app, ["sync"], env=sample_env)

    assert result.exit_code == 0
    assert "already up to date" in result.stdout


def test_sync_record_failure_exits_non_zero(wired, sample_env):
    _, fake_cloudflare, _ = wired
    fake_cloudflare.fail_create.add("1.1.1.1")

    result = runner.invoke(app, ["sync"], env=sample_env)

    assert result.exit_code == 1
    assert "failed 1" in result.stdout


def test_sync_nomad_failure(wired, sample_env):
    fake_nomad, _, _ = wired
    fake_nomad.list_error = NomadError("Failed to reach Nomad", "connection refused")

    result = runner.invoke(app, ["sync"], env=sample_env)

    assert result.exit_code == 1
    assert "Failed to reach Nomad" in result.stdout


def test_nodes(wired, sample_env):
    result = runner.invoke(app, ["nodes"], env=sample_env)

    assert result.exit_code == 0
    assert "edge-1" in result.stdout
    assert "1.1.1.1" in result.stdout
    assert "Total eligible nodes" in result.stdout


def test_nodes_none_eligible(wired, sample_env):
    fake_nomad, _, _ = wired
    fake_nomad.nodes["n1"]["Status"] = "down"

    result = runner.invoke(app, ["nodes"], env=sample_env)

    assert result.exit_code == 0
    assert "No eligible nodes" in result.stdout


def test_run_until_stopped(wired, sample_env, monkeypatch):
    _, fake_cloudflare, built = wired
    monkeypatch.setattr(cli.signal, "signal", lambda *args: None)
    monkeypatch.setattr(Controller, "run", _run_once_then_stop)

    result = runner.invoke(app, ["run", "--metrics-port", "0"], env=sample_env)

    assert result.exit_code == 0
    assert built[0].last_outcome.trigger == "startup"
    assert fake_cloudflare.contents() == {"1.1.1.1"}


def test_run_exits_non_zero_on_stream_failure(wired, sample_env, monkeypatch):
    def fail(self):
        raise EventStreamError("Nomad event stream closed by the server")

    monkeypatch.setattr(cli.signal, "signal", lambda *args: None)
    monkeypatch.setattr(Controller, "run", fail)

    result = runner.invoke(app, ["run", "--metrics-port", "0"], env=sample_env)

    assert result.exit_code == 1
    assert "Event stream error" in result.stdout


_original_run = Controller.run


def _run_once_then_stop(self):
    self.stop()
    _original_run(self)
