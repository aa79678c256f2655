import json

import pytest
from typer.testing import CliRunner

from agent_brain.cli import app

runner = CliRunner()


@pytest.fixture
def providers_file(tmp_path):
    path = tmp_path / "providers.json"
    path.write_text(
        json.dumps(
            [
                {"id": "local", "kind": "echo", "max_complexity": "moderate"},
            ]
        )
    )
    return path


def _base(tmp_path, providers_file):
    return ["--data-dir", str(tmp_path / "data"), "--providers-file", str(providers_file)]


def test_cli_complete_and_stats(tmp_path, providers_file):
    result = runner.invoke(
        app, [*_base(tmp_path, providers_file), "complete", "router-1", "hello there", "--task-type", "triage"]
    )
    assert result.exit_code == 0
    assert '"provider": "local"' in result.stdout
    assert "hello there [local:local]" in result.stdout

    result = runner.invoke(app, [*_base(tmp_path, providers_file), "stats", "router-1"])
    assert result.exit_code == 0
    assert '"totalInteractions": 1' in result.stdout
    assert '"triage:local": 1.4' in result.stdout


def test_cli_configuration_error_exit_code(tmp_path, providers_file):
    result = runner.invoke(
        app,
        [*_base(tmp_path, providers_file), "complete", "lawyer", "argue", "--complexity", "complex"],
    )
    assert result.exit_code == 3


def test_cli_missing_providers_file(tmp_path):
    missing = tmp_path / "missing.json"
    result = runner.invoke(app, ["--providers-file", str(missing), "stats", "x"])
    assert result.exit_code != 0


def test_cli_prune_episodes(tmp_path, providers_file):
    result = runner.invoke(app, [*_base(tmp_path, providers_file), "prune-episodes"])
    assert result.exit_code == 0
    assert "Removed 0 episodic record(s)" in result.stdout


def test_cli_usage_agents_and_providers(tmp_path, providers_file):
    base = _base(tmp_path, providers_file)
    result = runner.invoke(app, [*base, "agents"])
    assert result.exit_code == 0
    assert "No agents found" in result.stdout

    runner.invoke(app, [*base, "complete", "router-1", "hello there", "--task-type", "triage"])

    result = runner.invoke(app, [*base, "usage", "--days", "1"])
    assert result.exit_code == 0
    assert '"calls": 1' in result.stdout
    assert '"local"' in result.stdout

    result = runner.invoke(app, [*base, "agents"])
    assert result.exit_code == 0
    assert "interactions=1\tmemories=1" in result.stdout

    result = runner.invoke(app, [*base, "providers", "--probe"])
    assert result.exit_code == 0
    assert "local\techo\tmoderate\tok\tfailures=0" in result.stdout
