"""Tests for the coachweek CLI commands.

The generation command runs against a scripted gateway patched in place of
build_gateway; nothing reaches a real LLM provider.
"""

import json

import pytest
from typer.testing import CliRunner

import cli.cli as cli_module
from coachweek.llm.messages import GenerationError

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_cli(monkeypatch):
    """Keep CLI runs from reconfiguring loguru and from sleeping between attempts."""
    calls: list[dict] = []
    monkeypatch.setattr(cli_module, "setup_logger", lambda **kwargs: calls.append(kwargs))
    monkeypatch.setenv("AGENT_BACKOFF_SECONDS", "0")
    monkeypatch.setenv("FALLBACK_BACKOFF_SECONDS", "0")
    monkeypatch.setenv("FALLBACK_MAX_RETRIES", "1")
    return calls


@pytest.fixture
def request_file(tmp_path):
    path = tmp_path / "request.json"
    path.write_text(
        json.dumps(
            {
                "athlete_stats": {"ctl": 50, "atl": 50, "weekly_volume": 60},
                "objective": "base",
                "period": "général",
                "constraints": None,
                "historical_plans": [],
                "thresholds": {"vma": 20.5},
            }
        ),
        encoding="utf-8",
    )
    return path


def test_target_command():
    result = runner.invoke(
        cli_module.app,
        ["target", "--volume", "80", "--ctl", "50", "--atl", "50", "--objective", "récupération"],
    )
    assert result.exit_code == 0
    assert "ACWR: 1.00" in result.output
    assert "Target: 56.0 km" in result.output
    assert "min 50.4 / max 61.6" in result.output


def test_zones_command():
    result = runner.invoke(cli_module.app, ["zones", "VMA > 10 x 400"])
    assert result.exit_code == 0
    assert "4.0" in result.output
    assert "13.0" in result.output


def test_generate_with_fallback(monkeypatch, request_file, fallback_payload, scripted_gateway, tmp_path, quiet_cli):
    gateway = scripted_gateway(json.dumps(fallback_payload))
    monkeypatch.setattr(cli_module, "build_gateway", lambda settings: gateway)
    output_file = tmp_path / "plan.json"

    result = runner.invoke(
        cli_module.app,
        ["generate", str(request_file), "--no-agents", "--debug", "-o", str(output_file)],
    )

    assert result.exit_code == 0, result.output
    assert gateway.call_count == 1
    assert "Actual: 78.2 km" in result.output
    saved = json.loads(output_file.read_text(encoding="utf-8"))
    assert saved["source"] == "fallback"
    assert len(saved["plan"]["days"]) == 7
    assert quiet_cli[0]["level"] == "DEBUG"


def test_generate_invalid_request_file(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("pas du json", encoding="utf-8")
    result = runner.invoke(cli_module.app, ["generate", str(path)])
    assert result.exit_code == 2
    assert "Invalid request file" in result.output


def test_generate_failure_shows_generic_message(monkeypatch, request_file, scripted_gateway):
    gateway = scripted_gateway(GenerationError("503"), GenerationError("503"), GenerationError("503"))
    monkeypatch.setattr(cli_module, "build_gateway", lambda settings: gateway)

    result = runner.invoke(cli_module.app, ["generate", str(request_file), "--no-agents"])

    assert result.exit_code == 1
    assert "La génération du planning" in result.output
    assert "503" not in result.output


def test_generate_rejects_unknown_provider(monkeypatch, request_file):
    monkeypatch.setattr(cli_module, "build_gateway", lambda settings: pytest.fail("gateway must not be built"))
    result = runner.invoke(cli_module.app, ["generate", str(request_file), "--provider", "foo"])
    assert result.exit_code == 2
    assert "Invalid provider" in result.output
    assert "Traceback" not in result.output


def test_generate_provider_override_is_normalized(monkeypatch, request_file, fallback_payload, scripted_gateway):
    providers: list[str] = []
    gateway = scripted_gateway(json.dumps(fallback_payload))

    def fake_build_gateway(settings):
        providers.append(settings.llm_provider)
        return gateway

    monkeypatch.setattr(cli_module, "build_gateway", fake_build_gateway)
    result = runner.invoke(cli_module.app, ["generate", str(request_file), "--no-agents", "--provider", " Ollama "])

    assert result.exit_code == 0, result.output
    assert providers == ["ollama"]
