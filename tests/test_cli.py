# File: tests/test_cli.py
"""Тесты для CLI (`site_intel/cli.py`) с использованием click.testing.CliRunner.
Проверяют команды `run`, `config`, `--version`, а также обработку ошибок.
Конвейер подменяется, сеть не используется.
"""
import importlib
import json

import pytest
from click.testing import CliRunner

from conftest import make_page
from site_intel.cli import cli
from site_intel.config import RunMode
from site_intel.events import EventKind, Phase, ProgressEvent
from site_intel.logger import init_logging
from site_intel.models import AggregatedDataset, DiscoveredURL, PipelineResult, RunSummary

# site_intel re-exports the click group as `cli`, which shadows the submodule attribute
cli_module = importlib.import_module("site_intel.cli")

QUIET = ["--log-level", "ERROR"]


def fake_result(**summary) -> PipelineResult:
    page = make_page("https://example.com/")
    return PipelineResult(
        dataset=AggregatedDataset(url="https://example.com/", pages=[page]),
        summary=RunSummary(phases_run=["rapid-scrape"], total_attempted=1, succeeded=1, **summary),
        discovered=[DiscoveredURL("https://example.com/", title="Home", priority=1.0)],
        correlation_id="abc123",
    )


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    # the CLI binds the log handler to the runner's stderr
    init_logging()


@pytest.fixture()
def calls(monkeypatch):
    """Патчим run_pipeline: запоминаем аргументы и возвращаем фиктивный результат."""
    recorded = []
    result_holder = {"result": fake_result()}

    async def fake_run_pipeline(domain, options, cfg, **kwargs):
        recorded.append({"domain": domain, "options": options, "config": cfg, **kwargs})
        for subscriber in kwargs.get("subscribers", ()):
            await subscriber(
                ProgressEvent(EventKind.COMPLETE, Phase.COMPLETE, "abc123", {"pageCount": 1}, timestamp=1)
            )
        return result_holder["result"]

    monkeypatch.setattr(cli_module, "run_pipeline", fake_run_pipeline)
    return recorded, result_holder


def test_version_option():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "SiteIntel, version" in result.output


def test_show_config(tmp_path):
    cfg_file = tmp_path / "site.yaml"
    cfg_file.write_text("max_pages: 25\nuser_agent: Agent/1.0\n", encoding="utf-8")

    result = CliRunner().invoke(cli, QUIET + ["--config", str(cfg_file), "config"])
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["max_pages"] == 25
    assert data["user_agent"] == "Agent/1.0"


def test_invalid_config_exits_with_error(tmp_path):
    cfg_file = tmp_path / "bad.yaml"
    cfg_file.write_text("max_pages: 0\n", encoding="utf-8")
    result = CliRunner().invoke(cli, QUIET + ["--config", str(cfg_file), "config"])
    assert result.exit_code == 1


def test_run_prints_json(calls):
    recorded, _ = calls
    result = CliRunner().invoke(
        cli,
        QUIET + ["run", "example.com", "--max-pages", "5", "--mode", "dynamic",
                 "--skip", "enhancement", "--url", "https://example.com/a", "--pretty"],
    )
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["correlationId"] == "abc123"
    assert data["summary"]["phasesRun"] == ["rapid-scrape"]
    assert data["dataset"]["pages"][0]["url"] == "https://example.com/"

    (call,) = recorded
    options = call["options"]
    assert call["domain"] == "example.com"
    assert options.max_pages == 5
    assert options.mode is RunMode.DYNAMIC
    assert options.skip_phases == [Phase.ENHANCEMENT]
    assert options.urls == ["https://example.com/a"]
    assert options.stream is False
    assert call["store"] is None
    assert call["subscribers"] == []


def test_run_writes_reports(tmp_path, calls):
    json_path = tmp_path / "out" / "report.json"
    html_path = tmp_path / "out" / "report.html"
    result = CliRunner().invoke(
        cli, QUIET + ["run", "example.com", "--json", str(json_path), "--html", str(html_path)]
    )
    assert result.exit_code == 0, result.output
    assert "JSON report" in result.output
    assert "HTML report" in result.output

    saved = json.loads(json_path.read_text(encoding="utf-8"))
    assert saved["summary"]["succeeded"] == 1
    html = html_path.read_text(encoding="utf-8")
    assert "https://example.com/" in html
    assert "abc123" in html


def test_run_stream_writes_events(calls):
    recorded, _ = calls
    result = CliRunner().invoke(cli, QUIET + ["run", "example.com", "--stream"])
    assert result.exit_code == 0, result.output
    assert recorded[0]["options"].stream is True
    assert len(recorded[0]["subscribers"]) == 1
    assert 'data: {"type": "complete"' in result.output
    assert "data: [DONE]" in result.output


def test_store_requires_session(tmp_path, calls):
    result = CliRunner().invoke(cli, QUIET + ["run", "example.com", "--store", str(tmp_path)])
    assert result.exit_code == 1
    assert calls[0] == []


def test_store_with_session(tmp_path, calls):
    recorded, _ = calls
    result = CliRunner().invoke(
        cli, QUIET + ["run", "example.com", "--store", str(tmp_path), "--session", "s1"]
    )
    assert result.exit_code == 0, result.output
    assert recorded[0]["store"] is not None
    assert recorded[0]["options"].session_id == "s1"


def test_complete_phase_cannot_be_skipped(calls):
    result = CliRunner().invoke(cli, QUIET + ["run", "example.com", "--skip", "complete"])
    assert result.exit_code == 2


def test_fatal_error_exits_nonzero(calls):
    _, holder = calls
    holder["result"] = fake_result(fatal_error="PersistenceError: disk full")
    result = CliRunner().invoke(cli, QUIET + ["run", "example.com"])
    assert result.exit_code == 1
