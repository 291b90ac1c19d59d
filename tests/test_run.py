from __future__ import annotations

import json
from pathlib import Path

import pytest

from grammar_foundry import run
from grammar_foundry.errors import CatalogError
from grammar_foundry.models import RunSummary


def _write_catalog(path: Path) -> Path:
    path.write_text(
        json.dumps(
            {
                "parsers": [
                    {"name": "demo", "url": "https://example.com/tree-sitter-demo.git"},
                    {"name": "other", "url": "https://example.com/tree-sitter-other.git"},
                ]
            }
        )
    )
    return path


def test_list_prints_filtered_catalog(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    catalog = _write_catalog(tmp_path / "parsers.json")

    code = run.main(["--log-file", str(tmp_path / "out.log"), "list", "--catalog", str(catalog), "-l", "demo"])

    assert code == 0
    assert capsys.readouterr().out == "demo\thttps://example.com/tree-sitter-demo.git\n"


def test_catalog_failure_exits_with_one(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def failing_scrape(url: str):
        raise CatalogError("HTTP 503")

    monkeypatch.setattr(run, "scrape_parsers", failing_scrape)
    log_file = tmp_path / "out.log"

    code = run.main(["--log-file", str(log_file), "build", "-o", str(tmp_path / "libs")])

    assert code == 1
    assert "catalog discovery failed: HTTP 503" in log_file.read_text()
    assert not (tmp_path / "libs").exists()


def test_zero_threads_is_a_configuration_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def unexpected_scrape(url: str):  # pragma: no cover - must not be reached
        raise AssertionError("catalog fetched despite invalid configuration")

    monkeypatch.setattr(run, "scrape_parsers", unexpected_scrape)

    code = run.main(["--log-file", str(tmp_path / "out.log"), "build", "-t", "0"])

    assert code == 2


def test_build_reports_job_failures_with_exit_zero(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    catalog = _write_catalog(tmp_path / "parsers.json")
    calls: list[dict] = []

    def fake_run_pipeline(entries, config, *, show_progress):
        calls.append({"names": sorted(entry.name for entry in entries), "config": config})
        return RunSummary(completed=2, failed=2)

    monkeypatch.setattr(run, "run_pipeline", fake_run_pipeline)

    code = run.main(
        [
            "--log-file",
            str(tmp_path / "out.log"),
            "build",
            "--catalog",
            str(catalog),
            "-o",
            str(tmp_path / "libs"),
            "-s",
            str(tmp_path / "src"),
            "-c",
            str(tmp_path / "config.json"),
            "-t",
            "3",
            "-l",
            "demo, other",
            "--quiet",
        ]
    )

    assert code == 0
    config = calls[0]["config"]
    assert calls[0]["names"] == ["demo", "other"]
    assert config.pool_size == 3
    assert config.languages == frozenset({"demo", "other"})
    assert config.registry_path == tmp_path / "config.json"


def test_list_registered_prints_registry_entries(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    registry_path = tmp_path / "config.json"
    registry_path.write_text(
        json.dumps(
            {
                "known_languages": {
                    "rust": {"path": "/libs/librust.so", "extension": "rs"},
                    "go": {"path": "/libs/libgo.so", "extension": "go"},
                }
            }
        )
    )

    code = run.main(["--log-file", str(tmp_path / "out.log"), "list", "--registered", "-c", str(registry_path)])

    assert code == 0
    assert capsys.readouterr().out == "go\tgo\t/libs/libgo.so\nrust\trs\t/libs/librust.so\n"


def test_list_registered_rejects_malformed_registry(tmp_path: Path) -> None:
    registry_path = tmp_path / "config.json"
    registry_path.write_text("{not json")

    code = run.main(["--log-file", str(tmp_path / "out.log"), "list", "--registered", "-c", str(registry_path)])

    assert code == 2
