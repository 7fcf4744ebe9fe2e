"""CLI startup tests: argument handling, configuration errors and run artifacts."""

import json
import subprocess
import sys

import pytest

from ideation_system.main import build_parser, build_settings, main
from tests.conftest import TOPIC, make_corpus

SERVICE_KEYS = ("TAVILY_API_KEY", "OPENAI_API_KEY", "ANTHROPIC_API_KEY")


@pytest.fixture
def offline_env(monkeypatch):
    for key in SERVICE_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("RETRY_BACKOFF_BASE_SECONDS", "0")
    monkeypatch.setenv("RETRY_BACKOFF_MAX_SECONDS", "0")


@pytest.fixture
def corpus_file(tmp_path):
    path = tmp_path / "corpus.jsonl"
    lines = [doc.model_dump_json() for docs in make_corpus().values() for doc in docs]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def test_help_runs():
    """python -m ideation_system --help exits cleanly."""
    proc = subprocess.run([sys.executable, "-m", "ideation_system", "--help"], capture_output=True, text=True)
    assert proc.returncode == 0
    assert "Research gathering and business ideation" in proc.stdout


def test_cli_overrides_settings(offline_env):
    args = build_parser().parse_args(["--topic", TOPIC, "--max-concurrent", "2", "--ideation-rounds", "4"])
    settings = build_settings(args)
    assert settings.MAX_CONCURRENT == 2
    assert settings.IDEATION_MAX_ROUNDS == 4


def test_invalid_override_exits(offline_env, tmp_path):
    with pytest.raises(SystemExit) as exc:
        main(["--topic", TOPIC, "--max-concurrent", "0", "--output-dir", str(tmp_path)])
    assert exc.value.code == 2


def test_no_retrieval_source_exits(offline_env, tmp_path):
    with pytest.raises(SystemExit) as exc:
        main(["--topic", TOPIC, "--output-dir", str(tmp_path)])
    assert exc.value.code == 2


def test_offline_run_writes_artifacts(offline_env, corpus_file, tmp_path):
    out = tmp_path / "out"
    outcome = main(["--topic", TOPIC, "--documents", str(corpus_file), "--output-dir", str(out),
                    "--research-rounds", "1", "--ideation-rounds", "1"])

    run_dirs = list(out.iterdir())
    assert len(run_dirs) == 1
    run_dir = run_dirs[0]
    assert run_dir.name.startswith("fintech_")

    report = json.loads((run_dir / "run_report.json").read_text(encoding="utf-8"))
    assert report["research"]["roundsRun"] == 1
    result = json.loads((run_dir / "result.json").read_text(encoding="utf-8"))
    assert result["session_id"] == run_dir.name
    assert result["topic"] == TOPIC
    assert (run_dir / "sessions" / f"{run_dir.name}.json").exists()
    assert outcome.session_id == run_dir.name
