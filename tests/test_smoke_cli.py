from __future__ import annotations

import json
from datetime import date, timedelta

from typer.testing import CliRunner

from fitness_analytics.cli import app


def _write_payload(path) -> None:
    today = date(2024, 3, 1)
    payload = {
        "daily_metrics": [
            {
                "date": (today - timedelta(days=offset)).isoformat(),
                "sleep": 4,
                "energy": 3,
                "soreness": 8,
                "stress": 7,
            }
            for offset in range(2, -1, -1)
        ],
        "performance": [
            {
                "date": (today - timedelta(days=offset * 4)).isoformat(),
                "exercise": "Bench Press",
                "weight": 185 + (5 - offset) * 5,
                "reps": 3,
                "rpe": 8,
            }
            for offset in range(5, 0, -1)
        ],
        "planned_workouts": [{"exercise": "Bench Press", "sets": 4, "reps": 6, "intensity_pct": 80}],
    }
    path.write_text(json.dumps(payload), encoding="utf-8")


def test_cli_smoke(tmp_path, monkeypatch):
    runner = CliRunner()
    monkeypatch.delenv("FITNESS_ANALYTICS_CONFIG", raising=False)
    data_file = tmp_path / "athlete.json"
    _write_payload(data_file)

    readiness_result = runner.invoke(app, ["readiness", str(data_file), "--today", "2024-03-01"])
    assert readiness_result.exit_code == 0, readiness_result.stdout
    readiness = json.loads(readiness_result.stdout)
    assert readiness["level"] == "poor"
    assert "Consider a rest day or light recovery session" in readiness["recommendations"]

    analyze_result = runner.invoke(app, ["analyze", str(data_file), "-t", "2024-03-01"])
    assert analyze_result.exit_code == 0, analyze_result.stdout
    bundle = json.loads(analyze_result.stdout)
    assert bundle["generated_for"] == "2024-03-01"
    assert bundle["insights"][0]["priority"] == "critical"
    assert bundle["modifications"]["Bench Press"][0]["kind"] == "deload"

    benchmark_result = runner.invoke(app, ["benchmark", "bench", "225"])
    assert benchmark_result.exit_code == 0, benchmark_result.stdout
    benchmark = json.loads(benchmark_result.stdout)
    assert benchmark["exercise"] == "Bench Press"
    assert benchmark["percentile"] == 75.0
    assert benchmark["standards"]["elite"] == 315.0

    config_result = runner.invoke(app, ["config"])
    assert config_result.exit_code == 0, config_result.stdout
    assert "Config source:" in config_result.stdout


def test_cli_reports_bad_input(tmp_path):
    runner = CliRunner()

    missing = runner.invoke(app, ["readiness", str(tmp_path / "missing.json")])
    assert missing.exit_code == 1

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    assert runner.invoke(app, ["analyze", str(broken)]).exit_code == 1

    invalid = tmp_path / "invalid.json"
    invalid.write_text(json.dumps({"daily_metrics": [{"date": "yesterday"}]}), encoding="utf-8")
    assert runner.invoke(app, ["readiness", str(invalid)]).exit_code == 1

    unknown = runner.invoke(app, ["benchmark", "curl", "100"])
    assert unknown.exit_code == 1

    bad_value = runner.invoke(app, ["benchmark", "squat", "heavy"])
    assert bad_value.exit_code == 2

    bad_date = runner.invoke(app, ["readiness", str(invalid), "--today", "soon"])
    assert bad_date.exit_code != 0
