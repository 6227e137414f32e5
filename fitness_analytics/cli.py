from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Any, Mapping, Optional

import typer

from .benchmarks import BENCHMARKS, calculate_percentile_rank, get_benchmark, strength_standards
from .config import as_dict as config_as_dict
from .models import ValidationError, coerce_number, parse_iso_date
from .readiness import analyze_readiness
from .services import UserData, analyze_user, load_user_data

app = typer.Typer(help="Analyse training and wellness data: readiness, trends, forecasts, benchmarks.")


def _fail(message: str, *, code: int = 1) -> None:
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(code=code)


def _emit(payload: Mapping[str, Any]) -> None:
    typer.echo(json.dumps(payload, indent=2, sort_keys=False))


def _load_payload(path: Path) -> UserData:
    try:
        return load_user_data(json.loads(path.read_text(encoding="utf-8")))
    except FileNotFoundError:
        _fail(f"File not found: {path}")
    except json.JSONDecodeError as exc:
        _fail(f"{path} is not valid JSON: {exc.msg} (line {exc.lineno}).")
    except ValidationError as exc:
        _fail(f"Invalid data in {path}: {exc}")
    return UserData()


def _parse_today(value: Optional[str]) -> date | None:
    if value is None:
        return None
    try:
        return parse_iso_date(value, field="today")
    except ValidationError as exc:
        raise typer.BadParameter(str(exc), param_hint="today") from exc


@app.command()
def readiness(
    path: Path = typer.Argument(..., help="JSON file with a `daily_metrics` list."),
    today: Optional[str] = typer.Option(
        None,
        "--today",
        "-t",
        help="Analysis date in YYYY-MM-DD format (defaults to today).",
    ),
) -> None:
    """
    Score training readiness from daily wellness check-ins.

    Example:
        fitness-analytics readiness metrics.json --today 2024-03-01
    """
    data = _load_payload(path)
    result = analyze_readiness(data.daily_metrics, today=_parse_today(today))
    _emit(result.to_dict())


@app.command()
def analyze(
    path: Path = typer.Argument(..., help="JSON file with daily_metrics, performance and related lists."),
    today: Optional[str] = typer.Option(
        None,
        "--today",
        "-t",
        help="Analysis date in YYYY-MM-DD format (defaults to today).",
    ),
) -> None:
    """
    Run the full analysis (readiness, patterns, anomalies, forecasts, insights).
    """
    data = _load_payload(path)
    bundle = analyze_user(data, today=_parse_today(today))
    _emit(bundle.to_dict())


@app.command()
def benchmark(
    exercise: str = typer.Argument(..., help="Exercise name, e.g. 'bench press' or 'squat'."),
    value: str = typer.Argument(..., help="One-rep max in lbs."),
) -> None:
    """
    Rank a one-rep max against the reference population.
    """
    table = get_benchmark(exercise)
    if table is None:
        _fail(f"No benchmark for {exercise!r}. Known exercises: {', '.join(BENCHMARKS)}.")
        return
    try:
        one_rm = coerce_number(value, field="value", minimum=0.0)
    except ValidationError as exc:
        raise typer.BadParameter(str(exc), param_hint="value") from exc
    _emit(
        {
            "exercise": table.exercise,
            "value": one_rm,
            "unit": table.unit,
            "percentile": round(calculate_percentile_rank(one_rm, table), 1),
            "standards": strength_standards()[table.exercise],
            "cohort": table.cohort.to_dict(),
        }
    )


@app.command("config")
def config_show() -> None:
    """
    Show the effective configuration (thresholds, weights, cache TTLs).
    """
    config = config_as_dict()
    typer.echo(f"Config source: {config.get('source')}")
    _emit({key: item for key, item in config.items() if key != "source"})


def main() -> None:
    app()


if __name__ == "__main__":
    main()
