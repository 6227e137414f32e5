from __future__ import annotations

from datetime import date
from typing import Iterable, Sequence

import pandas as pd

from .models import DailyMetrics, PerformanceRecord

RECORD_COLUMNS = ["date", "exercise", "weight", "reps", "sets", "rpe", "one_rm", "volume"]
DAILY_COLUMNS = ["date", "sleep", "energy", "soreness", "stress", "hrv"]
WEEKLY_COLUMNS = ["label", "start_date", "end_date", "sessions", "total_volume", "avg_rpe", "best_one_rm"]


def records_to_dataframe(records: Sequence[PerformanceRecord]) -> pd.DataFrame:
    """Normalise performance records into a date-sorted pandas DataFrame."""
    if not records:
        return pd.DataFrame(columns=RECORD_COLUMNS)
    rows = [
        {
            "date": pd.Timestamp(record.date),
            "exercise": record.exercise,
            "weight": float(record.weight),
            "reps": int(record.reps),
            "sets": int(record.sets),
            "rpe": float(record.rpe) if record.rpe is not None else pd.NA,
            "one_rm": float(record.one_rm or 0.0),
            "volume": float(record.volume or 0.0),
        }
        for record in records
    ]
    df = pd.DataFrame(rows, columns=RECORD_COLUMNS)
    df["rpe"] = pd.to_numeric(df["rpe"], errors="coerce")
    df.sort_values(["date", "exercise"], inplace=True, kind="stable")
    df.reset_index(drop=True, inplace=True)
    return df


def daily_metrics_to_dataframe(metrics: Sequence[DailyMetrics]) -> pd.DataFrame:
    """Wellness check-ins as a DataFrame; later entries win when a day repeats."""
    if not metrics:
        return pd.DataFrame(columns=DAILY_COLUMNS)
    df = pd.DataFrame(
        [
            {
                "date": pd.Timestamp(item.date),
                "sleep": float(item.sleep),
                "energy": float(item.energy),
                "soreness": float(item.soreness),
                "stress": float(item.stress),
                "hrv": float(item.hrv) if item.hrv is not None else float("nan"),
            }
            for item in metrics
        ],
        columns=DAILY_COLUMNS,
    )
    df = df.drop_duplicates(subset="date", keep="last").sort_values("date")
    return df.reset_index(drop=True)


def weekly_session_counts(dates: Iterable[date]) -> pd.Series:
    """
    Count sessions per ISO week, indexed by the Monday starting each week.

    Weeks without sessions between the first and last active week are filled
    with zero so gaps register as a change in frequency.
    """
    stamps = pd.to_datetime(pd.Series(list(dates), dtype="object"))
    if stamps.empty:
        return pd.Series(dtype="int64")
    week_start = (stamps - pd.to_timedelta(stamps.dt.weekday, unit="D")).dt.normalize()
    counts = week_start.value_counts().sort_index()
    full_range = pd.date_range(counts.index.min(), counts.index.max(), freq="7D")
    return counts.reindex(full_range, fill_value=0).astype("int64")


def compute_weekly_summary(records: Sequence[PerformanceRecord]) -> pd.DataFrame:
    """Aggregate training records into ISO-week rows (YYYY-Www labels)."""
    df = records_to_dataframe(records)
    if df.empty:
        return pd.DataFrame(columns=WEEKLY_COLUMNS)

    iso = df["date"].dt.isocalendar()
    df = df.assign(
        iso_year=iso.year,
        iso_week=iso.week,
        label=iso.year.astype(str) + "-W" + iso.week.map(lambda value: f"{int(value):02d}"),
    )
    weekly = (
        df.groupby(["iso_year", "iso_week", "label"])
        .agg(
            start_date=("date", "min"),
            end_date=("date", "max"),
            sessions=("date", "nunique"),
            total_volume=("volume", "sum"),
            avg_rpe=("rpe", "mean"),
            best_one_rm=("one_rm", "max"),
        )
        .reset_index()
        .drop(columns=["iso_year", "iso_week"])
    )
    weekly["avg_rpe"] = pd.to_numeric(weekly["avg_rpe"], errors="coerce").round(2)
    weekly["total_volume"] = weekly["total_volume"].round(1)
    return weekly[WEEKLY_COLUMNS]


def weekday_profile(metrics: Sequence[DailyMetrics], *, min_samples: int = 2) -> pd.DataFrame:
    """
    Mean energy and soreness per weekday (0 = Monday).

    Weekdays with fewer than `min_samples` check-ins are omitted.
    """
    df = daily_metrics_to_dataframe(metrics)
    if df.empty:
        return pd.DataFrame(columns=["weekday", "energy", "soreness", "samples"])
    df["weekday"] = df["date"].dt.weekday
    profile = (
        df.groupby("weekday")
        .agg(energy=("energy", "mean"), soreness=("soreness", "mean"), samples=("date", "count"))
        .reset_index()
    )
    return profile[profile["samples"] >= min_samples].reset_index(drop=True)


def weekly_summary_rows(records: Sequence[PerformanceRecord]) -> list[dict]:
    """`compute_weekly_summary` as plain rows: dates as `date`, missing RPE as None."""
    weekly = compute_weekly_summary(records)
    rows = []
    for row in weekly.itertuples(index=False):
        rows.append(
            {
                "label": row.label,
                "start_date": row.start_date.date(),
                "end_date": row.end_date.date(),
                "sessions": int(row.sessions),
                "total_volume": float(row.total_volume),
                "avg_rpe": None if pd.isna(row.avg_rpe) else float(row.avg_rpe),
                "best_one_rm": float(row.best_one_rm),
            }
        )
    return rows
