"""
Dashboard-ready output functions.

These are the entry points a front end calls. Each returns plain dicts or
DataFrames suitable for rendering cards, trend lines and tables; nothing
here draws anything.
"""

import logging
from dataclasses import asdict
from datetime import date
from typing import Sequence

import pandas as pd

from .analytics import compute_milestone_status
from .anomalies import get_anomalies_with_status
from .kpis import compute_all_kpis, get_or_compute_snapshot
from .models import MonthFilter, SingleMonth
from .narrative import NarrativeConfig, generate_narrative
from .periods import as_month_filter, parse_month, previous_month
from .registry import (
    DEFAULT_KPI_CARDS,
    KPI_REGISTRY,
    applicable_kpis,
    format_kpi,
    kpi_color,
    trend_direction,
    trend_sentiment,
)
from .store import DataStore

logger = logging.getLogger(__name__)

SUMMARY_COLUMNS = ["kpi", "label", "value", "display", "previous", "change", "color", "trend", "sentiment"]
TREND_COLUMNS = ["month", "value", "display", "color"]


def _previous_results(
    store: DataStore,
    month_filter: MonthFilter | str,
    project_filter: str | None,
) -> dict[str, float] | None:
    """KPIs for the month before a single-month filter, if it has data."""
    month_filter = as_month_filter(month_filter)
    if not isinstance(month_filter, SingleMonth):
        return None
    prev = previous_month(month_filter.month)
    if prev not in store.list_record_months():
        return None
    return dict(get_or_compute_snapshot(store, prev, project_filter).results)


def get_kpi_cards(
    store: DataStore,
    month_filter: MonthFilter | str,
    project_filter: str | None = None,
    cards: Sequence[str] | None = None,
) -> list[dict]:
    """One dict per requested KPI card, in the requested order.

    Cards whose KPI does not apply to a single project are dropped when a
    project filter is set.

    Returns
    -------
    List of dicts with keys:
        key, label, short_label, category, value, display, color,
        description, trend, sentiment
    """
    results = compute_all_kpis(store, month_filter, project_filter)
    previous = _previous_results(store, month_filter, project_filter)

    output = []
    for key in cards or DEFAULT_KPI_CARDS:
        definition = KPI_REGISTRY[key]
        if project_filter and not definition.applicable_to_single_project:
            continue
        value = definition.get_value(results)
        prev_value = definition.get_value(previous) if previous else None
        output.append({
            "key": key,
            "label": definition.label,
            "short_label": definition.short_label,
            "category": definition.category.value,
            "value": value,
            "display": format_kpi(key, value),
            "color": kpi_color(value, definition.thresholds),
            "description": definition.description,
            "trend": trend_direction(value, prev_value),
            "sentiment": trend_sentiment(key, value, prev_value),
        })
    return output


def get_kpi_trend(
    store: DataStore,
    key: str,
    months: Sequence[str],
    project_filter: str | None = None,
) -> pd.DataFrame:
    """Monthly series for one KPI, read through the snapshot store.

    Returns
    -------
    DataFrame with columns: month, value, display, color
    """
    definition = KPI_REGISTRY[key]
    rows = []
    for month in sorted(set(months)):
        parse_month(month)
        value = definition.get_value(get_or_compute_snapshot(store, month, project_filter).results)
        rows.append({
            "month": month,
            "value": value,
            "display": format_kpi(key, value),
            "color": kpi_color(value, definition.thresholds),
        })
    return pd.DataFrame(rows, columns=TREND_COLUMNS)


def get_management_summary(
    store: DataStore,
    month_filter: MonthFilter | str,
    project_filter: str | None = None,
) -> pd.DataFrame:
    """Monthly management summary: one row per applicable KPI.

    Returns
    -------
    DataFrame with columns:
        kpi, label, value, display, previous, change, color, trend, sentiment
    """
    results = compute_all_kpis(store, month_filter, project_filter)
    previous = _previous_results(store, month_filter, project_filter)

    rows = []
    for definition in applicable_kpis(bool(project_filter)):
        value = definition.get_value(results)
        prev_value = definition.get_value(previous) if previous else None
        rows.append({
            "kpi": definition.key,
            "label": definition.label,
            "value": value,
            "display": format_kpi(definition.key, value),
            "previous": prev_value,
            "change": value - prev_value if value is not None and prev_value is not None else None,
            "color": kpi_color(value, definition.thresholds),
            "trend": trend_direction(value, prev_value),
            "sentiment": trend_sentiment(definition.key, value, prev_value),
        })

    if not rows:
        logger.warning("No KPIs for management summary")
        return pd.DataFrame(columns=SUMMARY_COLUMNS)
    return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)


def get_milestone_timeline(
    store: DataStore,
    as_of: date,
    project_filter: str | None = None,
) -> pd.DataFrame:
    """Gate reviews with status, scheduled gates first by date."""
    df = compute_milestone_status(store, as_of, project_filter)
    if df.empty:
        return df
    records = sorted(
        df.to_dict("records"),
        key=lambda r: (r["target_date"] is None, r["target_date"] or as_of, r["project_id"]),
    )
    return pd.DataFrame(records, columns=df.columns)


def get_manager_overview(
    store: DataStore,
    month: MonthFilter | str,
    project_filter: str | None = None,
    narrative_config: NarrativeConfig | None = None,
) -> dict:
    """Single entry point a front end would call to populate the landing view.

    Returns
    -------
    {"cards": [...], "narrative": {"paragraph", "highlights"},
     "anomalies": [anomaly dicts]}

    Each anomaly dict carries its stable "id" and a "status" of new,
    recurring or resolved against the stored anomaly history.
    """
    summary = generate_narrative(store, month, project_filter, narrative_config)
    tracked = get_anomalies_with_status(store, month, project_filter)
    return {
        "cards": get_kpi_cards(store, month, project_filter),
        "narrative": {"paragraph": summary.paragraph, "highlights": list(summary.highlights)},
        "anomalies": [
            asdict(t.anomaly) | {
                "id": t.anomaly_id,
                "status": t.status,
                "recurring_months": t.recurring_months,
            }
            for t in tracked
        ],
    }
