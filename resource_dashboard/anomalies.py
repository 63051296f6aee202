"""
Anomaly detection.

Two sources feed the same Anomaly record:

- detect_anomalies(): each registry KPI for a month against the mean of
  the trailing months that have data. No history means no anomalies.
- compute_rule_alerts(): a table of per-person and per-project rules
  (overtime, context switching, single point of failure, ...) evaluated
  on the month's records.

refresh_anomaly_history() stores one merged set per (month, project_filter);
get_anomalies_with_status() tags each anomaly new, recurring or resolved
against the earlier stored months by its stable id.
"""

import logging
from dataclasses import dataclass
from typing import Sequence

import pandas as pd

from .analytics import bus_factor, focus_score_from_counts
from .config import (
    ANOMALY_HISTORY_MONTHS,
    ANOMALY_RULE_DEFAULTS,
    ANOMALY_SEVERITY_THRESHOLDS,
    SEVERITY_ORDER,
)
from .kpis import compute_all_kpis
from .metrics import is_meeting, load_allocations, load_work
from .models import (
    Anomaly,
    AnomalySnapshot,
    MonthFilter,
    MonthRange,
    ProjectType,
    SingleMonth,
    WorkCategory,
)
from .periods import single_month, trailing_months
from .registry import applicable_kpis, format_kpi
from .store import DataStore

logger = logging.getLogger(__name__)


def sort_anomalies(anomalies: list[Anomaly]) -> list[Anomaly]:
    """Severity first, then largest magnitude, then id for a stable order."""
    return sorted(
        anomalies,
        key=lambda a: (SEVERITY_ORDER.get(a.severity, len(SEVERITY_ORDER)), -a.magnitude, a.anomaly_id),
    )


def classify_deviation(deviation: float) -> str | None:
    for severity, threshold in ANOMALY_SEVERITY_THRESHOLDS:
        if deviation >= threshold:
            return severity
    return None


def months_with_activity(store: DataStore, project_filter: str | None = None) -> set[str]:
    """Months with at least one work record matching the project filter."""
    months = store.list_record_months()
    if not project_filter or not months:
        return set(months)
    _, _, fact_work = load_work(store, MonthRange(months[0], months[-1]), project_filter)
    return set(fact_work["month"])


# ---------------------------------------------------------------------------
# Trailing-baseline detection
# ---------------------------------------------------------------------------

def detect_anomalies(
    store: DataStore,
    month: MonthFilter | str,
    project_filter: str | None = None,
    history_months: int = ANOMALY_HISTORY_MONTHS,
) -> list[Anomaly]:
    """Flag KPIs that moved away from their trailing average.

    Parameters
    ----------
    month : Target month (single month only).
    history_months : How many months before the target form the baseline.
        Months without matching work records are left out of the
        baseline; under a project filter that means months the project
        itself was idle.

    Returns
    -------
    Anomalies ordered by severity, then magnitude descending.

    Assumptions
    -----------
    - Relative deviation is |current - baseline| / |baseline|, and 0 when
      the baseline is 0.
    - A target month without matching work records yields no anomalies.
    """
    target = single_month(month)
    record_months = months_with_activity(store, project_filter)
    if target not in record_months:
        logger.warning(
            "No work records for %s (project=%s); skipping anomaly detection",
            target, project_filter or "all",
        )
        return []

    history = [m for m in trailing_months(target, history_months) if m in record_months]
    if not history:
        logger.info("No history before %s; no anomalies", target)
        return []

    current = compute_all_kpis(store, SingleMonth(target), project_filter)
    past = [compute_all_kpis(store, SingleMonth(m), project_filter) for m in history]

    anomalies = []
    for definition in applicable_kpis(bool(project_filter)):
        value = definition.get_value(current)
        series = [v for v in (definition.get_value(r) for r in past) if v is not None]
        if value is None or not series:
            continue

        baseline = sum(series) / len(series)
        deviation = abs(value - baseline) / abs(baseline) if baseline != 0 else 0.0
        severity = classify_deviation(deviation)
        if severity is None:
            continue

        direction = "up" if value > baseline else "down"
        anomalies.append(Anomaly(
            rule_id="kpi-deviation",
            severity=severity,
            title=f"{definition.label} {direction} {round(deviation * 100)}% vs {len(series)}-month average",
            detail=(
                f"{format_kpi(definition.key, value)} this month against a baseline of "
                f"{format_kpi(definition.key, baseline)}."
            ),
            magnitude=deviation,
            kpi_key=definition.key,
            current=value,
            baseline=baseline,
        ))

    logger.info("Detected %d KPI anomalies for %s", len(anomalies), target)
    return sort_anomalies(anomalies)


# ---------------------------------------------------------------------------
# Rule alerts
# ---------------------------------------------------------------------------

def _rule_settings(rules: dict | None) -> dict[str, dict]:
    settings = {}
    for rule_id, defaults in ANOMALY_RULE_DEFAULTS.items():
        merged = {"enabled": True, **defaults}
        merged.update((rules or {}).get(rule_id, {}))
        settings[rule_id] = merged
    return settings


def _person_alerts(fact_work: pd.DataFrame, settings: dict[str, dict]) -> list[Anomaly]:
    alerts = []
    for person, entries in fact_work.groupby("engineer", sort=True):
        total = float(entries["hours"].sum())
        dated = entries[entries["work_date"].notna()]
        daily_hours = dated.groupby("work_date")["hours"].sum()
        daily_projects = dated.groupby("work_date")["project_id"].nunique()

        rule = settings["overtime"]
        if rule["enabled"] and len(daily_hours):
            overtime_days = int((daily_hours > rule["daily_hours_threshold"]).sum())
            if overtime_days >= rule["min_days"]:
                alerts.append(Anomaly(
                    rule_id="overtime",
                    severity=rule["severity"],
                    title=f"{person} logged overtime on {overtime_days} days",
                    detail=f"Averaged {daily_hours.mean():.1f} hrs/day across {len(daily_hours)} work days.",
                    magnitude=overtime_days / rule["min_days"] - 1,
                    current=float(overtime_days),
                    person=person,
                ))

        rule = settings["context-switching"]
        if rule["enabled"] and len(daily_projects):
            score = focus_score_from_counts(daily_projects.tolist())
            if score < rule["focus_score_threshold"]:
                alerts.append(Anomaly(
                    rule_id="context-switching",
                    severity=rule["severity"],
                    title=f"{person} is highly fragmented across {entries['project_id'].nunique()} projects",
                    detail=f"Averaged {daily_projects.mean():.1f} projects/day, focus score {score}.",
                    magnitude=1 - score / rule["focus_score_threshold"],
                    current=float(score),
                    person=person,
                ))

        if total <= 0:
            continue

        rule = settings["meeting-heavy"]
        meeting_hours = float(entries.loc[entries["task"].map(is_meeting).astype(bool), "hours"].sum())
        meeting_pct = meeting_hours / total
        if rule["enabled"] and meeting_pct > rule["meeting_pct_threshold"]:
            alerts.append(Anomaly(
                rule_id="meeting-heavy",
                severity=rule["severity"],
                title=f"{person} spent {round(meeting_pct * 100)}% in meetings",
                detail=f"{round(meeting_hours)}h of {round(total)}h total.",
                magnitude=meeting_pct / rule["meeting_pct_threshold"] - 1,
                current=meeting_pct,
                person=person,
            ))

        rule = settings["firefighting-spike"]
        ff_hours = float(entries.loc[entries["category"] == WorkCategory.FIREFIGHTING.value, "hours"].sum())
        ff_pct = ff_hours / total
        if rule["enabled"] and ff_pct > rule["firefighting_pct_threshold"]:
            alerts.append(Anomaly(
                rule_id="firefighting-spike",
                severity=rule["severity"],
                title=f"{person} has {round(ff_pct * 100)}% firefighting",
                detail=f"{round(ff_hours)}h firefighting out of {round(total)}h.",
                magnitude=ff_pct / rule["firefighting_pct_threshold"] - 1,
                current=ff_pct,
                person=person,
            ))

    return alerts


def compute_rule_alerts(
    store: DataStore,
    month_filter: MonthFilter | str,
    project_filter: str | None = None,
    rules: dict | None = None,
) -> list[Anomaly]:
    """Evaluate the rule table for the months in scope.

    Parameters
    ----------
    rules : Optional per-rule overrides, e.g.
        {"overtime": {"min_days": 5}, "new-person": {"enabled": False}}.
        Missing entries use ANOMALY_RULE_DEFAULTS.
    """
    settings = _rule_settings(rules)
    months, hierarchy, fact_work = load_work(store, month_filter, project_filter)
    if fact_work.empty:
        return []

    alerts = _person_alerts(fact_work, settings)

    # Single point of failure
    rule = settings["bus-factor"]
    if rule["enabled"]:
        per_project = fact_work.groupby(["project_id", "engineer"])["hours"].sum()
        for project_id, person_hours in per_project.groupby(level="project_id"):
            project = hierarchy.get(project_id)
            if project is None:
                continue
            if rule["npd_only"] and project.type != ProjectType.NPD:
                continue
            total = float(person_hours.sum())
            if total < rule["min_project_hours"]:
                continue
            bf = bus_factor(person_hours.tolist())
            if bf > rule["max_bus_factor"]:
                continue
            ranked = sorted(
                ((eng, float(h)) for (_, eng), h in person_hours.items()),
                key=lambda c: (-c[1], c[0]),
            )
            top_name, top_hours = ranked[0]
            alerts.append(Anomaly(
                rule_id="bus-factor",
                severity=rule["severity"],
                title=f"{hierarchy.project_name(project_id)} depends solely on {top_name}",
                detail=(
                    f"{round(total)}h logged by {len(ranked)} contributor{'s' if len(ranked) > 1 else ''} "
                    f"(top: {round(top_hours / total * 100)}%)."
                ),
                magnitude=top_hours / total,
                person=top_name,
                project_id=project_id,
            ))

    # Burn against plan
    fact_alloc = load_allocations(store, months, hierarchy, project_filter)
    planned = fact_alloc.groupby("project_id")["planned_hours"].sum()
    actual = fact_work.groupby("project_id")["hours"].sum()
    over, under = settings["project-over-burn"], settings["project-under-burn"]
    for project_id, planned_hours in planned.items():
        if planned_hours <= 0:
            continue
        actual_hours = float(actual.get(project_id, 0.0))
        ratio = actual_hours / planned_hours
        name = hierarchy.project_name(project_id)
        detail = f"{round(actual_hours)}h actual vs {round(planned_hours)}h planned."

        if over["enabled"] and ratio > 1 + over["over_burn_pct"]:
            alerts.append(Anomaly(
                rule_id="project-over-burn",
                severity=over["severity"],
                title=f"{name} over-burning at {round(ratio * 100)}%",
                detail=detail,
                magnitude=ratio - 1,
                project_id=project_id,
            ))
        elif under["enabled"] and actual_hours > 0 and ratio < under["under_burn_pct"]:
            alerts.append(Anomaly(
                rule_id="project-under-burn",
                severity=under["severity"],
                title=f"{name} under-burning at {round(ratio * 100)}%",
                detail=detail,
                magnitude=1 - ratio,
                project_id=project_id,
            ))

    # New person: no records before the first month in scope
    rule = settings["new-person"]
    if rule["enabled"]:
        earlier = [r for r in store.list_work_records() if r.month < months[0]]
        if earlier:
            seen = {r.engineer for r in earlier}
            for person in sorted(set(fact_work["engineer"]) - seen):
                alerts.append(Anomaly(
                    rule_id="new-person",
                    severity=rule["severity"],
                    title=f"{person} is new this month",
                    detail="First time appearing in the work records.",
                    person=person,
                ))

    logger.info("Rule alerts: %d raised for %s", len(alerts), months)
    return sort_anomalies(alerts)


def compute_anomalies(
    store: DataStore,
    month: MonthFilter | str,
    project_filter: str | None = None,
    rules: dict | None = None,
) -> list[Anomaly]:
    """Baseline anomalies and rule alerts for one month, merged and sorted."""
    target = single_month(month)
    merged = detect_anomalies(store, target, project_filter) + compute_rule_alerts(
        store, target, project_filter, rules
    )
    return sort_anomalies(merged)


# ---------------------------------------------------------------------------
# History and cross-month status
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TrackedAnomaly:
    """An anomaly with its status against the stored history.

    status is "new", "recurring" or "resolved". recurring_months counts the
    consecutive earlier snapshots the anomaly also appeared in.
    """

    anomaly: Anomaly
    status: str
    recurring_months: int = 0

    @property
    def anomaly_id(self) -> str:
        return self.anomaly.anomaly_id


def refresh_anomaly_history(
    store: DataStore,
    months: Sequence[str] | str | None = None,
    project_filter: str | None = None,
    rules: dict | None = None,
) -> list[AnomalySnapshot]:
    """Recompute and upsert the stored anomaly set for each month.

    Every month with work records is refreshed when months is None. Each set
    replaces whatever was stored under the same (month, project_filter) key.
    """
    if months is None:
        months = store.list_record_months()
    elif isinstance(months, str):
        months = [months]

    snapshots = []
    for month in months:
        target = single_month(month)
        snapshot = AnomalySnapshot(
            month=target,
            project_filter=project_filter or "",
            anomalies=tuple(compute_anomalies(store, target, project_filter, rules)),
        )
        store.put_anomaly_snapshot(snapshot)
        snapshots.append(snapshot)

    logger.info("Refreshed %d anomaly snapshots (project=%s)", len(snapshots), project_filter or "all")
    return snapshots


def get_anomalies_with_status(
    store: DataStore,
    month: MonthFilter | str,
    project_filter: str | None = None,
    rules: dict | None = None,
) -> list[TrackedAnomaly]:
    """The month's anomalies tagged against earlier stored months.

    Parameters
    ----------
    month : Target month (single month only).
    rules : Rule overrides as for compute_rule_alerts. Stored anomalies of
        a rule that is now disabled are dropped.

    Returns
    -------
    Current anomalies tagged "new" or "recurring", followed by anomalies of
    the previous stored month that are gone now, tagged "resolved".

    Assumptions
    -----------
    - Without a stored set for the month, anomalies are computed live and
      all count as new.
    - The recurring streak walks back through stored months and stops at
      the first one sharing no id with the current set.
    """
    target = single_month(month)
    key_filter = project_filter or ""

    current = store.get_anomaly_snapshot(target, key_filter)
    if current is None:
        logger.info("No stored anomalies for %s; computing live", target)
        tracked = [TrackedAnomaly(a, "new") for a in compute_anomalies(store, target, project_filter, rules)]
    else:
        prior = [s for s in store.list_anomaly_snapshots(key_filter) if s.month < target]
        current_ids = current.anomaly_ids

        streaks = dict.fromkeys(current_ids, 0)
        for snapshot in reversed(prior):
            overlap = current_ids & snapshot.anomaly_ids
            if not overlap:
                break
            for anomaly_id in overlap:
                streaks[anomaly_id] += 1

        tracked = [
            TrackedAnomaly(
                a,
                "recurring" if streaks[a.anomaly_id] else "new",
                streaks[a.anomaly_id],
            )
            for a in current.anomalies
        ]
        if prior:
            tracked += [
                TrackedAnomaly(a, "resolved")
                for a in prior[-1].anomalies if a.anomaly_id not in current_ids
            ]

    settings = _rule_settings(rules)
    return [t for t in tracked if settings.get(t.anomaly.rule_id, {}).get("enabled", True)]
