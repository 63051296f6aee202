"""
Narrative summary: deterministic prose and highlight tags for one month.

Observations are an ordered table of NarrativeRule entries. Each rule has
a trigger that inspects the month's context and returns template fields
(or None), plus a sentence template and a highlight template. Identical
inputs always produce identical text; numbers go through the registry
formatter.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable

import pandas as pd

from .analytics import compute_bus_factor_risk, compute_focus_score, compute_npd_project_comparison
from .anomalies import Anomaly, compute_rule_alerts, detect_anomalies
from .config import (
    ANOMALY_RULE_DEFAULTS,
    FIREFIGHTING_NARRATIVE_PCT,
    FRAGMENTED_SCORE,
    MAX_HIGHLIGHTS,
    MAX_OBSERVATIONS,
    MEETING_NARRATIVE_PCT,
    OVERLOADED_PCT,
    SEVERITY_ORDER,
    UNDERLOADED_PCT,
)
from .hierarchy import ProjectHierarchy
from .kpis import compute_all_kpis
from .metrics import compute_meeting_tax, load_allocations, load_work
from .models import DashboardConfig, MonthFilter, ProjectType, WorkCategory
from .periods import month_label, previous_month, single_month
from .registry import KPIFormat, format_kpi, format_kpi_value
from .store import DataStore

logger = logging.getLogger(__name__)

TEAM = "team"
PROJECT = "project"


@dataclass(frozen=True)
class NarrativeSummary:
    paragraph: str
    highlights: list[str]


@dataclass
class NarrativeContext:
    """Everything a rule trigger may look at for one (month, project)."""

    month: str
    project_filter: str | None
    kpis: dict[str, float]
    prev_kpis: dict[str, float] | None
    fact_work: pd.DataFrame
    hierarchy: ProjectHierarchy
    config: DashboardConfig
    anomalies: list[Anomaly]
    bus_factor: pd.DataFrame
    focus: pd.DataFrame
    meeting_tax: pd.DataFrame
    npd_comparison: pd.DataFrame
    planned_hours: float = 0.0


@dataclass(frozen=True)
class NarrativeRule:
    key: str
    modes: tuple[str, ...]
    trigger: Callable[[NarrativeContext], dict | None]
    template: str
    highlight: str
    severity: str = "info"
    anonymous_template: str | None = None


# ---------------------------------------------------------------------------
# Sentence helpers
# ---------------------------------------------------------------------------

def plural(count: int, singular: str, plural_form: str | None = None) -> str:
    return singular if count == 1 else (plural_form or singular + "s")


def format_list_with_and(items: list[str]) -> str:
    """Oxford-comma list: "A, B, and C"."""
    if not items:
        return ""
    if len(items) == 1:
        return items[0]
    if len(items) == 2:
        return f"{items[0]} and {items[1]}"
    return f"{', '.join(items[:-1])}, and {items[-1]}"


def format_name_list(names: list[str], limit: int = 3) -> str:
    if len(names) <= limit:
        return format_list_with_and(names)
    remaining = len(names) - limit
    return f"{', '.join(names[:limit])}, and {remaining} {plural(remaining, 'other')}"


def qualify_focus(npd_share: float) -> str:
    if npd_share > 0.6:
        return "strongly"
    if npd_share > 0.4:
        return "moderately"
    return "lightly"


def qualify_plan_deviation(pct_of_plan: int) -> str:
    if 90 <= pct_of_plan <= 110:
        return ", tracking close to plan"
    if pct_of_plan > 130:
        return ", significantly exceeding the planned budget"
    if pct_of_plan > 110:
        return ", slightly over plan"
    if pct_of_plan < 50:
        return ", well below planned pace"
    if pct_of_plan < 90:
        return ", slightly under plan"
    return ""


def trend_clause(key: str, current: float, previous: float | None) -> str:
    """", up from 12% last month" style suffix; empty when unchanged."""
    if previous is None:
        return ""
    now, before = format_kpi(key, current), format_kpi(key, previous)
    if now == before:
        return ""
    word = "up" if current > previous else "down"
    return f", {word} from {before} last month"


def _hours(value: float) -> str:
    return format_kpi_value(value, KPIFormat.HOURS)


def _pct(value: float) -> str:
    return f"{format_kpi_value(value, KPIFormat.PERCENT)}%"


# ---------------------------------------------------------------------------
# Triggers: team mode
# ---------------------------------------------------------------------------

def _at_risk(ctx: NarrativeContext) -> pd.DataFrame:
    if ctx.bus_factor.empty:
        return ctx.bus_factor
    return ctx.bus_factor[ctx.bus_factor["risk_level"].isin(["critical", "high"])]


def _bus_factor_risks(ctx):
    at_risk = _at_risk(ctx)
    if at_risk.empty:
        return None
    count = len(at_risk)
    names = list(at_risk["project_id"].iloc[:2])
    if count > 2:
        names.append(f"{count - 2} more")
    return {
        "count": count,
        "noun": plural(count, "project"),
        "verb": plural(count, "has", "have"),
        "names": format_list_with_and(names),
        "magnitude": float(at_risk["top_contributor_pct"].max()),
    }


def _firefighting_load(ctx):
    load = ctx.kpis.get("firefighting_load", 0.0)
    if load <= FIREFIGHTING_NARRATIVE_PCT:
        return None
    previous = ctx.prev_kpis.get("firefighting_load") if ctx.prev_kpis else None
    return {
        "pct": format_kpi("firefighting_load", load),
        "trend": trend_clause("firefighting_load", load, previous),
        "magnitude": load,
    }


def _focus_fragmentation(ctx):
    if ctx.focus.empty:
        return None
    fragmented = ctx.focus[ctx.focus["focus_score"] < FRAGMENTED_SCORE]
    if fragmented.empty:
        return None
    top = fragmented.iloc[0]
    count = len(fragmented)
    return {
        "name": top["engineer"],
        "avg": f"{top['avg_projects_per_day']:.1f}",
        "streams": int(top["monthly_project_count"]),
        "count": count,
        "noun": plural(count, "engineer"),
        "magnitude": 1 - top["focus_score"] / 100,
    }


def _overtime_indicators(ctx):
    overtime = [a for a in ctx.anomalies if a.rule_id == "overtime"]
    if not overtime:
        return None
    top = overtime[0]
    return {
        "name": top.person,
        "days": int(top.current or 0),
        "count": len(overtime),
        "noun": plural(len(overtime), "engineer"),
        "magnitude": top.magnitude,
    }


def _meeting_tax(ctx):
    if ctx.meeting_tax.empty:
        return None
    heavy = ctx.meeting_tax[ctx.meeting_tax["meeting_pct"] > MEETING_NARRATIVE_PCT]
    if heavy.empty:
        return None
    top = heavy.iloc[0]
    return {
        "name": top["engineer"],
        "pct": _pct(top["meeting_pct"]),
        "count": len(heavy),
        "noun": plural(len(heavy), "engineer"),
        "magnitude": float(top["meeting_pct"]),
    }


def _burning(ctx, over: bool) -> pd.DataFrame:
    comp = ctx.npd_comparison
    if comp.empty:
        return comp
    planned = comp[comp["planned_hours"] > 0]
    if over:
        limit = ANOMALY_RULE_DEFAULTS["project-over-burn"]["over_burn_pct"]
        rows = planned[planned["delta_pct"] > limit]
        return rows.sort_values(["delta_pct", "project_id"], ascending=[False, True])
    limit = ANOMALY_RULE_DEFAULTS["project-under-burn"]["under_burn_pct"]
    rows = planned[planned["delta_pct"] < limit - 1]
    return rows.sort_values(["delta_pct", "project_id"])


def _project_over_burn(ctx):
    rows = _burning(ctx, over=True)
    if rows.empty:
        return None
    top = rows.iloc[0]
    return {
        "project": top["project_name"],
        "pct": _pct(1 + top["delta_pct"]),
        "count": len(rows),
        "noun": plural(len(rows), "project"),
        "magnitude": float(top["delta_pct"]),
    }


def _project_under_burn(ctx):
    rows = _burning(ctx, over=False)
    if rows.empty:
        return None
    top = rows.iloc[0]
    return {
        "project": top["project_name"],
        "pct": _pct(1 + top["delta_pct"]),
        "count": len(rows),
        "noun": plural(len(rows), "project"),
        "magnitude": float(-top["delta_pct"]),
    }


def _lab_tech_contribution(ctx):
    hours = ctx.kpis.get("lab_tech_hours", 0.0)
    if hours <= 0:
        return None
    lab = ctx.fact_work[ctx.fact_work["category"] == WorkCategory.LAB_TECH.value]
    projects = lab["project_id"].nunique()
    return {
        "hours": _hours(hours),
        "count": projects,
        "noun": plural(projects, "project"),
        "magnitude": 0.0,
    }


# ---------------------------------------------------------------------------
# Triggers: project mode
# ---------------------------------------------------------------------------

def _contributors(ctx) -> list[str]:
    hours = ctx.fact_work.groupby("engineer")["hours"].sum()
    return [name for name, _ in sorted(hours.items(), key=lambda kv: (-kv[1], kv[0]))]


def _key_person_risk(ctx):
    at_risk = _at_risk(ctx)
    if at_risk.empty:
        return None
    top = at_risk.iloc[0]
    return {
        "name": top["top_contributor"],
        "pct": _pct(top["top_contributor_pct"]),
        "magnitude": float(top["top_contributor_pct"]),
    }


def _primary_contributor_fragmentation(ctx):
    contributors = _contributors(ctx)
    if not contributors or ctx.focus.empty:
        return None
    primary = contributors[0]
    row = ctx.focus[ctx.focus["engineer"] == primary]
    if row.empty:
        return None
    others = int(row.iloc[0]["monthly_project_count"]) - 1
    if others <= 2:
        return None
    return {
        "name": primary,
        "others": others,
        "total": others + 1,
        "magnitude": 1 - row.iloc[0]["focus_score"] / 100,
    }


def _plan_ratio(ctx) -> float | None:
    if ctx.planned_hours <= 0:
        return None
    return float(ctx.fact_work["hours"].sum()) / ctx.planned_hours


def _plan_over_burn(ctx):
    ratio = _plan_ratio(ctx)
    if ratio is None or ratio - 1 <= ANOMALY_RULE_DEFAULTS["project-over-burn"]["over_burn_pct"]:
        return None
    return {
        "over": _pct(ratio - 1),
        "pct": _pct(ratio),
        "actual": _hours(ctx.fact_work["hours"].sum()),
        "planned": _hours(ctx.planned_hours),
        "magnitude": ratio - 1,
    }


def _plan_under_burn(ctx):
    ratio = _plan_ratio(ctx)
    if ratio is None or ratio >= ANOMALY_RULE_DEFAULTS["project-under-burn"]["under_burn_pct"]:
        return None
    return {
        "pct": _pct(ratio),
        "actual": _hours(ctx.fact_work["hours"].sum()),
        "planned": _hours(ctx.planned_hours),
        "magnitude": 1 - ratio,
    }


# ---------------------------------------------------------------------------
# Rule table (default priority order)
# ---------------------------------------------------------------------------
NARRATIVE_RULES: list[NarrativeRule] = [
    NarrativeRule(
        "bus_factor_risks", (TEAM,), _bus_factor_risks,
        "{count} {noun} ({names}) {verb} single-point-of-failure risk with one engineer carrying the work",
        "Bus factor risk: {count} {noun}",
        severity="alert",
        anonymous_template="{count} {noun} {verb} single-point-of-failure risk with insufficient contributor diversity",
    ),
    NarrativeRule(
        "key_person_risk", (PROJECT,), _key_person_risk,
        "this project depends on a single contributor ({name}), who accounted for {pct} of all hours",
        "Single contributor: {name}",
        severity="alert",
        anonymous_template="this project depends on a single contributor, creating key-person risk",
    ),
    NarrativeRule(
        "firefighting_load", (TEAM,), _firefighting_load,
        "unplanned firefighting reached {pct}{trend}",
        "Firefighting: {pct}",
        severity="warning",
    ),
    NarrativeRule(
        "focus_fragmentation", (TEAM,), _focus_fragmentation,
        "{name} shows significant context fragmentation, averaging {avg} projects per day across {streams} work streams",
        "Fragmented: {count} {noun}",
        severity="warning",
        anonymous_template="one engineer shows significant context fragmentation, averaging {avg} projects per day",
    ),
    NarrativeRule(
        "primary_contributor_fragmentation", (PROJECT,), _primary_contributor_fragmentation,
        "{name}, the primary contributor, is also active on {others} other projects this month, which may affect throughput",
        "{name}: {total} projects",
        severity="warning",
        anonymous_template="the primary contributor is also active on {others} other projects this month",
    ),
    NarrativeRule(
        "overtime_indicators", (TEAM,), _overtime_indicators,
        "{name} logged overtime on {days} days this month, which may indicate unsustainable workload",
        "Overtime: {count} {noun}",
        severity="warning",
        anonymous_template="a team member logged overtime on {days} days this month, which may indicate unsustainable workload",
    ),
    NarrativeRule(
        "meeting_tax", (TEAM,), _meeting_tax,
        "{name} spent {pct} of logged hours in meetings, leaving limited time for engineering work",
        "Meeting-heavy: {count} {noun}",
        anonymous_template="one engineer spent {pct} of logged hours in meetings",
    ),
    NarrativeRule(
        "project_over_burn", (TEAM,), _project_over_burn,
        "{project} is over-burning at {pct} of planned hours",
        "Over-burning: {count} {noun}",
        severity="warning",
    ),
    NarrativeRule(
        "plan_over_burn", (PROJECT,), _plan_over_burn,
        "hours are running {over} above plan, with {actual}h logged against {planned}h planned",
        "Over plan: {pct}",
        severity="warning",
    ),
    NarrativeRule(
        "project_under_burn", (TEAM,), _project_under_burn,
        "{project} is significantly under planned pace at {pct} of planned hours",
        "Under-burning: {count} {noun}",
    ),
    NarrativeRule(
        "plan_under_burn", (PROJECT,), _plan_under_burn,
        "only {pct} of planned hours have been logged ({actual}h of {planned}h)",
        "Under plan: {pct}",
    ),
    NarrativeRule(
        "lab_tech_contribution", (TEAM,), _lab_tech_contribution,
        "lab technicians contributed {hours} hours of support across {count} {noun}",
        "Lab tech support: {hours} hrs",
    ),
]

RULES_BY_KEY = {rule.key: rule for rule in NARRATIVE_RULES}


@dataclass(frozen=True)
class NarrativeConfig:
    enabled: frozenset[str] = field(
        default_factory=lambda: frozenset(RULES_BY_KEY) - {"project_under_burn", "lab_tech_contribution"}
    )
    priority: tuple[str, ...] = tuple(rule.key for rule in NARRATIVE_RULES)
    name_individuals: bool = True
    include_trends: bool = True
    max_observations: int = MAX_OBSERVATIONS
    custom_opening: str = ""
    custom_closing: str = ""


@dataclass(frozen=True)
class HighlightCandidate:
    """A highlight waiting to be ranked."""

    text: str
    severity: str
    magnitude: float
    priority: int


def rank_highlights(candidates: list[HighlightCandidate], limit: int = MAX_HIGHLIGHTS) -> list[str]:
    """Most severe first, then largest magnitude, then rule priority."""
    ordered = sorted(
        candidates,
        key=lambda c: (SEVERITY_ORDER.get(c.severity, len(SEVERITY_ORDER)), -c.magnitude, c.priority, c.text),
    )
    seen, result = set(), []
    for candidate in ordered:
        if candidate.text in seen:
            continue
        seen.add(candidate.text)
        result.append(candidate.text)
        if len(result) == limit:
            break
    return result


# ---------------------------------------------------------------------------
# Rule evaluation
# ---------------------------------------------------------------------------

def _priority_index(config: NarrativeConfig, key: str) -> int:
    return config.priority.index(key) if key in config.priority else len(config.priority)


def evaluate_rules(
    ctx: NarrativeContext,
    mode: str,
    config: NarrativeConfig,
) -> list[tuple[NarrativeRule, str, HighlightCandidate]]:
    """Run every enabled rule for the mode, sorted by configured priority.

    Returns (rule, sentence, highlight candidate) for each rule that fired.
    """
    fired = []
    for rule in NARRATIVE_RULES:
        if mode not in rule.modes or rule.key not in config.enabled:
            continue
        fields = rule.trigger(ctx)
        if fields is None:
            continue
        template = rule.template
        if not config.name_individuals and rule.anonymous_template:
            template = rule.anonymous_template
        priority = _priority_index(config, rule.key)
        candidate = HighlightCandidate(
            text=rule.highlight.format(**fields),
            severity=rule.severity,
            magnitude=float(fields.get("magnitude", 0.0)),
            priority=priority,
        )
        fired.append((rule, template.format(**fields), candidate))

    fired.sort(key=lambda item: item[2].priority)
    return fired


def _observation_sentence(sentences: list[str]) -> str:
    if not sentences:
        return ""
    return ". ".join(s[:1].upper() + s[1:] for s in sentences) + "."


def _anomaly_candidates(anomalies: list[Anomaly], base_priority: int) -> list[HighlightCandidate]:
    return [
        HighlightCandidate(text=a.title, severity=a.severity, magnitude=a.magnitude, priority=base_priority)
        for a in anomalies if a.rule_id == "kpi-deviation"
    ]


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def _build_context(store: DataStore, month: str, project_filter: str | None, include_trends: bool) -> NarrativeContext:
    _, hierarchy, fact_work = load_work(store, month, project_filter)

    prev_kpis = None
    prev = previous_month(month)
    if include_trends and prev in store.list_record_months():
        prev_kpis = compute_all_kpis(store, prev, project_filter)

    anomalies = detect_anomalies(store, month, project_filter) + compute_rule_alerts(store, month, project_filter)

    planned_hours = 0.0
    if project_filter:
        alloc = load_allocations(store, [month], hierarchy, project_filter)
        planned_hours = float(alloc["planned_hours"].sum()) if len(alloc) else 0.0

    return NarrativeContext(
        month=month,
        project_filter=project_filter,
        kpis=compute_all_kpis(store, month, project_filter),
        prev_kpis=prev_kpis,
        fact_work=fact_work,
        hierarchy=hierarchy,
        config=store.get_config(),
        anomalies=anomalies,
        bus_factor=compute_bus_factor_risk(store, month, project_filter),
        # team-wide, so a project's contributors are judged on all their work
        focus=compute_focus_score(store, month),
        meeting_tax=compute_meeting_tax(store, month, project_filter),
        npd_comparison=compute_npd_project_comparison(store, month),
        planned_hours=planned_hours,
    )


def _team_narrative(ctx: NarrativeContext, config: NarrativeConfig) -> NarrativeSummary:
    label = month_label(ctx.month)
    if ctx.fact_work.empty:
        return NarrativeSummary(f"No work records available for {label}.", [])

    kpis = ctx.kpis
    sentences = []
    if config.custom_opening.strip():
        sentences.append(config.custom_opening.strip())

    sentences.append(
        f"In {label}, the team of {format_kpi('active_engineers', kpis['active_engineers'])} engineers "
        f"logged {format_kpi('total_hours_logged', kpis['total_hours_logged'])} hours across "
        f"{format_kpi('projects_touched', kpis['projects_touched'])} projects, achieving "
        f"{format_kpi('team_utilization', kpis['team_utilization'])} utilization."
    )

    mix = (
        f"Work was {qualify_focus(kpis['npd_focus'])} focused on NPD "
        f"({format_kpi('npd_focus', kpis['npd_focus'])} of hours), with "
        f"{_hours(kpis['sustaining_hours'])} hours on sustaining activities"
    )
    if kpis["firefighting_load"] > FIREFIGHTING_NARRATIVE_PCT and "firefighting_load" in config.enabled:
        mix += f", of which {format_kpi('firefighting_load', kpis['firefighting_load'])} was unplanned firefighting"
    sentences.append(mix + ".")

    fired = evaluate_rules(ctx, TEAM, config)
    selected = fired[: config.max_observations]
    if selected:
        sentences.append(_observation_sentence([sentence for _, sentence, _ in selected]))

    candidates = [candidate for _, _, candidate in fired]
    candidates += _anomaly_candidates(ctx.anomalies, len(config.priority))

    # Capacity
    person_hours = ctx.fact_work[
        ~ctx.fact_work["category"].isin([WorkCategory.OOO.value, WorkCategory.LAB_TECH.value])
    ].groupby("engineer")["hours"].sum()
    underloaded, overloaded = [], []
    for person, hours in sorted(person_hours.items()):
        capacity = ctx.config.capacity_for(person)
        if hours > capacity * OVERLOADED_PCT:
            overloaded.append(person)
        elif hours < capacity * UNDERLOADED_PCT:
            underloaded.append(person)

    if underloaded:
        n = len(underloaded)
        lead = f"{n} team {plural(n, 'member')} {plural(n, 'has', 'have')} available capacity"
        if config.name_individuals:
            names = ", ".join(underloaded[:3]) + (" and others" if n > 3 else "")
            sentences.append(f"{lead} below {_pct(UNDERLOADED_PCT)} utilization ({names}).")
        else:
            sentences.append(f"{lead} (below {_pct(UNDERLOADED_PCT)} utilization).")
        candidates.append(HighlightCandidate(
            f"Available capacity: {', '.join(underloaded)}", "info", 0.0, len(config.priority) + 1,
        ))
    elif kpis["team_utilization"] > ctx.config.over_utilization_threshold:
        if config.name_individuals and overloaded:
            sentences.append(
                "The team is running above full capacity with no slack available, with "
                f"{' and '.join(overloaded[:2])} logging the most hours over capacity."
            )
        else:
            sentences.append("The team is running above full capacity with no slack available.")
        candidates.append(HighlightCandidate(
            "No slack capacity", "warning", kpis["team_utilization"] - 1, len(config.priority) + 1,
        ))

    if config.custom_closing.strip():
        sentences.append(config.custom_closing.strip())

    return NarrativeSummary(" ".join(sentences), rank_highlights(candidates))


def _project_narrative(ctx: NarrativeContext, config: NarrativeConfig) -> NarrativeSummary:
    project_id = ctx.project_filter
    label = month_label(ctx.month)
    name = ctx.hierarchy.project_name(project_id)
    project_type = (ctx.hierarchy.project_type(project_id) or ProjectType.OTHER).value

    if ctx.fact_work.empty:
        return NarrativeSummary(
            f"{name} ({project_id}) had no recorded activity in {label}.",
            [f"{project_type} project", "No activity"],
        )

    sentences = []
    if config.custom_opening.strip():
        sentences.append(config.custom_opening.strip())

    contributors = _contributors(ctx)
    total = _hours(ctx.fact_work["hours"].sum())
    if len(contributors) == 1:
        who = f", with {contributors[0]} as the sole contributor" if config.name_individuals else ", with a single contributor"
        sentences.append(f"{name} ({project_id}) logged {total} hours in {label}{who}.")
    else:
        n = len(contributors)
        who = f": {format_name_list(contributors)}" if config.name_individuals else ""
        sentences.append(f"{name} ({project_id}) logged {total} hours in {label} across {n} contributors{who}.")

    by_category = ctx.fact_work.groupby("category")["hours"].sum()
    if len(by_category) > 1:
        parts = [
            f"{category.lower()} ({_hours(hours)}h)"
            for category, hours in sorted(by_category.items(), key=lambda kv: (-kv[1], kv[0]))
        ]
        sentences.append(f"Work was split between {format_list_with_and(parts)}.")

    candidates = []
    ratio = _plan_ratio(ctx)
    if ratio is not None:
        pct_of_plan = int(round(ratio * 100))
        sentences.append(
            f"This represents {pct_of_plan}% of the {_hours(ctx.planned_hours)}h planned for the month"
            f"{qualify_plan_deviation(pct_of_plan)}."
        )
        candidates.append(HighlightCandidate(f"On plan: {pct_of_plan}%", "info", 0.0, len(config.priority)))

    fired = evaluate_rules(ctx, PROJECT, config)
    selected = fired[: config.max_observations]
    if selected:
        sentences.append(_observation_sentence([sentence for _, sentence, _ in selected]))
    candidates += [candidate for _, _, candidate in fired]
    candidates += _anomaly_candidates(ctx.anomalies, len(config.priority))

    if config.custom_closing.strip():
        sentences.append(config.custom_closing.strip())

    standard = len(config.priority) + 2
    candidates.append(HighlightCandidate(f"{project_type} project", "info", 0.0, standard))
    if len(contributors) > 1:
        candidates.append(HighlightCandidate(f"{len(contributors)} contributors", "info", 0.0, standard))

    return NarrativeSummary(" ".join(sentences), rank_highlights(candidates))


def generate_narrative(
    store: DataStore,
    month: MonthFilter | str,
    project_filter: str | None = None,
    config: NarrativeConfig | None = None,
) -> NarrativeSummary:
    """Paragraph and highlight tags for one month.

    Team mode when project_filter is None, single-project mode otherwise.
    """
    target = single_month(month)
    config = config or NarrativeConfig()
    ctx = _build_context(store, target, project_filter, config.include_trends)

    if project_filter:
        summary = _project_narrative(ctx, config)
    else:
        summary = _team_narrative(ctx, config)

    logger.info("Generated %s narrative for %s with %d highlights",
                PROJECT if project_filter else TEAM, target, len(summary.highlights))
    return summary
