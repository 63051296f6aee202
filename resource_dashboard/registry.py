"""
KPI registry: the single catalog of what each KPI means.

Every entry is plain data: the results key it reads, how it is formatted,
how it is coloured, and whether it still makes sense when one project is
selected. Trend display, export and the narrative all read KPIs through
this table.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Mapping


class KPIFormat(str, Enum):
    PERCENT = "percent"
    HOURS = "hours"
    COUNT = "count"
    DECIMAL = "decimal"


class KPICategory(str, Enum):
    UTILIZATION = "utilization"
    WORK_MIX = "work_mix"
    TEAM_HEALTH = "team_health"
    THROUGHPUT = "throughput"


@dataclass(frozen=True)
class Thresholds:
    """Colour breakpoints.

    invert=False: higher is better, green at or above `green`, yellow at or
    above `yellow`. invert=True: lower is better, green at or below `green`,
    yellow at or below `yellow`.
    """

    green: float
    yellow: float
    invert: bool = False


@dataclass(frozen=True)
class KPIDefinition:
    key: str
    label: str
    short_label: str
    format: KPIFormat
    category: KPICategory
    thresholds: Thresholds | None
    description: str
    source_key: str
    applicable_to_single_project: bool

    def get_value(self, results: Mapping[str, float]) -> float | None:
        value = results.get(self.source_key)
        return None if value is None else float(value)


def _kpi(key, label, short_label, fmt, category, thresholds, description, single_project):
    return KPIDefinition(
        key=key,
        label=label,
        short_label=short_label,
        format=fmt,
        category=category,
        thresholds=thresholds,
        description=description,
        source_key=key,
        applicable_to_single_project=single_project,
    )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------
_DEFINITIONS = [
    _kpi("team_utilization", "Team Utilization", "Utilization",
         KPIFormat.PERCENT, KPICategory.UTILIZATION, Thresholds(0.85, 0.70),
         "Productive hours as a share of active engineers' capacity.", True),
    _kpi("npd_focus", "NPD Focus", "NPD Focus",
         KPIFormat.PERCENT, KPICategory.WORK_MIX, Thresholds(0.60, 0.40),
         "Share of productive hours spent on New Product Development.", False),
    _kpi("firefighting_load", "Firefighting Load", "Firefighting",
         KPIFormat.PERCENT, KPICategory.WORK_MIX, Thresholds(0.10, 0.20, invert=True),
         "Share of productive hours spent on unplanned firefighting work.", False),
    _kpi("active_engineers", "Active Engineers", "Engineers",
         KPIFormat.COUNT, KPICategory.UTILIZATION, None,
         "Engineers who logged productive hours.", True),
    _kpi("total_hours_logged", "Total Hours Logged", "Total Hours",
         KPIFormat.HOURS, KPICategory.UTILIZATION, None,
         "Productive hours (NPD + Sustaining + Sprint), excluding admin and out-of-office.", True),
    _kpi("projects_touched", "Projects Touched", "Projects",
         KPIFormat.COUNT, KPICategory.THROUGHPUT, None,
         "Distinct projects with productive hours.", False),
    _kpi("bus_factor_risk", "Bus Factor Risk", "Bus Factor",
         KPIFormat.PERCENT, KPICategory.TEAM_HEALTH, Thresholds(0.25, 0.50, invert=True),
         "Share of significant projects at critical or high knowledge-concentration risk.", False),
    _kpi("avg_projects_per_engineer", "Avg Projects per Engineer", "Projects / Eng",
         KPIFormat.DECIMAL, KPICategory.TEAM_HEALTH, Thresholds(3, 5, invert=True),
         "Average distinct projects per engineer. Lower means more focused.", False),
    _kpi("avg_focus_score", "Avg Focus Score", "Focus Score",
         KPIFormat.COUNT, KPICategory.TEAM_HEALTH, Thresholds(60, 40),
         "Mean daily focus score (0-100) across people with dated records.", False),
    _kpi("meeting_tax_hours", "Meeting Tax", "Meetings",
         KPIFormat.HOURS, KPICategory.TEAM_HEALTH, Thresholds(30, 60, invert=True),
         "Hours on tasks named as meetings.", False),
    _kpi("lab_utilization", "Lab Utilization", "Lab Ratio",
         KPIFormat.PERCENT, KPICategory.WORK_MIX, None,
         "Lab-tech hours as a share of productive plus lab-tech hours.", True),
    _kpi("admin_overhead", "Admin Overhead", "Admin",
         KPIFormat.PERCENT, KPICategory.TEAM_HEALTH, Thresholds(0.08, 0.15, invert=True),
         "Admin hours as a share of productive plus admin hours.", False),
    _kpi("sustaining_load", "Sustaining Load", "Sustaining",
         KPIFormat.PERCENT, KPICategory.WORK_MIX, Thresholds(0.40, 0.60, invert=True),
         "Share of productive hours spent on sustaining work.", False),
    _kpi("unplanned_sustaining_pct", "Unplanned Sustaining", "Unplanned %",
         KPIFormat.PERCENT, KPICategory.WORK_MIX, Thresholds(0.20, 0.40, invert=True),
         "Share of sustaining hours that were firefighting.", False),
    _kpi("avg_hours_per_engineer", "Avg Hours / Engineer", "Avg Hours",
         KPIFormat.HOURS, KPICategory.UTILIZATION, None,
         "Productive hours per active engineer.", True),
    _kpi("load_spread", "Load Spread", "Spread",
         KPIFormat.HOURS, KPICategory.TEAM_HEALTH, Thresholds(40, 80, invert=True),
         "Gap in productive hours between the most and least loaded engineer.", False),
    _kpi("deep_work_ratio", "Deep Work Ratio", "Deep Work",
         KPIFormat.PERCENT, KPICategory.UTILIZATION, Thresholds(0.90, 0.80),
         "Productive hours as a share of productive plus admin hours.", False),
]

KPI_REGISTRY: dict[str, KPIDefinition] = {d.key: d for d in _DEFINITIONS}

KPI_PRESETS: dict[str, dict] = {
    "executive": {
        "label": "Executive",
        "cards": ["team_utilization", "npd_focus", "firefighting_load",
                  "active_engineers", "total_hours_logged", "projects_touched"],
    },
    "engineering_lead": {
        "label": "Engineering Lead",
        "cards": ["team_utilization", "bus_factor_risk", "avg_focus_score",
                  "avg_projects_per_engineer", "firefighting_load", "admin_overhead"],
    },
    "capacity_planning": {
        "label": "Capacity Planning",
        "cards": ["team_utilization", "avg_hours_per_engineer", "load_spread",
                  "active_engineers", "sustaining_load", "lab_utilization"],
    },
}

DEFAULT_KPI_CARDS = KPI_PRESETS["executive"]["cards"]


# ---------------------------------------------------------------------------
# Formatting and colouring
# ---------------------------------------------------------------------------

def format_kpi_value(value: float | None, fmt: KPIFormat) -> str:
    """Render a KPI value for display.

    Percent values are fractions and render as whole percentages without
    the sign. Hours keep one decimal only when fractional.
    """
    if value is None:
        return "n/a"
    fmt = KPIFormat(fmt)
    if fmt is KPIFormat.PERCENT:
        return str(int(round(value * 100)))
    if fmt is KPIFormat.HOURS:
        rounded = round(value, 1)
        return str(int(rounded)) if rounded == int(rounded) else f"{rounded:.1f}"
    if fmt is KPIFormat.COUNT:
        return str(int(round(value)))
    return f"{value:.1f}"


def format_kpi(key: str, value: float | None) -> str:
    """Format with the registry format, adding a % sign for percents."""
    definition = KPI_REGISTRY[key]
    text = format_kpi_value(value, definition.format)
    if value is not None and definition.format is KPIFormat.PERCENT:
        return f"{text}%"
    return text


def kpi_color(value: float | None, thresholds: Thresholds | None) -> str:
    """Return 'green', 'yellow', 'red', or 'neutral'."""
    if thresholds is None or value is None:
        return "neutral"

    if thresholds.invert:
        if value <= thresholds.green:
            return "green"
        if value <= thresholds.yellow:
            return "yellow"
        return "red"

    if value >= thresholds.green:
        return "green"
    if value >= thresholds.yellow:
        return "yellow"
    return "red"


def trend_direction(current: float | None, previous: float | None) -> str:
    """'up', 'down', or 'flat' (also 'flat' when either side is missing)."""
    if current is None or previous is None or current == previous:
        return "flat"
    return "up" if current > previous else "down"


def trend_sentiment(key: str, current: float | None, previous: float | None) -> str:
    """Whether the move from `previous` to `current` is good, bad, or neutral."""
    thresholds = KPI_REGISTRY[key].thresholds
    direction = trend_direction(current, previous)
    if thresholds is None or direction == "flat":
        return "neutral"
    improved = (direction == "down") if thresholds.invert else (direction == "up")
    return "good" if improved else "bad"


def applicable_kpis(single_project: bool) -> list[KPIDefinition]:
    """Registry entries in catalog order, minus those undefined for one project."""
    return [
        d for d in KPI_REGISTRY.values()
        if d.applicable_to_single_project or not single_project
    ]


def validate_registry(registry: Mapping[str, KPIDefinition] | None = None) -> list[str]:
    """Return a list of problems found in the catalog (empty when valid)."""
    registry = KPI_REGISTRY if registry is None else registry
    problems = []
    for key, definition in registry.items():
        if definition.key != key:
            problems.append(f"{key}: entry key is {definition.key!r}")
        if not definition.label or not definition.short_label:
            problems.append(f"{key}: missing label")
        t = definition.thresholds
        if t is not None:
            if t.invert and t.green > t.yellow:
                problems.append(f"{key}: inverted thresholds must have green <= yellow")
            if not t.invert and t.green < t.yellow:
                problems.append(f"{key}: thresholds must have green >= yellow")

    for name, preset in KPI_PRESETS.items():
        for card in preset["cards"]:
            if card not in registry:
                problems.append(f"preset {name}: unknown KPI {card!r}")
    return problems
