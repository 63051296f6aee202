"""
Configuration: policy constants and defaults.

Runtime values (team name, capacity, per-engineer overrides) come from the
data store's DashboardConfig. Everything here is business policy that the
analytics read as named constants rather than inline numbers.
"""

# ---------------------------------------------------------------------------
# Team defaults, used when the store carries no configuration
# ---------------------------------------------------------------------------
DEFAULT_TEAM_NAME = "Engineering"
DEFAULT_MONTHLY_CAPACITY_HOURS = 140.0
DEFAULT_OVER_UTILIZATION_THRESHOLD = 1.0

# ---------------------------------------------------------------------------
# Project hierarchy
# ---------------------------------------------------------------------------
# Deepest parent chain walked before a project is treated as a root.
MAX_HIERARCHY_DEPTH = 16

# ---------------------------------------------------------------------------
# Work classification
# ---------------------------------------------------------------------------
# Task names containing this keyword (case-insensitive) are meeting time.
MEETING_KEYWORD = "meeting"

# ---------------------------------------------------------------------------
# Focus score
# ---------------------------------------------------------------------------
# A day is high-fragmentation when distinct projects exceed this count.
FRAGMENTATION_THRESHOLD = 3
# Fraction of the base score removed when every day is high-fragmentation.
FRAGMENTATION_PENALTY = 0.5
# Engineers scoring below this are called out as fragmented.
FRAGMENTED_SCORE = 35

# ---------------------------------------------------------------------------
# Bus factor
# ---------------------------------------------------------------------------
BUS_FACTOR_COVERAGE = 0.8
BUS_FACTOR_MIN_PROJECT_HOURS = 5.0

# Risk breakpoints. Lower bus factor and higher concentration never lower
# the risk level.
RISK_CRITICAL_TOP_PCT = 0.9
RISK_MEDIUM_MAX_BUS_FACTOR = 2
RISK_MEDIUM_TOP_PCT = 0.5

RISK_ORDER = {"critical": 0, "high": 1, "medium": 2, "low": 3}

# ---------------------------------------------------------------------------
# Anomaly detection (trailing baseline)
# ---------------------------------------------------------------------------
ANOMALY_HISTORY_MONTHS = 3

# Relative deviation from the baseline mean, checked in order.
ANOMALY_SEVERITY_THRESHOLDS: list[tuple[str, float]] = [
    ("alert", 0.50),
    ("warning", 0.25),
    ("info", 0.10),
]

SEVERITY_ORDER = {"alert": 0, "warning": 1, "info": 2}

# ---------------------------------------------------------------------------
# Rule alerts
# ---------------------------------------------------------------------------
# rule_id -> severity and parameter defaults
ANOMALY_RULE_DEFAULTS: dict[str, dict] = {
    "overtime": {
        "severity": "warning",
        "min_days": 3,
        "daily_hours_threshold": 8.0,
    },
    "context-switching": {
        "severity": "warning",
        "focus_score_threshold": 30,
    },
    "bus-factor": {
        "severity": "alert",
        "max_bus_factor": 1,
        "min_project_hours": 20.0,
        "npd_only": True,
    },
    "meeting-heavy": {
        "severity": "info",
        "meeting_pct_threshold": 0.20,
    },
    "firefighting-spike": {
        "severity": "warning",
        "firefighting_pct_threshold": 0.15,
    },
    "project-over-burn": {
        "severity": "warning",
        "over_burn_pct": 0.30,
    },
    "project-under-burn": {
        "severity": "info",
        "under_burn_pct": 0.50,
    },
    "new-person": {
        "severity": "info",
    },
}

# ---------------------------------------------------------------------------
# Capacity forecast
# ---------------------------------------------------------------------------
UNDER_ALLOCATED_PCT = 0.5

# ---------------------------------------------------------------------------
# Narrative
# ---------------------------------------------------------------------------
MAX_HIGHLIGHTS = 5
MAX_OBSERVATIONS = 2
FIREFIGHTING_NARRATIVE_PCT = 0.10
MEETING_NARRATIVE_PCT = 0.15
OVERLOADED_PCT = 1.15
UNDERLOADED_PCT = 0.60

# ---------------------------------------------------------------------------
# Milestones
# ---------------------------------------------------------------------------
MILESTONE_DUE_SOON_DAYS = 30
MILESTONE_GATES = ("dr1", "dr2", "dr3", "launch")
