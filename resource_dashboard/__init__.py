"""
Resource Dashboard: engineering capacity and KPI analytics.

Derivation core for an engineering-team resource dashboard. Turns time
tracking exports (work records), planned allocations, the project tree,
gate milestones and skill ratings into KPI results, trend snapshots,
anomalies and a plain-English manager narrative.

To swap the in-memory store for a real backend:
    Implement store.DataStore (browser storage, a database, files). Every
    metric reads through that interface, so the computations and the
    DataFrame schemas remain unchanged.

To connect to a front end:
    Call dashboard.get_manager_overview(store, month) to get a plain dict
    suitable for rendering KPI cards, the narrative paragraph and the
    anomaly list. get_kpi_trend() and get_management_summary() feed trend
    charts and tables.

To add new KPIs:
    Add an entry to registry._DEFINITIONS and emit a value under the same
    key from kpis.compute_all_kpis(). registry.validate_registry() reports
    definitions with inconsistent thresholds or preset references.
"""
