"""
In-memory data store tests: month filtering and snapshot upserts.
"""

import threading

from resource_dashboard.models import KPISnapshot


class TestReads:

    def test_record_months(self, make_store):
        s = make_store({"2025-02": 30.0, "2025-01": 30.0})
        assert s.list_record_months() == ["2025-01", "2025-02"]

    def test_month_filtered_records(self, make_store):
        s = make_store({"2025-01": 30.0, "2025-02": 30.0})
        assert {r.month for r in s.list_work_records(["2025-02"])} == {"2025-02"}
        assert len(s.list_work_records()) == 16

    def test_skill_requirements_by_project(self, store):
        assert [r.skill for r in store.list_skill_requirements("P1")] == ["firmware", "test"]
        assert store.list_skill_requirements("S1") == []

    def test_capacity_override(self, store):
        config = store.get_config()
        assert config.capacity_for("Bo") == 80.0
        assert config.capacity_for("Ann") == 100.0


class TestSnapshots:

    def test_missing_snapshot(self, store):
        assert store.get_snapshot("2025-01") is None

    def test_last_write_wins(self, store):
        store.put_snapshot(KPISnapshot("2025-01", "", {"team_utilization": 0.5}))
        store.put_snapshot(KPISnapshot("2025-01", "", {"team_utilization": 0.7}))
        assert store.get_snapshot("2025-01").results == {"team_utilization": 0.7}
        assert len(store.list_snapshots()) == 1

    def test_project_filter_is_part_of_key(self, store):
        store.put_snapshot(KPISnapshot("2025-01", "", {"x": 1.0}))
        store.put_snapshot(KPISnapshot("2025-01", "P1", {"x": 2.0}))
        assert store.get_snapshot("2025-01", "P1").results == {"x": 2.0}
        assert store.get_snapshot("2025-01", None).results == {"x": 1.0}

    def test_concurrent_writes_keep_one_record(self, store):
        """Parallel refreshes of one key leave exactly one snapshot behind."""
        def write(i):
            store.put_snapshot(KPISnapshot("2025-01", "", {"value": float(i)}))

        threads = [threading.Thread(target=write, args=(i,)) for i in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        snapshots = store.list_snapshots()
        assert len(snapshots) == 1
        assert snapshots[0].results["value"] in {float(i) for i in range(20)}
