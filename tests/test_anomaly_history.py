"""
Tests for anomaly history: snapshot refresh and new/recurring/resolved status.
"""

import pytest

from insight_engine.anomalies.history import AnomalyHistory, recurrence_counts
from insight_engine.models import AnomalySnapshot, AnomalyThreshold, StoredAnomaly
from tests.fixtures import scenario_a, seed_store, team_month


def _stored(rule_id: str, person: str) -> StoredAnomaly:
    return StoredAnomaly(
        anomaly_id=f"{rule_id}::{person}",
        type=rule_id,
        severity="warning",
        title=f"{person} {rule_id}",
        detail="",
        rule_id=rule_id,
        person=person,
    )


def _snapshot(month: str, *anomalies: StoredAnomaly) -> AnomalySnapshot:
    return AnomalySnapshot(month=month, project_filter="", computed_at="t", anomalies=list(anomalies))


def _write(store, month: str, *anomalies: StoredAnomaly, project_filter: str = ""):
    with store.transaction() as conn:
        store.upsert_anomaly_snapshot(conn, month, project_filter, "t", list(anomalies))


@pytest.fixture
def history(store):
    return AnomalyHistory(store)


# =============================================================================
# RECURRENCE COUNTING
# =============================================================================


class TestRecurrenceCounts:
    def test_consecutive_appearances(self):
        x = _stored("overtime", "Dan")
        prior = [_snapshot("2026-02", x), _snapshot("2026-01", x)]
        assert recurrence_counts({x.anomaly_id}, prior) == {x.anomaly_id: 2}

    def test_walk_stops_at_snapshot_without_overlap(self):
        x, y = _stored("overtime", "Dan"), _stored("overtime", "Eve")
        prior = [_snapshot("2026-03", x), _snapshot("2026-02", y), _snapshot("2026-01", x)]
        assert recurrence_counts({x.anomaly_id}, prior) == {x.anomaly_id: 1}

    def test_counts_per_identity_while_any_identity_carries_over(self):
        """Y was absent last month but still counts, since X kept the walk going."""
        x, y = _stored("overtime", "Dan"), _stored("overtime", "Eve")
        prior = [_snapshot("2026-02", x), _snapshot("2026-01", y)]
        assert recurrence_counts({x.anomaly_id, y.anomaly_id}, prior) == {
            x.anomaly_id: 1,
            y.anomaly_id: 1,
        }

    def test_no_prior(self):
        assert recurrence_counts({"overtime::Dan"}, []) == {}


# =============================================================================
# STATUS
# =============================================================================


class TestWithStatus:
    def test_recurring_streak(self, store, history):
        x = _stored("overtime", "Dan")
        for month in ("2026-01", "2026-02", "2026-03"):
            _write(store, month, x)

        [a] = history.with_status("2026-03")
        assert a.status == "recurring"
        assert a.recurring_months == 2

    def test_gap_resets_to_new_and_reports_resolved(self, store, history):
        x, y = _stored("overtime", "Dan"), _stored("meeting-heavy", "Eve")
        _write(store, "2026-01", x)
        _write(store, "2026-02", y)
        _write(store, "2026-03", x)

        result = history.with_status("2026-03")
        assert [(a.anomaly_id, a.status, a.recurring_months) for a in result] == [
            ("overtime::Dan", "new", None),
            ("meeting-heavy::Eve", "resolved", None),
        ]

    def test_later_snapshots_are_ignored(self, store, history):
        x = _stored("overtime", "Dan")
        _write(store, "2026-01", x)
        _write(store, "2026-02", x)

        [a] = history.with_status("2026-01")
        assert a.status == "new"

    def test_filters_are_independent(self, store, history):
        x = _stored("overtime", "Dan")
        _write(store, "2026-01", x, project_filter="R1337")
        _write(store, "2026-02", x)

        [a] = history.with_status("2026-02")
        assert a.status == "new"

    def test_disabled_rules_are_hidden(self, store, history):
        _write(store, "2026-01", _stored("overtime", "Eve"), _stored("meeting-heavy", "Eve"))
        _write(store, "2026-02", _stored("overtime", "Dan"))
        store.save_threshold_override(AnomalyThreshold("overtime", enabled=False))

        result = history.with_status("2026-02")
        assert [(a.anomaly_id, a.status) for a in result] == [("meeting-heavy::Eve", "resolved")]

    def test_live_fallback_marks_everything_new(self, store, history):
        seed_store(store, scenario_a())

        result = history.with_status("2026-01")
        assert [a.anomaly_id for a in result] == ["bus-factor::Alice", "new-person::Alice"]
        assert {a.status for a in result} == {"new"}
        assert store.list_anomaly_snapshots() == []

    def test_end_to_end_after_refresh(self, store, history):
        seed_store(store, team_month())
        history.refresh_all()

        statuses = {a.anomaly_id: (a.status, a.recurring_months) for a in history.with_status("2026-02")}
        assert statuses["bus-factor::Alice"] == ("recurring", 1)
        assert statuses["new-person::Bob"] == ("new", None)
        assert all(status != "resolved" for status, _ in statuses.values())


# =============================================================================
# REFRESH
# =============================================================================


class TestRefresh:
    def test_refresh_inserts_then_updates(self, store, history):
        seed_store(store, scenario_a())

        assert history.refresh("2026-01") == "inserted"
        assert history.refresh("2026-01") == "updated"
        snapshots = store.list_anomaly_snapshots()
        assert len(snapshots) == 1
        assert snapshots[0].anomaly_ids == {"bus-factor::Alice", "new-person::Alice"}

    def test_refresh_all_covers_every_period(self, store, history):
        seed_store(store, team_month())
        _write(store, "2025-12", _stored("overtime", "Dan"))

        summary = history.refresh_all()

        assert summary == {
            "periods": ["2026-01", "2026-02"],
            "inserted": 2,
            "updated": 0,
            "deleted": 1,
        }
        assert [s.month for s in store.list_anomaly_snapshots()] == ["2026-01", "2026-02"]

    def test_refresh_all_with_filter(self, store, history):
        seed_store(store, team_month())
        history.refresh_all("S0070")

        assert store.list_anomaly_snapshots() == []
        snapshots = store.list_anomaly_snapshots("S0070")
        assert [s.month for s in snapshots] == ["2026-01", "2026-02"]
        assert snapshots[0].anomalies == []

    def test_prune(self, store, history):
        seed_store(store, scenario_a())
        _write(store, "2025-12", _stored("overtime", "Dan"))
        _write(store, "2026-01", _stored("overtime", "Dan"))

        assert history.prune() == 1
        assert history.prune() == 0
