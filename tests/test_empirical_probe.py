"""
Tests for snapshots, diffing and the empirical probe state machine.
"""

import json
from unittest.mock import MagicMock

import httpx
import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from conftest import CUSTOMERS, ORDERS, insert_order
from table_probe.errors import SnapshotError
from table_probe.events import Outcome, RecordingObserver, Stage
from table_probe.metadata.database import Database
from table_probe.models import RequestDescription, Snapshot, TableRef
from table_probe.probe.empirical_probe import EmpiricalProbe, ProbeState, diff_snapshots, row_identity
from table_probe.probe.invoker import EndpointInvoker
from table_probe.probe.snapshots import SnapshotReader

KNOWN_COLUMNS = {
    ORDERS: ["id", "order_id", "customer_id", "customer_name", "total_amount", "created_at"],
    CUSTOMERS: ["id", "name", "email"],
}

REQUEST = RequestDescription(endpoint="/api/orders", method="POST", fields=["orderId", "customerName"])


class TestDiffSnapshots:
    """Tests for diff_snapshots."""

    def snapshots(self, before_rows, after_rows):
        table = TableRef("public", "orders")
        return (
            Snapshot(table, before_rows, order_by="id"),
            Snapshot(table, after_rows, order_by="id"),
        )

    def test_new_row_with_marker_confirms(self):
        before, after = self.snapshots(
            [{"id": 1, "customer_name": "Ada"}],
            [{"id": 2, "customer_name": "TEST_172839_NAME"}, {"id": 1, "customer_name": "Ada"}],
        )
        result = diff_snapshots(before, after, ["TEST_172839_NAME"])

        assert result.confirmed
        assert result.new_rows == 1

    def test_existing_row_with_marker_does_not_confirm(self):
        row = {"id": 1, "customer_name": "TEST_172839_NAME"}
        before, after = self.snapshots([row], [dict(row)])

        result = diff_snapshots(before, after, ["TEST_172839_NAME"])

        assert not result.confirmed
        assert result.reason == "no new rows"

    def test_new_row_without_marker_does_not_confirm(self):
        before, after = self.snapshots([{"id": 1}], [{"id": 2, "customer_name": "Someone"}, {"id": 1}])

        result = diff_snapshots(before, after, ["TEST_172839_NAME"])

        assert not result.confirmed
        assert result.new_rows == 1

    def test_substring_containment(self):
        before, after = self.snapshots([], [{"id": 9, "note": "Order for TEST_172839_NAME (web)"}])
        assert diff_snapshots(before, after, ["TEST_172839_NAME"]).confirmed

    def test_numeric_marker_matches_stored_number(self):
        before, after = self.snapshots([], [{"id": 9, "order_id": 1000172839}])
        assert diff_snapshots(before, after, ["1000172839"]).confirmed

    def test_rows_without_id_compared_whole(self):
        table = TableRef("public", "audit")
        before = Snapshot(table, [{"event": "login"}])
        after = Snapshot(table, [{"event": "login"}, {"event": "TEST_1_EVENT"}])

        assert diff_snapshots(before, after, ["TEST_1_EVENT"]).confirmed

    def test_incomparable_snapshots(self):
        table = TableRef("public", "orders")
        before = Snapshot(table, [], order_by="created_at")
        after = Snapshot(table, [{"id": 1, "x": "TEST_1_X"}], order_by="id")

        assert not diff_snapshots(before, after, ["TEST_1_X"]).confirmed

    def test_row_identity(self):
        assert row_identity({"id": 5, "a": 1}) == row_identity({"id": 5, "a": 2})
        assert row_identity({"a": 1, "b": [1]}) == row_identity({"b": [1], "a": 1})
        assert row_identity({"id": None, "a": 1}) != row_identity({"id": None, "a": 2})


class TestSnapshotReader:
    """Tests for SnapshotReader ordering selection."""

    @pytest.fixture
    def mock_db(self):
        db = MagicMock(spec=Database)
        db.quote_table.return_value = '"public"."orders"'
        db.quote_identifier.side_effect = lambda name: f'"{name}"'
        return db

    def test_falls_back_through_recency_columns(self, mock_db):
        def fetch(sql, params):
            if '"created_at"' in sql or '"updated_at"' in sql:
                raise OperationalError(sql, params, Exception("column does not exist"))
            return [{"id": 3}]

        mock_db.fetch_all.side_effect = fetch

        snapshot = SnapshotReader(mock_db, limit=10).capture(TableRef("public", "orders"))

        assert snapshot.order_by == "id"
        assert snapshot.rows == [{"id": 3}]
        assert mock_db.fetch_all.call_args[0][1] == {"limit": 10}

    def test_unordered_when_nothing_works(self, mock_db):
        def fetch(sql, params):
            if "ORDER BY" in sql:
                raise OperationalError(sql, params, Exception("column does not exist"))
            return []

        mock_db.fetch_all.side_effect = fetch

        snapshot = SnapshotReader(mock_db).capture(TableRef("public", "orders"))

        assert snapshot.order_by is None

    def test_known_columns_restrict_ordering(self, mock_db):
        mock_db.fetch_all.return_value = []

        snapshot = SnapshotReader(mock_db).capture(TableRef("public", "orders"), ["id", "name"])

        assert snapshot.order_by == "id"
        assert mock_db.fetch_all.call_count == 1

    def test_unreadable_table(self, mock_db):
        mock_db.fetch_all.side_effect = OperationalError("SELECT", {}, Exception("no such table"))

        with pytest.raises(SnapshotError):
            SnapshotReader(mock_db).capture(TableRef("public", "orders"))

    def test_recapture_keeps_ordering(self, mock_db):
        mock_db.fetch_all.return_value = []
        previous = Snapshot(TableRef("public", "orders"), [], order_by="updated_at", limit=10)

        snapshot = SnapshotReader(mock_db, limit=10).recapture(previous)

        assert snapshot.comparable_with(previous)
        assert 'ORDER BY "updated_at" DESC NULLS LAST' in mock_db.fetch_all.call_args[0][0]

    def test_sqlite_capture(self, database):
        snapshot = SnapshotReader(database, limit=1).capture(ORDERS, KNOWN_COLUMNS[ORDERS])

        assert snapshot.order_by == "created_at"
        assert len(snapshot.rows) == 1

    def test_rows_without_timestamp_sort_last(self, engine, database):
        with engine.begin() as conn:
            conn.execute(text("INSERT INTO orders (order_id, customer_name) VALUES (77, 'legacy')"))

        snapshot = SnapshotReader(database, limit=1).capture(ORDERS, KNOWN_COLUMNS[ORDERS])

        assert snapshot.rows[0]["created_at"] is not None


class TestEmpiricalProbe:
    """Tests for EmpiricalProbe.run against SQLite and a fake service."""

    def make_probe(self, database, client, observer=None, sleep=None):
        return EmpiricalProbe(
            SnapshotReader(database),
            EndpointInvoker("http://stand.test", client=client),
            settle_seconds=0.5,
            sleep=sleep or (lambda seconds: None),
            observer=observer,
            max_workers=1,
        )

    def test_write_is_confirmed(self, engine, database, make_client):
        bodies = []

        def handler(request):
            body = json.loads(request.content)
            bodies.append(body)
            insert_order(engine, body)
            return httpx.Response(201)

        observer = RecordingObserver()
        probe = self.make_probe(database, make_client(handler), observer)

        report = probe.run(REQUEST, [ORDERS, CUSTOMERS], KNOWN_COLUMNS)

        assert report.confirmed == [ORDERS]
        assert len(bodies) == 1
        assert bodies[0]["customerName"] == f"TEST_{report.payload.token}_NAME"
        assert report.invocation.status_code == 201
        assert report.states == [
            ProbeState.SNAPSHOT_BEFORE,
            ProbeState.INVOKE,
            ProbeState.SETTLE,
            ProbeState.SNAPSHOT_AFTER,
            ProbeState.DIFF,
            ProbeState.RESULT,
        ]
        outcomes = {e.table: e.outcome for e in observer.for_stage(Stage.DIFF)}
        assert outcomes == {ORDERS: Outcome.CONFIRMED, CUSTOMERS: Outcome.REJECTED}

    def test_rejected_call_still_diffs(self, database, make_client):
        probe = self.make_probe(database, make_client(lambda request: httpx.Response(401)))

        report = probe.run(REQUEST, [ORDERS, CUSTOMERS], KNOWN_COLUMNS)

        assert report.confirmed == []
        assert report.invocation.status_code == 401
        assert [r.table for r in report.results] == [ORDERS, CUSTOMERS]
        assert ProbeState.DIFF in report.states

    def test_partial_write_before_transport_error(self, engine, database, make_client):
        def handler(request):
            insert_order(engine, json.loads(request.content))
            raise httpx.ReadTimeout("timed out", request=request)

        probe = self.make_probe(database, make_client(handler))

        report = probe.run(REQUEST, [ORDERS], KNOWN_COLUMNS)

        assert not report.invocation.reached
        assert report.confirmed == [ORDERS]

    def test_unreadable_table_is_dropped(self, database, make_client):
        missing = TableRef("main", "missing")
        observer = RecordingObserver()
        probe = self.make_probe(database, make_client(lambda request: httpx.Response(201)), observer)

        report = probe.run(REQUEST, [missing, ORDERS], KNOWN_COLUMNS)

        assert missing in report.unreadable
        assert [r.table for r in report.results] == [ORDERS]
        failed = [e for e in observer.for_stage(Stage.SNAPSHOT_BEFORE) if e.outcome == Outcome.FAILED]
        assert [e.table for e in failed] == [missing]

    def test_table_lost_after_call_is_dropped(self, engine, database, make_client):
        class FlakyReader(SnapshotReader):
            def recapture(self, previous):
                if previous.table == CUSTOMERS:
                    raise SnapshotError("gone")
                return super().recapture(previous)

        def handler(request):
            insert_order(engine, json.loads(request.content))
            return httpx.Response(201)

        observer = RecordingObserver()
        probe = EmpiricalProbe(
            FlakyReader(database),
            EndpointInvoker("http://stand.test", client=make_client(handler)),
            settle_seconds=0,
            sleep=lambda seconds: None,
            observer=observer,
            max_workers=1,
        )

        report = probe.run(REQUEST, [ORDERS, CUSTOMERS], KNOWN_COLUMNS)

        assert report.confirmed == [ORDERS]
        assert report.unreadable == {CUSTOMERS: "gone"}
        assert [r.table for r in report.results] == [ORDERS]
        failed = [e for e in observer.for_stage(Stage.SNAPSHOT_AFTER) if e.outcome == Outcome.FAILED]
        assert [e.table for e in failed] == [CUSTOMERS]

    def test_no_readable_tables_skips_call(self, database, make_client):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(201)

        probe = self.make_probe(database, make_client(handler))
        report = probe.run(REQUEST, [TableRef("main", "missing")])

        assert calls == []
        assert report.invocation is None
        assert report.confirmed == []

    def test_exactly_one_call_and_settle(self, database, make_client):
        calls = []
        waits = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        probe = self.make_probe(database, make_client(handler), sleep=waits.append)
        probe.run(REQUEST, [ORDERS, CUSTOMERS], KNOWN_COLUMNS)

        assert len(calls) == 1
        assert waits == [0.5]
