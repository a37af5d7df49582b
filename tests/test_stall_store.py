# tests/test_stall_store.py
"""Unit tests for the conditional stall updates (optimistic locking)."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from unittest.mock import MagicMock
from sqlalchemy.exc import OperationalError
from app.models.enums import StallStatus, StallType
from app.services.stall_store import StallStore
from conftest import make_depot


@pytest.fixture
def depot(db):
    return make_depot(db, [(1, StallType.CHARGE_FAST, 250.0)])


def only_stall(store, depot):
    return store.fetch_depot_stalls(depot.id)[0]


class TestTryTransition:
    def test_reserve_stamps_occupant(self, db, depot, clock):
        store = StallStore(db, now=clock)
        stall_id = only_stall(store, depot).id

        assert store.try_reserve(stall_id, "veh-1", job_id="job-1") is True

        stall = store.get(stall_id)
        assert stall.status == StallStatus.RESERVED
        assert stall.current_vehicle_id == "veh-1"
        assert stall.current_job_id == "job-1"
        assert stall.session_started_at == clock()

    def test_wrong_expected_status_is_a_lost_race(self, db, depot):
        store = StallStore(db)
        stall_id = only_stall(store, depot).id

        assert store.try_transition(stall_id, StallStatus.RESERVED, StallStatus.OCCUPIED) is False
        assert store.get(stall_id).status == StallStatus.AVAILABLE

    def test_stale_reader_loses_to_earlier_writer(self, session_factory, depot):
        first, second = session_factory(), session_factory()
        try:
            store_a, store_b = StallStore(first), StallStore(second)
            # Both callers observe the stall as available
            seen_a = only_stall(store_a, depot)
            seen_b = only_stall(store_b, depot)
            assert seen_a.status == seen_b.status == StallStatus.AVAILABLE

            assert store_a.try_reserve(seen_a.id, "veh-a") is True
            assert store_b.try_reserve(seen_b.id, "veh-b") is False

            second.expire_all()
            assert store_b.get(seen_b.id).current_vehicle_id == "veh-a"
        finally:
            first.close()
            second.close()


class TestRelease:
    def test_release_clears_session_fields(self, db, depot):
        store = StallStore(db)
        stall_id = only_stall(store, depot).id
        store.try_reserve(stall_id, "veh-1", job_id="job-1")

        assert store.release(stall_id) is True

        stall = store.get(stall_id)
        assert stall.status == StallStatus.AVAILABLE
        assert stall.current_vehicle_id is None
        assert stall.current_job_id is None
        assert stall.session_started_at is None

    def test_release_of_available_stall_is_a_no_op(self, db, depot):
        store = StallStore(db)
        stall_id = only_stall(store, depot).id

        assert store.release(stall_id) is True
        assert store.release(stall_id) is True
        assert store.get(stall_id).status == StallStatus.AVAILABLE

    def test_guarded_release_ignores_other_holders(self, db, depot):
        store = StallStore(db)
        stall_id = only_stall(store, depot).id
        store.try_reserve(stall_id, "veh-2", job_id="job-new")

        assert store.release(stall_id, holder_job_id="job-old") is False
        assert store.get(stall_id).current_job_id == "job-new"

    def test_mark_occupied_requires_holder(self, db, depot):
        store = StallStore(db)
        stall_id = only_stall(store, depot).id
        store.try_reserve(stall_id, "veh-1", job_id="job-1")

        assert store.mark_occupied(stall_id, "someone-else") is False
        assert store.mark_occupied(stall_id, "job-1") is True
        assert store.get(stall_id).status == StallStatus.OCCUPIED

    def test_unknown_stall_release_returns_false(self, db, depot):
        assert StallStore(db).release("missing") is False


class TestStoreFailures:
    def test_database_error_rolls_back_and_propagates(self):
        db = MagicMock()
        db.execute.side_effect = OperationalError("UPDATE", {}, Exception("db down"))
        store = StallStore(db)

        with pytest.raises(OperationalError):
            store.try_reserve("stall-1", "veh-1")

        db.rollback.assert_called_once()
        db.commit.assert_not_called()


class TestMaintenance:
    def test_restore_only_applies_to_maintenance(self, db, depot):
        store = StallStore(db)
        stall_id = only_stall(store, depot).id
        store.try_reserve(stall_id, "veh-1", job_id="job-1")

        assert store.restore_from_maintenance(stall_id) is False

        stall = store.get(stall_id)
        assert stall.status == StallStatus.RESERVED
        assert stall.current_job_id == "job-1"

    def test_restore_from_maintenance(self, db, depot):
        store = StallStore(db)
        stall_id = only_stall(store, depot).id
        store.force_maintenance(stall_id)

        assert store.restore_from_maintenance(stall_id) is True
        assert store.get(stall_id).status == StallStatus.AVAILABLE
