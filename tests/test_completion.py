import pytest
from sqlalchemy import select

from container_check.models import Container, SecurityCheck
from container_check.services.checker_service import submit_checker_data
from container_check.services.completion import InspectionState, derive_state, state_filter, state_of
from container_check.services.dashboard_cache import DashboardCache

from conftest import make_photos


class TestDeriveState:
    @pytest.mark.parametrize(
        "has_security, has_checker, expected",
        [
            (False, False, InspectionState.PENDING_SECURITY),
            (True, False, InspectionState.PENDING_CHECKER),
            (True, True, InspectionState.COMPLETE),
        ],
    )
    def test_truth_table(self, has_security, has_checker, expected):
        assert derive_state(has_security, has_checker) == expected
        # same answer on every call
        assert derive_state(has_security, has_checker) == derive_state(has_security, has_checker)


class TestStateFilter:
    """SQL filter agrees with the in-memory derivation."""

    def test_filter_matches_state_of(self, db, make_inspection, users, store):
        done = make_inspection(container_no="DONE0001", seal_no="S1")
        make_inspection(container_no="WAIT0001", seal_no="S2")
        db.add(Container(
            container_no="NEW00001", company_name="X", seal_no="S3", plate_no="P",
            inspection_date=done.inspection_date,
        ))
        db.commit()
        submit_checker_data(db, users["checker"], store, done.container_id, "UTC-1", "Citra", make_photos(1))

        for state in InspectionState:
            selected = db.scalars(select(Container).where(state_filter(state))).all()
            assert len(selected) == 1
            assert state_of(selected[0]) == state

    def test_filter_inside_join_with_security_checks(self, db, make_inspection):
        waiting = make_inspection(container_no="WAIT0002", seal_no="S4")
        stmt = (
            select(Container)
            .join(SecurityCheck, SecurityCheck.container_id == Container.id)
            .where(state_filter(InspectionState.PENDING_CHECKER))
        )
        assert [c.id for c in db.scalars(stmt)] == [waiting.container_id]


class TestDashboardCache:
    def test_invalidate_by_role(self):
        cache = DashboardCache(ttl_seconds=60)
        cache.set(("ADMIN", "2026-10-17"), {"n": 1})
        cache.set(("CHECKER", "2026-10-17"), {"n": 2})
        cache.invalidate("ADMIN")
        assert cache.get(("ADMIN", "2026-10-17")) is None
        assert cache.get(("CHECKER", "2026-10-17")) == {"n": 2}

    def test_entries_expire(self):
        cache = DashboardCache(ttl_seconds=-1)
        cache.set(("ADMIN",), 1)
        assert cache.get(("ADMIN",)) is None
