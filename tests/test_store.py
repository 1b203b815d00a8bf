"""
Store gateway tests against an in-memory SQLite database
"""
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from donation_ledger.core.circuit_breaker import CircuitBreaker, CircuitState
from donation_ledger.core.exceptions import StoreError
from donation_ledger.models import DonationStatus, DonationType, Goal
from donation_ledger.services.store import DonationStoreGateway


async def write_donation(store, user_id="user-1", association_id="assoc-1", amount=10,
                         created_at=None, type=DonationType.SINGLE, status=DonationStatus.COMPLETED):
    return await store.write(
        association_id=association_id,
        amount=amount,
        type=type,
        status=status,
        user_id=user_id,
        created_at=created_at,
    )


# ============================================================================
# DONATION TESTS
# ============================================================================

class TestDonations:

    @pytest.mark.asyncio
    async def test_write_assigns_id(self, store):
        donation = await write_donation(store, amount=25)

        assert donation.id
        assert donation.amount == 25
        assert donation.created_at is not None
        assert await store.get_donation(donation.id) is donation

    @pytest.mark.asyncio
    async def test_list_by_user_is_chronological(self, store):
        await write_donation(store, amount=2, created_at=datetime(2025, 2, 1))
        await write_donation(store, amount=1, created_at=datetime(2025, 1, 1))
        await write_donation(store, user_id="user-2", amount=3)

        donations = await store.list_by_user("user-1")

        assert [d.amount for d in donations] == [1, 2]

    @pytest.mark.asyncio
    async def test_list_by_association_since(self, store):
        await write_donation(store, amount=100, created_at=datetime(2025, 1, 1))
        await write_donation(store, amount=200, created_at=datetime(2025, 6, 1))
        await write_donation(store, association_id="assoc-2", amount=300, created_at=datetime(2025, 7, 1))

        all_donations = await store.list_by_association("assoc-1")
        recent = await store.list_by_association("assoc-1", since=datetime(2025, 6, 1))

        assert [d.amount for d in all_donations] == [100, 200]
        assert [d.amount for d in recent] == [200]

    @pytest.mark.asyncio
    async def test_update_status(self, store):
        donation = await write_donation(store, type=DonationType.RECURRENT, status=DonationStatus.ACTIVE)

        updated = await store.update_donation_status(donation.id, DonationStatus.CANCELLED)

        assert updated.status == DonationStatus.CANCELLED
        assert updated.updated_at is not None

    @pytest.mark.asyncio
    async def test_update_missing_donation(self, store):
        assert await store.update_donation_status("missing", DonationStatus.CANCELLED) is None
        assert await store.update_receipt_preferences("missing", True) is None


# ============================================================================
# BADGE SET TESTS
# ============================================================================

class TestBadgeSet:

    @pytest.mark.asyncio
    async def test_add_badge_is_idempotent(self, store):
        assert await store.add_badge("user-1", "first_donation") is True
        assert await store.add_badge("user-1", "first_donation") is False

        assert await store.get_badges("user-1") == {"first_donation"}

    @pytest.mark.asyncio
    async def test_badge_sets_are_per_user(self, store):
        await store.add_badge("user-1", "first_donation")
        await store.add_badge("user-2", "loyalty")

        assert await store.get_badges("user-1") == {"first_donation"}
        assert await store.get_badges("user-2") == {"loyalty"}
        assert await store.get_badges("user-3") == set()


# ============================================================================
# GOAL TESTS
# ============================================================================

class TestGoals:

    @pytest.mark.asyncio
    async def test_upsert_creates_then_keeps_created_at(self, store):
        created = await store.upsert_goal("assoc-1", target_amount=500, title="Winter meals")
        created_at = created.created_at
        first_saved_at = created.updated_at
        assert first_saved_at == created_at

        updated = await store.upsert_goal("assoc-1", target_amount=800, title="Winter meals+")

        assert updated.id == created.id
        assert updated.target_amount == 800
        assert updated.title == "Winter meals+"
        assert updated.created_at == created_at
        assert updated.updated_at >= first_saved_at

    @pytest.mark.asyncio
    async def test_get_goal_returns_latest(self, store, db_session):
        db_session.add_all([
            Goal(id="old", association_id="assoc-1", target_amount=100, created_at=datetime(2024, 1, 1)),
            Goal(id="new", association_id="assoc-1", target_amount=200, created_at=datetime(2025, 1, 1)),
        ])
        await db_session.commit()

        goal = await store.get_goal("assoc-1")

        assert goal.id == "new"

    @pytest.mark.asyncio
    async def test_mark_goal_completed_first_writer_wins(self, store):
        goal = await store.upsert_goal("assoc-1", target_amount=500, title="Winter meals")

        first = await store.mark_goal_completed(goal.id, "user-1")
        second = await store.mark_goal_completed(goal.id, "user-2")

        stored = await store.get_goal("assoc-1")
        assert first is True
        assert second is False
        assert stored.completed is True
        assert stored.completed_by == "user-1"
        assert stored.completed_at is not None

    @pytest.mark.asyncio
    async def test_delete_goal(self, store):
        await store.upsert_goal("assoc-1", target_amount=500, title="Winter meals")

        assert await store.delete_goal("assoc-1") is True
        assert await store.delete_goal("assoc-1") is False
        assert await store.get_goal("assoc-1") is None


# ============================================================================
# FAILURE TESTS
# ============================================================================

def failing_session():
    session = MagicMock()
    session.execute = AsyncMock(side_effect=OperationalError("SELECT 1", {}, Exception("connection lost")))
    session.rollback = AsyncMock()
    return session


class TestStoreFailures:

    @pytest.mark.asyncio
    async def test_database_error_becomes_store_error(self):
        session = failing_session()
        store = DonationStoreGateway(session, breaker=CircuitBreaker(name="test"))

        with pytest.raises(StoreError):
            await store.get_badges("user-1")

        session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_open_circuit_fails_fast(self):
        session = failing_session()
        breaker = CircuitBreaker(name="test", failure_threshold=2, recovery_timeout_seconds=60)
        store = DonationStoreGateway(session, breaker=breaker)

        for _ in range(2):
            with pytest.raises(StoreError):
                await store.list_by_user("user-1")

        assert breaker.state == CircuitState.OPEN

        with pytest.raises(StoreError, match="temporarily unavailable"):
            await store.list_by_user("user-1")

        assert session.execute.await_count == 2
