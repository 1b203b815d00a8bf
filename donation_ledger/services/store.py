"""
Donation store gateway.

Thin async wrapper around the backing database. Every call is its own
round trip and its own commit; nothing here spans documents in a single
transaction. Failures surface as StoreError and are never retried.
"""
from datetime import datetime
from typing import Callable, List, Optional, Set
from sqlalchemy import select, update, delete
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from donation_ledger.core.circuit_breaker import CircuitBreaker, CircuitBreakerError, db_circuit_breaker
from donation_ledger.core.exceptions import StoreError
from donation_ledger.models import Donation, DonationStatus, DonationType, Goal, UserBadge, utcnow
from donation_ledger.models.base import new_id

logger = structlog.get_logger(__name__)

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class DonationStoreGateway:
    """Reads and writes donations, goals and badge sets"""

    def __init__(self, db: AsyncSession, breaker: CircuitBreaker = db_circuit_breaker):
        self.db = db
        self.breaker = breaker

    async def _run(self, operation: str, func: Callable, **context):
        try:
            return await self.breaker.call(func)
        except CircuitBreakerError as e:
            logger.warning("Store unavailable, circuit open", operation=operation, **context)
            raise StoreError("Store temporarily unavailable") from e
        except (SQLAlchemyError, OSError) as e:
            await self._rollback()
            logger.error("Store operation failed", operation=operation, error=str(e), **context)
            raise StoreError(f"Failed to {operation}: {e}") from e

    async def _rollback(self):
        try:
            await self.db.rollback()
        except SQLAlchemyError as e:
            logger.warning("Rollback failed", error=str(e))

    # ------------------------------------------------------------------
    # Donations
    # ------------------------------------------------------------------

    async def write(self,
                    *,
                    association_id: str,
                    amount: int,
                    type: DonationType,
                    status: DonationStatus,
                    user_id: Optional[str] = None,
                    payment_method: Optional[str] = None,
                    email: Optional[str] = None,
                    anonymous: bool = False,
                    want_receipt: bool = False,
                    monthly_receipt: bool = False,
                    recurring_day: Optional[int] = None,
                    created_at: Optional[datetime] = None) -> Donation:
        """Append a donation; the store assigns its id"""
        async def db_write():
            donation = Donation(
                id=new_id(),
                user_id=user_id,
                association_id=association_id,
                amount=amount,
                type=type,
                status=status,
                payment_method=payment_method,
                email=email,
                anonymous=anonymous,
                want_receipt=want_receipt,
                monthly_receipt=monthly_receipt,
                recurring_day=recurring_day,
                created_at=created_at or utcnow(),
            )
            self.db.add(donation)
            await self.db.commit()
            return donation

        donation = await self._run("write donation", db_write,
                                   user_id=user_id, association_id=association_id)
        logger.info("Donation written",
                    donation_id=donation.id,
                    user_id=user_id,
                    association_id=association_id,
                    amount=amount)
        return donation

    async def get_donation(self, donation_id: str) -> Optional[Donation]:
        async def db_query():
            result = await self.db.execute(
                select(Donation)
                .where(Donation.id == donation_id)
                .execution_options(populate_existing=True)
            )
            return result.scalar_one_or_none()

        return await self._run("get donation", db_query, donation_id=donation_id)

    async def list_by_user(self, user_id: str) -> List[Donation]:
        async def db_query():
            result = await self.db.execute(
                select(Donation)
                .where(Donation.user_id == user_id)
                .order_by(Donation.created_at)
            )
            return list(result.scalars().all())

        return await self._run("list user donations", db_query, user_id=user_id)

    async def list_by_association(self, association_id: str,
                                  since: Optional[datetime] = None) -> List[Donation]:
        """Donations to an association, optionally only those at or after ``since``"""
        async def db_query():
            query = select(Donation).where(Donation.association_id == association_id)
            if since is not None:
                query = query.where(Donation.created_at >= since)
            result = await self.db.execute(query.order_by(Donation.created_at))
            return list(result.scalars().all())

        return await self._run("list association donations", db_query, association_id=association_id)

    async def update_donation_status(self, donation_id: str, status: DonationStatus) -> Optional[Donation]:
        async def db_update():
            donation = await self.db.get(Donation, donation_id)
            if donation is None:
                return None
            donation.status = status
            donation.updated_at = utcnow()
            await self.db.commit()
            return donation

        donation = await self._run("update donation status", db_update, donation_id=donation_id)
        if donation is not None:
            logger.info("Donation status updated", donation_id=donation_id, status=status.value)
        return donation

    async def update_receipt_preferences(self, donation_id: str, monthly_receipt: bool) -> Optional[Donation]:
        async def db_update():
            donation = await self.db.get(Donation, donation_id)
            if donation is None:
                return None
            donation.monthly_receipt = monthly_receipt
            donation.updated_at = utcnow()
            await self.db.commit()
            return donation

        donation = await self._run("update receipt preferences", db_update, donation_id=donation_id)
        if donation is not None:
            logger.info("Donation receipt preference updated",
                        donation_id=donation_id, monthly_receipt=monthly_receipt)
        return donation

    # ------------------------------------------------------------------
    # Goals
    # ------------------------------------------------------------------

    async def get_goal(self, association_id: str) -> Optional[Goal]:
        """Most recently created goal of the association"""
        async def db_query():
            result = await self.db.execute(
                select(Goal)
                .where(Goal.association_id == association_id)
                .order_by(Goal.created_at.desc())
                .limit(1)
                .execution_options(populate_existing=True)
            )
            return result.scalars().first()

        return await self._run("get goal", db_query, association_id=association_id)

    async def mark_goal_completed(self, goal_id: str, user_id: str,
                                  completed_at: Optional[datetime] = None) -> bool:
        """Complete the goal unless already completed.

        Conditional on ``completed = false``: of several concurrent callers only
        one sees True, and only its ``completed_by`` is stored.
        """
        async def db_update():
            result = await self.db.execute(
                update(Goal)
                .where(Goal.id == goal_id, Goal.completed.is_(False))
                .values(completed=True,
                        completed_at=completed_at or utcnow(),
                        completed_by=user_id)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
            return result.rowcount == 1

        won = await self._run("mark goal completed", db_update, goal_id=goal_id, user_id=user_id)
        if won:
            logger.info("Goal marked completed", goal_id=goal_id, completed_by=user_id)
        else:
            logger.info("Goal already completed, transition skipped", goal_id=goal_id, user_id=user_id)
        return won

    async def upsert_goal(self,
                          association_id: str,
                          *,
                          target_amount: int,
                          title: Optional[str] = None,
                          description: Optional[str] = None,
                          end_date: Optional[datetime] = None) -> Goal:
        """Update the association's goal, or create one.

        ``created_at`` is set only on creation, so editing a goal never moves
        the window of donations that count toward it.
        """
        async def db_upsert():
            now = utcnow()
            result = await self.db.execute(
                select(Goal)
                .where(Goal.association_id == association_id)
                .order_by(Goal.created_at.desc())
                .limit(1)
                .execution_options(populate_existing=True)
            )
            goal = result.scalars().first()
            if goal is None:
                goal = Goal(id=new_id(), association_id=association_id, created_at=now, completed=False)
                self.db.add(goal)
            goal.updated_at = now
            goal.target_amount = target_amount
            goal.title = title
            goal.description = description
            goal.end_date = end_date
            await self.db.commit()
            return goal

        goal = await self._run("upsert goal", db_upsert, association_id=association_id)
        logger.info("Goal saved", goal_id=goal.id, association_id=association_id, target_amount=target_amount)
        return goal

    async def delete_goal(self, association_id: str) -> bool:
        async def db_delete():
            result = await self.db.execute(
                delete(Goal)
                .where(Goal.association_id == association_id)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
            return result.rowcount > 0

        deleted = await self._run("delete goal", db_delete, association_id=association_id)
        if deleted:
            logger.info("Goal deleted", association_id=association_id)
        return deleted

    # ------------------------------------------------------------------
    # Badges
    # ------------------------------------------------------------------

    async def get_badges(self, user_id: str) -> Set[str]:
        async def db_query():
            result = await self.db.execute(
                select(UserBadge.badge_id).where(UserBadge.user_id == user_id)
            )
            return set(result.scalars().all())

        return await self._run("get badges", db_query, user_id=user_id)

    async def add_badge(self, user_id: str, badge_id: str) -> bool:
        """Idempotent set-add; True only for the call that inserted the badge"""
        async def db_insert():
            insert = _INSERT_BY_DIALECT.get(self.db.get_bind().dialect.name)
            if insert is None:
                raise StoreError("Unsupported database dialect for badge insert")
            result = await self.db.execute(
                insert(UserBadge)
                .values(user_id=user_id, badge_id=badge_id, unlocked_at=utcnow())
                .on_conflict_do_nothing(index_elements=["user_id", "badge_id"])
            )
            await self.db.commit()
            return result.rowcount == 1

        inserted = await self._run("add badge", db_insert, user_id=user_id, badge_id=badge_id)
        if inserted:
            logger.info("Badge added", user_id=user_id, badge_id=badge_id)
        else:
            logger.debug("Badge already held", user_id=user_id, badge_id=badge_id)
        return inserted
