from typing import Optional
import structlog

from donation_ledger.cache.redis import RedisCache
from donation_ledger.models import DonationStatus, DonationType, Goal
from donation_ledger.schemas.goal import (
    AssociationSummaryResponse,
    GoalProgressResponse,
    GoalResponse,
    UpsertGoalRequest,
)
from donation_ledger.services.ledger import compute_ledger, total_since, totals_by_year
from donation_ledger.services.store import DonationStoreGateway

logger = structlog.get_logger(__name__)


class GoalService:
    """Association-side goal management and donation summaries"""

    def __init__(self, store: DonationStoreGateway, cache: Optional[RedisCache] = None):
        self.store = store
        self.cache = cache

    async def upsert_goal(self, association_id: str, goal_data: UpsertGoalRequest) -> GoalResponse:
        goal = await self.store.upsert_goal(
            association_id,
            target_amount=goal_data.target_amount,
            title=goal_data.title,
            description=goal_data.description,
            end_date=goal_data.end_date,
        )
        self._invalidate(association_id)
        return GoalResponse.model_validate(goal)

    async def get_goal(self, association_id: str) -> Optional[GoalResponse]:
        goal = await self.store.get_goal(association_id)
        if goal is None:
            logger.warning("Goal not found", association_id=association_id)
            return None
        return GoalResponse.model_validate(goal)

    async def delete_goal(self, association_id: str) -> bool:
        deleted = await self.store.delete_goal(association_id)
        if deleted:
            self._invalidate(association_id)
        return deleted

    async def get_goal_progress(self, association_id: str) -> Optional[GoalProgressResponse]:
        """Collected amount since the goal's creation, percentage capped at 100"""
        if self.cache is not None:
            cached = self.cache.get_goal_progress(association_id)
            if cached:
                return GoalProgressResponse.model_validate(cached)

        goal = await self.store.get_goal(association_id)
        if goal is None:
            return None

        donations = await self.store.list_by_association(association_id, since=goal.created_at)
        progress = self._progress(goal, total_since(donations, goal.created_at))

        if self.cache is not None:
            self.cache.set_goal_progress(association_id, progress.model_dump(mode="json"))
        return progress

    async def get_association_summary(self, association_id: str) -> AssociationSummaryResponse:
        donations = await self.store.list_by_association(association_id)
        facts = compute_ledger(donations)
        active_recurrent = sum(
            1 for d in donations
            if d.type == DonationType.RECURRENT and d.status == DonationStatus.ACTIVE
        )
        logger.info("Association summary computed",
                    association_id=association_id,
                    donation_count=facts.donation_count)
        return AssociationSummaryResponse(
            association_id=association_id,
            total_amount=facts.total_amount,
            donation_count=facts.donation_count,
            totals_by_year=totals_by_year(donations),
            active_recurrent_count=active_recurrent,
        )

    @staticmethod
    def _progress(goal: Goal, collected: int) -> GoalProgressResponse:
        percentage = min(collected / goal.target_amount * 100, 100.0) if goal.target_amount else 100.0
        return GoalProgressResponse(
            association_id=goal.association_id,
            goal_id=goal.id,
            target_amount=goal.target_amount,
            collected_amount=collected,
            percentage=round(percentage, 2),
            completed=goal.completed,
            completed_at=goal.completed_at,
            completed_by=goal.completed_by,
        )

    def _invalidate(self, association_id: str):
        if self.cache is not None:
            self.cache.delete_goal_progress(association_id)
