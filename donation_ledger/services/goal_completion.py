from dataclasses import dataclass
from typing import Optional
import structlog

from donation_ledger.core.exceptions import StoreError
from donation_ledger.services.ledger import total_since
from donation_ledger.services.store import DonationStoreGateway

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class GoalCompletion:
    """A goal whose target is reached and which was still open when read"""
    goal_id: str
    association_id: str
    user_id: str
    collected_amount: int
    target_amount: int


class GoalCompletionDetector:
    """Decides whether a donation has just satisfied its association's goal.

    Only donations made at or after the goal's creation count toward it. An
    already-completed goal never triggers again. Read failures are reported
    as "no completion" so that they never block the donation that triggered
    the check.
    """

    def __init__(self, store: DonationStoreGateway):
        self.store = store

    async def detect(self, association_id: str, user_id: str) -> Optional[GoalCompletion]:
        try:
            goal = await self.store.get_goal(association_id)
            if goal is None:
                return None

            if goal.completed:
                logger.debug("Goal already completed", goal_id=goal.id, association_id=association_id)
                return None

            donations = await self.store.list_by_association(association_id, since=goal.created_at)
        except StoreError as e:
            logger.warning("Goal completion check skipped",
                           association_id=association_id,
                           user_id=user_id,
                           error=str(e))
            return None

        # The store already filters on created_at; re-checking keeps the window explicit
        collected = total_since(donations, goal.created_at)
        if collected < goal.target_amount:
            return None

        logger.info("Goal target reached",
                    goal_id=goal.id,
                    association_id=association_id,
                    collected=collected,
                    target=goal.target_amount)
        return GoalCompletion(
            goal_id=goal.id,
            association_id=association_id,
            user_id=user_id,
            collected_amount=collected,
            target_amount=goal.target_amount,
        )
