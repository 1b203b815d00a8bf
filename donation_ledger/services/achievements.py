from dataclasses import dataclass, field
from typing import Iterable, List, Optional
import structlog

from donation_ledger.core.exceptions import StoreError
from donation_ledger.middleware.metrics import achievement_failures_total, badges_unlocked_total, goal_completions_total
from donation_ledger.services.badges import BadgeCatalog, BadgeDefinition, BadgeId, badge_catalog
from donation_ledger.services.goal_completion import GoalCompletion
from donation_ledger.services.store import DonationStoreGateway

logger = structlog.get_logger(__name__)


@dataclass
class UnlockResult:
    unlocked: List[BadgeDefinition] = field(default_factory=list)
    # True only when this call performed the goal's completed transition
    goal_completed: bool = False

    @property
    def badge_ids(self) -> List[str]:
        return [definition.id for definition in self.unlocked]


class AchievementUnlocker:
    """Applies badge and goal-completion decisions to the store.

    A badge is reported as unlocked only when this call inserted it, so a
    badge the user already holds is never announced twice, even when two
    evaluations race. A failed write is logged and skipped; the remaining
    badges are still applied.
    """

    def __init__(self, store: DonationStoreGateway, catalog: BadgeCatalog = badge_catalog):
        self.store = store
        self.catalog = catalog

    async def apply(self,
                    user_id: str,
                    badge_ids: Iterable[str],
                    goal_completion: Optional[GoalCompletion] = None) -> UnlockResult:
        result = UnlockResult()
        requested = list(badge_ids)

        if goal_completion is not None:
            result.goal_completed = await self._complete_goal(user_id, goal_completion)
            if result.goal_completed:
                requested.append(BadgeId.COMPLETER.value)

        for definition in self.catalog.ordered(requested):
            try:
                inserted = await self.store.add_badge(user_id, definition.id)
            except StoreError as e:
                achievement_failures_total.labels(stage="badge_write").inc()
                logger.warning("Badge write failed", user_id=user_id, badge_id=definition.id, error=str(e))
                continue

            if inserted:
                badges_unlocked_total.labels(badge_id=definition.id).inc()
                result.unlocked.append(definition)

        if result.unlocked:
            logger.info("Badges unlocked", user_id=user_id, badges=result.badge_ids)
        return result

    async def _complete_goal(self, user_id: str, completion: GoalCompletion) -> bool:
        try:
            won = await self.store.mark_goal_completed(completion.goal_id, user_id)
        except StoreError as e:
            achievement_failures_total.labels(stage="goal_write").inc()
            logger.warning("Goal completion write failed",
                           goal_id=completion.goal_id,
                           user_id=user_id,
                           error=str(e))
            return False

        if won:
            goal_completions_total.inc()
        return won
