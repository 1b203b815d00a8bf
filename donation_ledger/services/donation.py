from typing import Callable, Optional
from datetime import datetime
import structlog

from donation_ledger.cache.redis import RedisCache
from donation_ledger.core.exceptions import (
    DonationNotFoundError,
    DonationValidationError,
    StoreError,
    UnauthenticatedError,
)
from donation_ledger.core.identity import Identity
from donation_ledger.kafka.producer import LedgerEventProducer
from donation_ledger.middleware.metrics import achievement_failures_total, donations_recorded_total
from donation_ledger.models import Donation, DonationStatus, DonationType, utcnow
from donation_ledger.schemas.badge import BadgeResponse, BadgeCatalogResponse, UnlockedBadge, UserBadgesResponse
from donation_ledger.schemas.donation import (
    DonationListResponse,
    DonationResponse,
    DonationStatusEnum,
    DonationTypeEnum,
    RecordDonationRequest,
    RecordDonationResponse,
)
from donation_ledger.services.achievements import AchievementUnlocker, UnlockResult
from donation_ledger.services.badges import BadgeCatalog, BadgeDefinition, badge_catalog, evaluate_badges
from donation_ledger.services.goal_completion import GoalCompletion, GoalCompletionDetector
from donation_ledger.services.ledger import compute_ledger
from donation_ledger.services.store import DonationStoreGateway

logger = structlog.get_logger(__name__)

DEFAULT_RECURRING_DAY = 5


def _badge_response(definition: BadgeDefinition) -> BadgeResponse:
    return BadgeResponse(
        id=definition.id,
        display_name=definition.display_name,
        image_ref=definition.image_ref,
        description=definition.description,
    )


class DonationService:
    """Records donations and reconciles the donor's achievements.

    Flow per donation: Validated -> Persisted -> LedgerEvaluated ->
    AchievementsApplied -> Reported. Only validation and the donation write
    can fail the call; everything after the write is best-effort.
    """

    def __init__(self,
                 store: DonationStoreGateway,
                 catalog: BadgeCatalog = badge_catalog,
                 producer: Optional[LedgerEventProducer] = None,
                 cache: Optional[RedisCache] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.catalog = catalog
        self.producer = producer
        self.cache = cache
        self.clock = clock
        self.detector = GoalCompletionDetector(store)
        self.unlocker = AchievementUnlocker(store, catalog)

    async def record_donation(self,
                              donation_data: RecordDonationRequest,
                              identity: Optional[Identity]) -> RecordDonationResponse:
        """Persist a finalized donation and report the badges it unlocked"""
        self._validate(donation_data, identity)

        user_id = identity.user_id if identity else None
        is_recurrent = donation_data.type == DonationTypeEnum.RECURRENT
        email = donation_data.email or (identity.email if identity else None)

        if donation_data.status is not None:
            status = DonationStatus(donation_data.status.value)
        else:
            status = DonationStatus.ACTIVE if is_recurrent else DonationStatus.COMPLETED

        # A StoreError here is fatal: nothing was recorded, nothing else runs
        donation = await self.store.write(
            association_id=donation_data.association_id,
            amount=donation_data.amount,
            type=DonationType(donation_data.type.value),
            status=status,
            user_id=user_id,
            payment_method=donation_data.payment_method,
            email=email,
            anonymous=identity is None and email is None,
            want_receipt=donation_data.receipt_preferences.want_receipt,
            monthly_receipt=is_recurrent and donation_data.receipt_preferences.monthly_receipt,
            recurring_day=(donation_data.recurring_day or DEFAULT_RECURRING_DAY) if is_recurrent else None,
            created_at=self.clock(),
        )
        donation_id = donation.id
        donation_event = self._event_payload(donation)
        donations_recorded_total.labels(type=donation_data.type.value).inc()

        result = UnlockResult()
        completion = None
        if identity is None:
            logger.info("Guest donation recorded, achievements skipped",
                        donation_id=donation_id,
                        association_id=donation_data.association_id)
        else:
            try:
                result, completion = await self._reconcile_achievements(
                    identity.user_id, donation_data.association_id
                )
            except Exception as e:
                achievement_failures_total.labels(stage="unexpected").inc()
                logger.error("Achievement reconciliation failed",
                             donation_id=donation_id,
                             user_id=identity.user_id,
                             error=str(e))
                result = UnlockResult()

        # The donation is committed; side-effect failures must not report it as failed
        try:
            await self._after_record(donation_event, result, completion)
        except Exception as e:
            logger.error("Post-record side effects failed",
                         donation_id=donation_id,
                         association_id=donation_data.association_id,
                         error=str(e))

        logger.info("Donation recorded",
                    donation_id=donation_id,
                    user_id=user_id,
                    association_id=donation_data.association_id,
                    amount=donation_data.amount,
                    unlocked_badges=result.badge_ids)

        return RecordDonationResponse(
            donation_id=donation_id,
            unlocked_badges=[
                UnlockedBadge(id=d.id, display_name=d.display_name, image_ref=d.image_ref)
                for d in result.unlocked
            ],
        )

    def _validate(self, donation_data: RecordDonationRequest, identity: Optional[Identity]):
        if not donation_data.association_id or not donation_data.association_id.strip():
            raise DonationValidationError("Association reference is required")

        if donation_data.amount is None or donation_data.amount <= 0:
            raise DonationValidationError("Amount must be a positive whole number")

        if identity is None:
            if donation_data.type == DonationTypeEnum.RECURRENT:
                raise UnauthenticatedError("Recurrent donations require a signed-in user")
            if not donation_data.email and not donation_data.anonymous:
                raise DonationValidationError(
                    "Guest donations need an email address or the anonymous flag"
                )

    async def _reconcile_achievements(self, user_id: str, association_id: str):
        """LedgerEvaluated -> AchievementsApplied"""
        candidates = []
        try:
            history = await self.store.list_by_user(user_id)
            held = await self.store.get_badges(user_id)
            facts = compute_ledger(history)
            candidates = evaluate_badges(facts, association_id, held, self.catalog)
            logger.debug("Ledger evaluated",
                         user_id=user_id,
                         total_amount=facts.total_amount,
                         donation_count=facts.donation_count,
                         candidates=candidates)
        except StoreError as e:
            # Badges are re-derived from full history on the next donation
            achievement_failures_total.labels(stage="ledger_read").inc()
            logger.warning("Ledger read failed, badge evaluation skipped",
                           user_id=user_id, error=str(e))

        completion = await self.detector.detect(association_id, user_id)
        result = await self.unlocker.apply(user_id, candidates, completion)
        return result, completion

    async def _after_record(self, donation_event: dict, result: UnlockResult,
                            completion: Optional[GoalCompletion]):
        association_id = donation_event["association_id"]
        if self.cache is not None:
            self.cache.delete_goal_progress(association_id)

        if self.producer is None:
            return

        await self.producer.publish_donation_recorded(donation_event)
        if result.unlocked and donation_event["user_id"]:
            await self.producer.publish_badges_unlocked(
                donation_event["user_id"], donation_event["id"], result.badge_ids
            )
        if result.goal_completed and completion is not None:
            await self.producer.publish_goal_completed(
                completion.goal_id,
                completion.association_id,
                completion.user_id,
                completion.collected_amount,
                completion.target_amount,
            )

    @staticmethod
    def _event_payload(donation: Donation) -> dict:
        return {
            "id": donation.id,
            "user_id": donation.user_id,
            "association_id": donation.association_id,
            "amount": donation.amount,
            "type": donation.type.value,
            "status": donation.status.value,
            "want_receipt": donation.want_receipt,
            "email": donation.email,
            "created_at": donation.created_at.isoformat(),
        }

    # ------------------------------------------------------------------
    # Donor-facing queries and lifecycle updates
    # ------------------------------------------------------------------

    @staticmethod
    def to_response(donation: Donation) -> DonationResponse:
        return DonationResponse(
            id=donation.id,
            user_id=donation.user_id,
            association_id=donation.association_id,
            amount=donation.amount,
            type=donation.type.value,
            status=donation.status.value,
            payment_method=donation.payment_method,
            email=donation.email,
            anonymous=donation.anonymous,
            want_receipt=donation.want_receipt,
            monthly_receipt=donation.monthly_receipt,
            recurring_day=donation.recurring_day,
            created_at=donation.created_at,
            updated_at=donation.updated_at,
        )

    @staticmethod
    def _require(identity: Optional[Identity]) -> Identity:
        if identity is None:
            raise UnauthenticatedError("A signed-in user is required")
        return identity

    async def _owned_donation(self, donation_id: str, identity: Identity) -> Donation:
        donation = await self.store.get_donation(donation_id)
        if donation is None or donation.user_id != identity.user_id:
            raise DonationNotFoundError(donation_id)
        return donation

    async def list_user_donations(self, identity: Optional[Identity]) -> DonationListResponse:
        identity = self._require(identity)
        donations = [self.to_response(d) for d in await self.store.list_by_user(identity.user_id)]
        logger.info("Donations retrieved", user_id=identity.user_id, count=len(donations))
        return DonationListResponse(donations=donations, total=len(donations))

    async def update_donation_status(self, donation_id: str, status: DonationStatusEnum,
                                     identity: Optional[Identity]) -> DonationResponse:
        identity = self._require(identity)
        await self._owned_donation(donation_id, identity)

        donation = await self.store.update_donation_status(donation_id, DonationStatus(status.value))
        if donation is None:
            raise DonationNotFoundError(donation_id)
        return self.to_response(donation)

    async def update_monthly_receipt(self, donation_id: str, monthly_receipt: bool,
                                     identity: Optional[Identity]) -> DonationResponse:
        identity = self._require(identity)
        existing = await self._owned_donation(donation_id, identity)
        if existing.type != DonationType.RECURRENT:
            raise DonationValidationError("Monthly receipts only apply to recurrent donations")

        donation = await self.store.update_receipt_preferences(donation_id, monthly_receipt)
        if donation is None:
            raise DonationNotFoundError(donation_id)
        return self.to_response(donation)

    async def get_user_badges(self, identity: Optional[Identity]) -> UserBadgesResponse:
        identity = self._require(identity)
        held = await self.store.get_badges(identity.user_id)
        return UserBadgesResponse(
            user_id=identity.user_id,
            badges=[_badge_response(d) for d in self.catalog.ordered(held)],
        )

    def get_badge_catalog(self) -> BadgeCatalogResponse:
        return BadgeCatalogResponse(badges=[_badge_response(d) for d in self.catalog])
