from fastapi import APIRouter, Depends, HTTPException
import structlog

from donation_ledger.api.dependencies import get_donation_service
from donation_ledger.core.exceptions import StoreError
from donation_ledger.core.identity import Identity, require_identity
from donation_ledger.schemas.badge import BadgeCatalogResponse, UserBadgesResponse
from donation_ledger.services.donation import DonationService

router = APIRouter(prefix="/badges", tags=["badges"])
logger = structlog.get_logger(__name__)


@router.get("", response_model=BadgeCatalogResponse)
async def get_badge_catalog(service: DonationService = Depends(get_donation_service)):
    """Every badge that can be unlocked, in reveal order"""
    return service.get_badge_catalog()


@router.get("/me", response_model=UserBadgesResponse)
async def get_my_badges(
    identity: Identity = Depends(require_identity),
    service: DonationService = Depends(get_donation_service),
):
    try:
        return await service.get_user_badges(identity)
    except StoreError as e:
        logger.error("Failed to get badges", error=str(e), user_id=identity.user_id)
        raise HTTPException(status_code=503, detail="Store temporarily unavailable")
