from fastapi import APIRouter, Depends, HTTPException
from typing import Optional
import structlog

from donation_ledger.api.dependencies import get_donation_service
from donation_ledger.core.exceptions import (
    DonationNotFoundError,
    DonationValidationError,
    StoreError,
    UnauthenticatedError,
)
from donation_ledger.core.identity import Identity, get_identity, require_identity
from donation_ledger.schemas.donation import (
    DonationListResponse,
    DonationResponse,
    RecordDonationRequest,
    RecordDonationResponse,
    UpdateDonationStatusRequest,
    UpdateReceiptRequest,
)
from donation_ledger.services.donation import DonationService

router = APIRouter(prefix="/donations", tags=["donations"])
logger = structlog.get_logger(__name__)


@router.post("", response_model=RecordDonationResponse, status_code=201)
async def record_donation(
    donation_data: RecordDonationRequest,
    identity: Optional[Identity] = Depends(get_identity),
    service: DonationService = Depends(get_donation_service),
):
    """
    Record a finalized donation.

    Flow:
    1. Validate the donation
    2. Persist it (failure aborts the request)
    3. Re-derive the donor's ledger, evaluate badges and the association goal
    4. Return the donation id and the badges unlocked by this donation
    """
    try:
        return await service.record_donation(donation_data, identity)
    except DonationValidationError as e:
        logger.warning("Donation rejected", error=str(e), association_id=donation_data.association_id)
        raise HTTPException(status_code=400, detail=str(e))
    except UnauthenticatedError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except StoreError as e:
        logger.error("Donation not recorded", error=str(e), association_id=donation_data.association_id)
        raise HTTPException(status_code=503, detail="Donation could not be recorded, please retry")


@router.get("/me", response_model=DonationListResponse)
async def get_my_donations(
    identity: Identity = Depends(require_identity),
    service: DonationService = Depends(get_donation_service),
):
    """Donation history of the caller"""
    try:
        return await service.list_user_donations(identity)
    except StoreError as e:
        logger.error("Failed to get donations", error=str(e), user_id=identity.user_id)
        raise HTTPException(status_code=503, detail="Store temporarily unavailable")


@router.patch("/{donation_id}/status", response_model=DonationResponse)
async def update_donation_status(
    donation_id: str,
    update_data: UpdateDonationStatusRequest,
    identity: Identity = Depends(require_identity),
    service: DonationService = Depends(get_donation_service),
):
    """Change the lifecycle status of one of the caller's donations"""
    try:
        return await service.update_donation_status(donation_id, update_data.status, identity)
    except DonationNotFoundError:
        raise HTTPException(status_code=404, detail="Donation not found")
    except StoreError as e:
        logger.error("Failed to update donation status", error=str(e), donation_id=donation_id)
        raise HTTPException(status_code=503, detail="Store temporarily unavailable")


@router.patch("/{donation_id}/receipt", response_model=DonationResponse)
async def update_donation_receipt(
    donation_id: str,
    update_data: UpdateReceiptRequest,
    identity: Identity = Depends(require_identity),
    service: DonationService = Depends(get_donation_service),
):
    """Change the monthly receipt preference of a recurrent donation"""
    try:
        return await service.update_monthly_receipt(donation_id, update_data.monthly_receipt, identity)
    except DonationNotFoundError:
        raise HTTPException(status_code=404, detail="Donation not found")
    except DonationValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreError as e:
        logger.error("Failed to update receipt preference", error=str(e), donation_id=donation_id)
        raise HTTPException(status_code=503, detail="Store temporarily unavailable")
