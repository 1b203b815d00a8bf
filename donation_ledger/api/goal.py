from fastapi import APIRouter, Depends, HTTPException, Response
import structlog

from donation_ledger.api.dependencies import get_goal_service
from donation_ledger.core.exceptions import StoreError
from donation_ledger.core.identity import Identity, require_admin
from donation_ledger.schemas.goal import (
    AssociationSummaryResponse,
    GoalProgressResponse,
    GoalResponse,
    UpsertGoalRequest,
)
from donation_ledger.services.goal import GoalService

router = APIRouter(prefix="/associations", tags=["goals"])
logger = structlog.get_logger(__name__)


@router.get("/{association_id}/goal", response_model=GoalResponse)
async def get_goal(association_id: str, service: GoalService = Depends(get_goal_service)):
    try:
        goal = await service.get_goal(association_id)
    except StoreError as e:
        logger.error("Failed to get goal", error=str(e), association_id=association_id)
        raise HTTPException(status_code=503, detail="Store temporarily unavailable")
    if goal is None:
        raise HTTPException(status_code=404, detail="Goal not found")
    return goal


@router.put("/{association_id}/goal", response_model=GoalResponse)
async def upsert_goal(
    association_id: str,
    goal_data: UpsertGoalRequest,
    admin: Identity = Depends(require_admin),
    service: GoalService = Depends(get_goal_service),
):
    """Create the association's goal, or update it without moving its start"""
    try:
        goal = await service.upsert_goal(association_id, goal_data)
    except StoreError as e:
        logger.error("Failed to save goal", error=str(e), association_id=association_id)
        raise HTTPException(status_code=503, detail="Store temporarily unavailable")
    logger.info("Goal saved by admin", association_id=association_id, admin_id=admin.user_id)
    return goal


@router.delete("/{association_id}/goal", status_code=204)
async def delete_goal(
    association_id: str,
    admin: Identity = Depends(require_admin),
    service: GoalService = Depends(get_goal_service),
):
    try:
        deleted = await service.delete_goal(association_id)
    except StoreError as e:
        logger.error("Failed to delete goal", error=str(e), association_id=association_id)
        raise HTTPException(status_code=503, detail="Store temporarily unavailable")
    if not deleted:
        raise HTTPException(status_code=404, detail="Goal not found")
    logger.info("Goal deleted by admin", association_id=association_id, admin_id=admin.user_id)
    return Response(status_code=204)


@router.get("/{association_id}/goal/progress", response_model=GoalProgressResponse)
async def get_goal_progress(association_id: str, service: GoalService = Depends(get_goal_service)):
    try:
        progress = await service.get_goal_progress(association_id)
    except StoreError as e:
        logger.error("Failed to compute goal progress", error=str(e), association_id=association_id)
        raise HTTPException(status_code=503, detail="Store temporarily unavailable")
    if progress is None:
        raise HTTPException(status_code=404, detail="Goal not found")
    return progress


@router.get("/{association_id}/summary", response_model=AssociationSummaryResponse)
async def get_association_summary(
    association_id: str,
    admin: Identity = Depends(require_admin),
    service: GoalService = Depends(get_goal_service),
):
    """Totals per year and active recurrent pledges of an association"""
    try:
        return await service.get_association_summary(association_id)
    except StoreError as e:
        logger.error("Failed to compute association summary", error=str(e), association_id=association_id)
        raise HTTPException(status_code=503, detail="Store temporarily unavailable")
