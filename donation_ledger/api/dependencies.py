from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from donation_ledger.cache.redis import redis_cache
from donation_ledger.database.database import get_db
from donation_ledger.kafka.producer import LedgerEventProducer, get_event_producer
from donation_ledger.services.donation import DonationService
from donation_ledger.services.goal import GoalService
from donation_ledger.services.store import DonationStoreGateway


def get_store(db: AsyncSession = Depends(get_db)) -> DonationStoreGateway:
    return DonationStoreGateway(db)


def get_donation_service(
    store: DonationStoreGateway = Depends(get_store),
    producer: LedgerEventProducer = Depends(get_event_producer),
) -> DonationService:
    return DonationService(store, producer=producer, cache=redis_cache)


def get_goal_service(store: DonationStoreGateway = Depends(get_store)) -> GoalService:
    return GoalService(store, cache=redis_cache)
