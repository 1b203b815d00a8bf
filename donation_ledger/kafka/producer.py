import json
from typing import List, Optional
import structlog
from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError

from donation_ledger.core.config import get_settings

logger = structlog.get_logger(__name__)
settings = get_settings()


class LedgerEventProducer:
    """Publishes ledger events for downstream consumers (notifications, analytics).

    Publishing is best-effort: a failure is logged and never reaches the
    caller, so a broker outage cannot fail a recorded donation.
    """

    def __init__(self):
        self.producer: Optional[AIOKafkaProducer] = None
        self.bootstrap_servers = settings.kafka_bootstrap_servers

    @property
    def started(self) -> bool:
        return self.producer is not None

    async def start(self):
        """Initialize and start Kafka producer"""
        try:
            self.producer = AIOKafkaProducer(
                bootstrap_servers=self.bootstrap_servers,
                value_serializer=lambda v: json.dumps(v, default=str).encode('utf-8'),
                compression_type='gzip',
                acks='all',  # Wait for all in-sync replicas
                retry_backoff_ms=500,
                request_timeout_ms=30000,
            )
            await self.producer.start()
            logger.info("Kafka producer started", bootstrap_servers=self.bootstrap_servers)
        except KafkaError as e:
            self.producer = None
            logger.error("Failed to start Kafka producer", error=str(e))
            raise

    async def stop(self):
        """Stop Kafka producer gracefully"""
        if self.producer:
            try:
                await self.producer.stop()
                logger.info("Kafka producer stopped")
            except KafkaError as e:
                logger.error("Error stopping Kafka producer", error=str(e))
            finally:
                self.producer = None

    async def _publish(self, topic: str, event: dict, key: Optional[str] = None):
        if not self.producer:
            logger.debug("Kafka producer not started, event dropped", topic=topic,
                         event_type=event.get("event_type"))
            return

        try:
            await self.producer.send_and_wait(
                topic,
                value=event,
                key=key.encode('utf-8') if key else None
            )
            logger.info("Published ledger event", topic=topic, event_type=event.get("event_type"))
        except KafkaError as e:
            logger.error("Failed to publish ledger event", topic=topic,
                         event_type=event.get("event_type"), error=str(e))
        except Exception as e:
            logger.error("Unexpected error publishing ledger event", topic=topic,
                         event_type=event.get("event_type"), error=str(e))

    async def publish_donation_recorded(self, donation_data: dict):
        """
        Publish donation_recorded event

        Args:
            donation_data: Dictionary containing donation information
        """
        event = {
            "event_type": "donation_recorded",
            "donation_id": donation_data.get("id"),
            "user_id": donation_data.get("user_id"),
            "association_id": donation_data.get("association_id"),
            "amount": donation_data.get("amount"),
            "type": donation_data.get("type"),
            "status": donation_data.get("status"),
            "want_receipt": donation_data.get("want_receipt", False),
            "email": donation_data.get("email"),
            "timestamp": donation_data.get("created_at"),
        }
        await self._publish(settings.kafka_topic_donation_recorded, event,
                            key=donation_data.get("association_id"))

    async def publish_badges_unlocked(self, user_id: str, donation_id: str, badge_ids: List[str]):
        event = {
            "event_type": "badges_unlocked",
            "user_id": user_id,
            "donation_id": donation_id,
            "badges": badge_ids,
        }
        await self._publish(settings.kafka_topic_badges_unlocked, event, key=user_id)

    async def publish_goal_completed(self, goal_id: str, association_id: str, user_id: str,
                                     collected_amount: int, target_amount: int):
        event = {
            "event_type": "goal_completed",
            "goal_id": goal_id,
            "association_id": association_id,
            "completed_by": user_id,
            "collected_amount": collected_amount,
            "target_amount": target_amount,
        }
        await self._publish(settings.kafka_topic_goal_completed, event, key=association_id)


# Global producer instance
ledger_event_producer = LedgerEventProducer()


async def get_event_producer() -> LedgerEventProducer:
    """Dependency to get the event producer"""
    return ledger_event_producer
