from datetime import datetime, timezone
from sqlalchemy.orm import declarative_base
import uuid

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every ledger column stores"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())
