from .base import Base, utcnow
from .donation import Donation, DonationType, DonationStatus
from .goal import Goal
from .badge import UserBadge

__all__ = [
    "Base",
    "utcnow",
    "Donation",
    "DonationType",
    "DonationStatus",
    "Goal",
    "UserBadge",
]
