from .badge import (
    UnlockedBadge,
    BadgeResponse,
    BadgeCatalogResponse,
    UserBadgesResponse,
)
from .donation import (
    DonationTypeEnum,
    DonationStatusEnum,
    ReceiptPreferences,
    RecordDonationRequest,
    RecordDonationResponse,
    DonationResponse,
    DonationListResponse,
    UpdateDonationStatusRequest,
    UpdateReceiptRequest,
)
from .goal import (
    UpsertGoalRequest,
    GoalResponse,
    GoalProgressResponse,
    AssociationSummaryResponse,
)

__all__ = [
    "UnlockedBadge",
    "BadgeResponse",
    "BadgeCatalogResponse",
    "UserBadgesResponse",
    "DonationTypeEnum",
    "DonationStatusEnum",
    "ReceiptPreferences",
    "RecordDonationRequest",
    "RecordDonationResponse",
    "DonationResponse",
    "DonationListResponse",
    "UpdateDonationStatusRequest",
    "UpdateReceiptRequest",
    "UpsertGoalRequest",
    "GoalResponse",
    "GoalProgressResponse",
    "AssociationSummaryResponse",
]
