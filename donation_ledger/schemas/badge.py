from pydantic import ConfigDict
from typing import List

from donation_ledger.schemas.base import LedgerSchema


class UnlockedBadge(LedgerSchema):
    """Badge newly unlocked by a donation, as shown to the donor"""
    id: str
    display_name: str
    image_ref: str


class BadgeResponse(LedgerSchema):
    """Catalog entry"""
    id: str
    display_name: str
    image_ref: str
    description: str


class BadgeCatalogResponse(LedgerSchema):
    badges: List[BadgeResponse]


class UserBadgesResponse(LedgerSchema):
    """Badges held by a user, in catalog order"""
    user_id: str
    badges: List[BadgeResponse]

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "userId": "user-123-abc",
                "badges": [
                    {
                        "id": "first_donation",
                        "displayName": "First donation",
                        "imageRef": "badges/first_donation.png",
                        "description": "Made a first donation"
                    }
                ]
            }
        }
    )
