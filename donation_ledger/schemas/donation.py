from pydantic import ConfigDict, EmailStr, Field
from typing import List, Optional
from datetime import datetime
from enum import Enum

from donation_ledger.schemas.base import LedgerSchema
from donation_ledger.schemas.badge import UnlockedBadge


class DonationTypeEnum(str, Enum):
    SINGLE = "single"
    RECURRENT = "recurrent"


class DonationStatusEnum(str, Enum):
    COMPLETED = "completed"
    ACTIVE = "active"
    CANCELLED = "cancelled"


class ReceiptPreferences(LedgerSchema):
    want_receipt: bool = Field(default=False, description="Donor wants a tax receipt")
    monthly_receipt: bool = Field(default=False, description="Monthly receipt for recurrent donations")


class RecordDonationRequest(LedgerSchema):
    """Schema for recording a finalized donation"""
    association_id: str = Field(..., min_length=1, description="Association receiving the donation")
    amount: int = Field(..., gt=0, description="Donation amount in whole currency units")
    type: DonationTypeEnum = Field(default=DonationTypeEnum.SINGLE, description="single or recurrent")
    status: Optional[DonationStatusEnum] = Field(None, description="Lifecycle status (defaults by type)")
    receipt_preferences: ReceiptPreferences = Field(default_factory=ReceiptPreferences)
    payment_method: Optional[str] = Field(None, description="Payment method tag (card, paypal, ...)")
    email: Optional[EmailStr] = Field(None, description="Receipt address; identifies guest donors")
    anonymous: bool = Field(default=False, description="Guest donation without any contact")
    recurring_day: Optional[int] = Field(None, ge=1, le=28, description="Day of month for recurrent donations")

    model_config = ConfigDict(
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "associationId": "restos-du-coeur",
                "amount": 15,
                "type": "single",
                "receiptPreferences": {"wantReceipt": True, "monthlyReceipt": False},
                "paymentMethod": "card"
            }
        }
    )


class RecordDonationResponse(LedgerSchema):
    """Outcome of recording a donation"""
    donation_id: str
    unlocked_badges: List[UnlockedBadge] = Field(default_factory=list)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "donationId": "0b6f3c2e-9a51-4e55-9b6c-6f1a4d2b8e10",
                "unlockedBadges": [
                    {
                        "id": "cumulated_100",
                        "displayName": "Generous donor",
                        "imageRef": "badges/cumulated_100.png"
                    }
                ]
            }
        }
    )


class DonationResponse(LedgerSchema):
    """Schema for donation responses"""
    id: str
    user_id: Optional[str]
    association_id: str
    amount: int
    type: DonationTypeEnum
    status: DonationStatusEnum
    payment_method: Optional[str]
    email: Optional[str]
    anonymous: bool
    want_receipt: bool
    monthly_receipt: bool
    recurring_day: Optional[int]
    created_at: datetime
    updated_at: Optional[datetime]


class DonationListResponse(LedgerSchema):
    donations: List[DonationResponse]
    total: int


class UpdateDonationStatusRequest(LedgerSchema):
    status: DonationStatusEnum = Field(..., description="New lifecycle status")


class UpdateReceiptRequest(LedgerSchema):
    monthly_receipt: bool = Field(..., description="Monthly receipt preference")
