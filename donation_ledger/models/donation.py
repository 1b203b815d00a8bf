from sqlalchemy import Column, Integer, String, DateTime, Enum, Boolean, CheckConstraint
import enum

from donation_ledger.models.base import Base, new_id, utcnow


class DonationType(enum.Enum):
    """One-off gift or monthly pledge"""
    SINGLE = "single"
    RECURRENT = "recurrent"


class DonationStatus(enum.Enum):
    """Lifecycle tag; the only donation field besides receipt flags that may change"""
    COMPLETED = "completed"  # Single gift recorded
    ACTIVE = "active"  # Recurrent pledge running
    CANCELLED = "cancelled"  # Recurrent pledge stopped by the donor


class Donation(Base):
    """Immutable record of a single contribution to an association"""
    __tablename__ = "donations"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_donations_amount_positive"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String, nullable=True, index=True)  # Null for guest donations
    association_id = Column(String, nullable=False, index=True)
    amount = Column(Integer, nullable=False)  # Whole currency units
    type = Column(Enum(DonationType, values_callable=lambda e: [m.value for m in e]),
                  nullable=False, default=DonationType.SINGLE)
    status = Column(Enum(DonationStatus, values_callable=lambda e: [m.value for m in e]),
                    nullable=False, default=DonationStatus.COMPLETED)
    payment_method = Column(String, nullable=True)
    email = Column(String, nullable=True)  # Receipt address
    anonymous = Column(Boolean, nullable=False, default=False)
    want_receipt = Column(Boolean, nullable=False, default=False)
    monthly_receipt = Column(Boolean, nullable=False, default=False)
    recurring_day = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return (f"<Donation(id={self.id}, association_id={self.association_id}, "
                f"amount={self.amount}, status='{self.status.value}')>")
