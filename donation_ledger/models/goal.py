from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean

from donation_ledger.models.base import Base, new_id, utcnow


class Goal(Base):
    """Fundraising target of an association.

    ``completed`` flips from False to True at most once, and ``completed_at`` /
    ``completed_by`` are written only by that transition.
    """
    __tablename__ = "goals"

    id = Column(String(36), primary_key=True, default=new_id)
    association_id = Column(String, nullable=False, index=True)
    target_amount = Column(Integer, nullable=False)
    title = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    end_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=True)  # Every save, creation included
    completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime, nullable=True)
    completed_by = Column(String, nullable=True)

    def __repr__(self):
        return (f"<Goal(id={self.id}, association_id={self.association_id}, "
                f"target_amount={self.target_amount}, completed={self.completed})>")
