from sqlalchemy import Column, String, DateTime, PrimaryKeyConstraint

from donation_ledger.models.base import Base, utcnow


class UserBadge(Base):
    """Membership of one badge in a user's badge set; rows are never deleted"""
    __tablename__ = "user_badges"
    __table_args__ = (
        PrimaryKeyConstraint("user_id", "badge_id", name="pk_user_badges"),
    )

    user_id = Column(String, nullable=False, index=True)
    badge_id = Column(String(32), nullable=False)
    unlocked_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<UserBadge(user_id={self.user_id}, badge_id='{self.badge_id}')>"
