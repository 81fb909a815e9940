"""Activity entry model: one numeric observation per type per day."""

from sqlalchemy import Column, Integer, Float, Date, DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime

from app.database import Base


class Activity(Base):
    """A logged value for one activity type on one date."""
    
    __tablename__ = "activities"
    __table_args__ = (
        UniqueConstraint("user_id", "activity_type_id", "date", name="uq_activity_user_type_date"),
    )
    
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    activity_type_id = Column(Integer, ForeignKey("activity_types.id"), nullable=False, index=True)
    
    date = Column(Date, nullable=False, index=True)
    value = Column(Float, nullable=False)
    notes = Column(Text, nullable=True)
    
    created_at = Column(DateTime, default=datetime.utcnow)
    
    # Relationships
    user = relationship("User", back_populates="activities")
    activity_type = relationship("ActivityType")
    
    def __repr__(self):
        return f"<Activity type={self.activity_type_id} {self.date}: {self.value}>"
