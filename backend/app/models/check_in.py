"""Check-in model: one generated report per successful run."""

from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, Text, JSON, Index
from sqlalchemy.orm import relationship
from datetime import datetime

from app.database import Base


class CheckIn(Base):
    """Persisted check-in. Written once, never updated in place."""
    
    __tablename__ = "check_ins"
    __table_args__ = (
        Index("ix_check_ins_user_created", "user_id", "created_at"),
    )
    
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # Sole input to rate limiting
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    
    # Analysis period
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    
    analysis = Column(JSON, nullable=False)
    data_summary = Column(JSON, nullable=False)
    
    status = Column(String(20), default="completed")  # pending, generating, completed, failed
    error_message = Column(Text, nullable=True)
    
    # Relationships
    user = relationship("User", back_populates="check_ins")
    
    def __repr__(self):
        return f"<CheckIn {self.id} {self.period_start}..{self.period_end} ({self.status})>"
