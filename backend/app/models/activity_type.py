"""Activity type model: a user-defined trackable metric."""

from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from datetime import datetime

from app.database import Base


class ActivityType(Base):
    """Definition of something the user tracks daily (e.g. "Steps")."""
    
    __tablename__ = "activity_types"
    
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    
    name = Column(String(100), nullable=False)
    unit = Column(String(50), nullable=True)
    pluralize = Column(Boolean, default=True)
    
    # Polarity: goal_type wins, is_negative is the legacy flag
    goal_type = Column(String(20), nullable=True)  # positive, negative, neutral
    is_negative = Column(Boolean, nullable=True)
    
    # UI affordance
    ui_type = Column(String(20), default="increment")  # increment, slider, button_group, toggle
    min_value = Column(Float, nullable=True)
    max_value = Column(Float, nullable=True)
    step = Column(Float, nullable=True)
    button_options = Column(JSON, nullable=True)  # [{"label": ..., "value": ...}]
    
    deleted = Column(Boolean, default=False)  # soft delete, rows stay referenced
    display_order = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    
    # Relationships
    user = relationship("User", back_populates="activity_types")
    
    @property
    def polarity(self) -> str:
        """Resolved goal polarity: an explicit goal_type wins, unset means positive."""
        if self.goal_type in ("positive", "negative", "neutral"):
            return self.goal_type
        if self.is_negative is True:
            return "negative"
        return "positive"
    
    def __repr__(self):
        return f"<ActivityType {self.name} ({self.ui_type})>"
