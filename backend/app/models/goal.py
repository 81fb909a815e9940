"""Goal and achievement models."""

from sqlalchemy import Column, Integer, String, Float, Date, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime

from app.database import Base


class Goal(Base):
    """A target value over a date scope for one activity type."""
    
    __tablename__ = "goals"
    
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    activity_type_id = Column(Integer, ForeignKey("activity_types.id"), nullable=False, index=True)
    
    name = Column(String(200), nullable=False)
    target_value = Column(Float, nullable=False)
    icon = Column(String(50), default="target")
    
    date_type = Column(String(20), nullable=False, default="daily")  # daily, weekly, monthly, by_date, date_range
    tracking_type = Column(String(20), default="average")  # average, absolute, sum
    target_date = Column(Date, nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    
    created_at = Column(DateTime, default=datetime.utcnow)
    
    # Relationships
    user = relationship("User", back_populates="goals")
    achievements = relationship("Achievement", back_populates="goal", cascade="all, delete-orphan")
    
    def __repr__(self):
        return f"<Goal {self.name} ({self.date_type}) target={self.target_value}>"


class Achievement(Base):
    """Immutable record of a goal met over a closed period."""
    
    __tablename__ = "achievements"
    
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    goal_id = Column(Integer, ForeignKey("goals.id"), nullable=False, index=True)
    
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False, index=True)
    achieved_value = Column(Float, nullable=False)
    target_value = Column(Float, nullable=False)
    achieved_at = Column(DateTime, default=datetime.utcnow)
    
    # Relationships
    goal = relationship("Goal", back_populates="achievements")
    
    def __repr__(self):
        return f"<Achievement goal={self.goal_id} {self.period_start}..{self.period_end}>"
