"""Voice note model."""

from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, Text, Float, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime

from app.database import Base


class VoiceNote(Base):
    """Recorded note for a day, optionally transcribed and mined for activities."""
    
    __tablename__ = "voice_notes"
    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_voice_note_user_date"),
    )
    
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    
    storage_path = Column(String(500), nullable=False)
    duration_seconds = Column(Float, default=0)
    
    transcription = Column(Text, nullable=True)
    transcription_status = Column(String(20), default="pending")  # pending, completed, failed
    extracted_activities = Column(JSON, nullable=True)  # suggestions from the extraction model
    
    created_at = Column(DateTime, default=datetime.utcnow)
    
    # Relationships
    user = relationship("User", back_populates="voice_notes")
    
    def __repr__(self):
        return f"<VoiceNote {self.date} ({self.transcription_status})>"
