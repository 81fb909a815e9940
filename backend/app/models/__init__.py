"""Database models package."""

from app.models.user import User
from app.models.activity_type import ActivityType
from app.models.activity import Activity
from app.models.voice_note import VoiceNote
from app.models.goal import Goal, Achievement
from app.models.check_in import CheckIn

__all__ = [
    "User",
    "ActivityType",
    "Activity",
    "VoiceNote",
    "Goal",
    "Achievement",
    "CheckIn",
]
