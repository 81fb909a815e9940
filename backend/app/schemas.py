"""Pydantic schemas for API request/response validation."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List, Any, Literal
from datetime import datetime, date


class CamelModel(BaseModel):
    """Base for payloads that go over the wire in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============== Data State Schemas ==============

DataState = Literal["no_activity_types", "insufficient_data", "building_baseline", "sufficient"]

# Least to most mature
DATA_STATE_ORDER = ("no_activity_types", "insufficient_data", "building_baseline", "sufficient")


class DataStateAssessment(CamelModel):
    """How much tracking history a user has in the window."""
    state: DataState
    activity_type_count: int = 0
    days_with_entries: int = 0
    total_entries: int = 0


# ============== Check-in Context Schemas ==============

Trend = Literal["improving", "declining", "stable"]
Polarity = Literal["positive", "negative", "neutral"]


class ActivityTypeAnalysis(CamelModel):
    type_id: int
    name: str
    unit: str = ""
    goal_type: Polarity
    total_entries: int
    total: float
    average: float
    min: float
    max: float
    first_half_average: Optional[float] = None
    second_half_average: Optional[float] = None
    change_percent: Optional[float] = None
    trend: Trend = "stable"
    trend_description: str = ""
    current_streak: int = 0
    longest_streak: int = 0
    most_active_day: str
    goal_completion_rate: Optional[float] = None  # mean percent complete of this type's goals


class ActivityAnalysis(CamelModel):
    tracked_types: List[str] = []  # every active type, logged or not
    by_type: List[ActivityTypeAnalysis] = []
    total_days_logged: int = 0
    total_days_in_period: int = 0
    consistency_score: int = 0  # percent of days with at least one entry
    most_consistent_activity: Optional[str] = None
    busiest_day: Optional[str] = None
    quietest_day: Optional[str] = None
    week_over_week_change: int = 0  # percent, entry count


class VoiceNoteSuggestions(CamelModel):
    """Machine-extracted activity suggestions, passed through untouched."""
    date: date
    suggestions: Any


class VoiceNoteAnalysis(CamelModel):
    total_notes: int = 0
    dates: List[date] = []
    transcriptions: List[str] = []
    key_phrases: List[str] = []
    emotional_tone: Literal["positive", "mixed", "challenging"] = "mixed"
    mentioned_activities: List[str] = []
    extracted_activities: List[VoiceNoteSuggestions] = []


class GoalProgressAnalysis(CamelModel):
    goal_id: int
    goal_name: str
    activity_type_id: int
    activity_type_name: str
    target_value: float
    date_type: Optional[str] = None
    tracking_type: str
    current_value: float
    percent_complete: int
    is_on_track: bool
    days_remaining: Optional[int] = None


class AchievementHighlight(CamelModel):
    goal_name: str
    goal_icon: Optional[str] = None
    period_start: date
    period_end: date
    achieved_at: Optional[datetime] = None
    achieved_value: float
    target_value: float
    exceeded_by: float = 0


class AchievementAnalysis(CamelModel):
    total_earned: int = 0
    recent_achievements: List[AchievementHighlight] = []
    most_achieved_goal: Optional[str] = None


class StreakHighlight(CamelModel):
    activity_name: str
    days: int


class ChangeHighlight(CamelModel):
    activity_name: str
    previous_week_total: float
    this_week_total: float
    change_percent: float
    is_improvement: bool


class CheckInHighlights(CamelModel):
    biggest_win: str
    consistency_story: str
    best_streaks: List[StreakHighlight] = []
    largest_change: Optional[ChangeHighlight] = None
    trending_up: List[str] = []
    needs_attention: List[str] = []
    achievements: List[AchievementHighlight] = []


class CheckInContext(CamelModel):
    """Everything the generation service sees about one run."""
    period_start: date
    period_end: date
    data_state: DataState
    data_state_details: DataStateAssessment
    activity_analysis: ActivityAnalysis
    voice_note_analysis: VoiceNoteAnalysis
    goal_progress: List[GoalProgressAnalysis] = []
    achievements: AchievementAnalysis
    highlights: CheckInHighlights


# ============== Check-in Analysis Schemas ==============

ResourceType = Literal["article", "subreddit", "video", "other"]


class CheckInResource(CamelModel):
    title: str
    url: str
    type: ResourceType = "article"
    description: str = ""


class GeneratedCheckIn(CamelModel):
    """The part of the report authored by the generation model."""
    overall_summary: str = Field(
        description=(
            "3-5 warm, conversational paragraphs in second person interpreting what the "
            "user's patterns mean. Qualitative, not a data dump."
        )
    )
    celebrations: List[str] = Field(description="2-5 specific wins worth celebrating, and why they matter.")
    insights: List[str] = Field(description="3-5 interesting patterns noticed in the data.")
    recommendations: List[str] = Field(description="At most 3 specific, achievable suggestions.")
    weekly_focus: str = Field(description="One sentence: a single focus for the coming week.")
    motivation: str = Field(description="A short closing quote or thought.")


class CheckInAnalysis(GeneratedCheckIn):
    """The complete report as persisted."""
    resources: List[CheckInResource] = []


class PartialCheckInAnalysis(CamelModel):
    """In-progress report; every field may still be missing."""
    overall_summary: Optional[str] = None
    celebrations: Optional[List[str]] = None
    insights: Optional[List[str]] = None
    recommendations: Optional[List[str]] = None
    resources: Optional[List[CheckInResource]] = None
    weekly_focus: Optional[str] = None
    motivation: Optional[str] = None


# ============== Check-in Record Schemas ==============

class GoalProgress(CamelModel):
    goal_id: int
    goal_name: str
    target_value: float
    achieved_value: float
    percent_complete: int


class CheckInDataSummary(CamelModel):
    """Compact audit of what a check-in was generated from."""
    data_state: DataState
    total_activities_logged: int
    unique_activity_types: int
    most_tracked_activity: Optional[str] = None
    activity_streak: int = 0
    voice_notes_count: int = 0
    transcription_highlights: List[str] = []
    goals_progress: List[GoalProgress] = []
    achievements_earned: int = 0
    achievement_names: List[str] = []


class CheckInResponse(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    user_id: int
    created_at: datetime
    period_start: date
    period_end: date
    analysis: CheckInAnalysis
    data_summary: CheckInDataSummary
    status: str
    error_message: Optional[str] = None


class CheckInsListResponse(CamelModel):
    check_ins: List[CheckInResponse]
    total: int
    can_generate_new: bool
    next_available_date: Optional[date] = None
    data_state: DataState
    data_state_details: DataStateAssessment


# ============== Streaming Status Schemas ==============

StreamingStatusType = Literal[
    "checking_rate_limit",
    "aggregating_data",
    "analyzing",
    "searching",
    "streaming_content",
    "saving",
    "complete",
    "error",
]

STREAMING_STATUS_MESSAGES = {
    "checking_rate_limit": "Checking availability...",
    "aggregating_data": "Gathering your health data...",
    "analyzing": "Analyzing your progress...",
    "searching": "Finding personalized resources...",
    "streaming_content": "Writing your check-in...",
    "saving": "Saving your check-in...",
    "complete": "Done!",
    "error": "Something went wrong",
}


class CheckInStreamingStatus(CamelModel):
    """One event on the status channel."""
    status: StreamingStatusType
    message: str
    status_code: Optional[int] = None
    partial_analysis: Optional[PartialCheckInAnalysis] = None
    data: Optional[CheckInResponse] = None

    def to_sse(self) -> str:
        """Render as a server-sent event frame."""
        return f"data: {self.model_dump_json(by_alias=True, exclude_none=True)}\n\n"
