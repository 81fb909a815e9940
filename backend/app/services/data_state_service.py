"""Classification of a user's tracking maturity."""

from typing import Iterable

from app.config import get_settings
from app.models import Activity, ActivityType
from app.schemas import DataStateAssessment


def assess_data_state(
    activity_types: Iterable[ActivityType],
    activities: Iterable[Activity],
    period_days: int = 30,
    baseline_min_days: int = None,
    sufficient_min_days: int = None,
) -> DataStateAssessment:
    """
    Classify how much signal a user has in the trailing window.
    
    Precedence:
    - no_activity_types: no active (non-deleted) activity type
    - insufficient_data: entries on fewer than ``baseline_min_days`` distinct days
    - building_baseline: fewer than ``sufficient_min_days`` distinct days
    - sufficient: everything else
    
    Only entries of active types count. ``activities`` is expected to be
    already restricted to the ``period_days`` window. Thresholds default to
    the configured policy so the pipeline and the listing endpoint agree.
    """
    settings = get_settings()
    if baseline_min_days is None:
        baseline_min_days = settings.checkin_baseline_min_days
    if sufficient_min_days is None:
        sufficient_min_days = settings.checkin_sufficient_min_days
    
    active_ids = {t.id for t in activity_types if not t.deleted}
    if not active_ids:
        return DataStateAssessment(state="no_activity_types")
    
    entries = [a for a in activities if a.activity_type_id in active_ids]
    days_with_entries = len({a.date for a in entries})
    
    if days_with_entries < baseline_min_days:
        state = "insufficient_data"
    elif days_with_entries < sufficient_min_days:
        state = "building_baseline"
    else:
        state = "sufficient"
    
    return DataStateAssessment(
        state=state,
        activity_type_count=len(active_ids),
        days_with_entries=days_with_entries,
        total_entries=len(entries),
    )
