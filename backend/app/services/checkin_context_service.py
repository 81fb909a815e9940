"""Check-in context compilation.

Turns the raw rows fetched for one run into the bounded, structured context
handed to the generation service. Everything here is deterministic: the only
notion of "now" is the window end passed in by the caller.
"""

import re
from collections import Counter, defaultdict
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from app.models import Activity, ActivityType, VoiceNote, Goal, Achievement
from app.schemas import (
    ActivityAnalysis,
    ActivityTypeAnalysis,
    AchievementAnalysis,
    AchievementHighlight,
    ChangeHighlight,
    CheckInContext,
    CheckInDataSummary,
    CheckInHighlights,
    DataStateAssessment,
    GoalProgress,
    GoalProgressAnalysis,
    StreakHighlight,
    VoiceNoteAnalysis,
    VoiceNoteSuggestions,
)


# Size caps keep the serialized context within a single request
MAX_TRANSCRIPTIONS = 5
MAX_TRANSCRIPTION_CHARS = 1000
MAX_KEY_PHRASES = 5
MAX_VOICE_NOTE_SUGGESTIONS = 10
MAX_GOALS = 10
MAX_ACHIEVEMENTS = 10
MAX_HIGHLIGHT_ACHIEVEMENTS = 5
MAX_BEST_STREAKS = 3
MAX_NEEDS_ATTENTION = 5
MAX_SUMMARY_HIGHLIGHTS = 3

TREND_THRESHOLD_PERCENT = 10.0
ON_TRACK_PERCENT = 50

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

FEELING_WORDS = ["feel", "felt", "feeling", "proud", "happy", "struggled", "difficult",
                 "great", "amazing", "tired", "energetic"]
POSITIVE_WORDS = ["great", "good", "happy", "proud", "amazing", "wonderful", "excellent",
                  "better", "improved"]
CHALLENGING_WORDS = ["hard", "difficult", "struggled", "tired", "stressed", "tough",
                     "challenging", "worse"]

DISCRETE_UI_TYPES = ("button_group", "toggle")


# ============== Small helpers ==============

def _mean(values: List[float]) -> Optional[float]:
    return sum(values) / len(values) if values else None


def _round(value: Optional[float], digits: int = 1) -> Optional[float]:
    return round(value, digits) if value is not None else None


def _longest_streak(dates: List[date]) -> int:
    """Longest run of consecutive days in a sorted, de-duplicated list."""
    longest = current = 0
    previous = None
    for d in dates:
        if previous is not None and d - previous == timedelta(days=1):
            current += 1
        else:
            current = 1
        longest = max(longest, current)
        previous = d
    return longest


def _current_streak(dates: List[date], end: date) -> int:
    """Consecutive days with entries ending on ``end``."""
    logged = set(dates)
    streak = 0
    day = end
    while day in logged:
        streak += 1
        day -= timedelta(days=1)
    return streak


def _busiest_weekday(counts: Counter) -> int:
    # Ties resolve to the earliest weekday
    return max(range(7), key=lambda d: (counts[d], -d))


def _quietest_weekday(counts: Counter) -> int:
    return min(range(7), key=lambda d: (counts[d], d))


def _day_met(value: float, target: float, polarity: str, discrete: bool) -> bool:
    if discrete or polarity == "neutral":
        return value == target
    if polarity == "negative":
        return value <= target
    return value >= target


def _describe_trend(
    name: str,
    polarity: str,
    change_percent: Optional[float],
    trend: str,
    first_half_avg: Optional[float] = None,
    second_half_avg: Optional[float] = None,
) -> str:
    if change_percent is None:
        if first_half_avg == 0 and second_half_avg is not None:
            # No percentage exists against a zero baseline
            return (
                f"{name} averaged 0 in the first half of the period and "
                f"{second_half_avg:.1f} in the second half."
            )
        return f"Not enough data in both halves of the period to compare {name}."
    if trend == "stable":
        return f"{name} held steady ({change_percent:+.0f}% between the two halves of the period)."
    direction = "increased" if change_percent > 0 else "decreased"
    text = f"{name} {direction} {abs(change_percent):.0f}% between the two halves of the period"
    if polarity == "negative":
        verdict = "an improvement" if trend == "improving" else "a step back"
        return f"{text} (lower is better here, so this is {verdict})."
    verdict = "an improvement" if trend == "improving" else "a dip"
    return f"{text}, which is {verdict}."


def _active_types(activity_types: Iterable[ActivityType]) -> List[ActivityType]:
    return sorted(
        (t for t in activity_types if not t.deleted),
        key=lambda t: (t.display_order or 0, t.id),
    )


# ============== Activity analysis ==============

def analyze_activities(
    activities: Iterable[Activity],
    activity_types: List[ActivityType],
    period_start: date,
    period_end: date,
) -> ActivityAnalysis:
    """Per-type statistics plus window-level consistency patterns."""
    period_days = (period_end - period_start).days + 1
    midpoint = period_end - timedelta(days=period_days // 2)
    types_by_id = {t.id: t for t in activity_types}

    by_type_entries: Dict[int, List[Activity]] = defaultdict(list)
    days_logged = set()
    weekday_counts = Counter()
    for activity in activities:
        if activity.activity_type_id not in types_by_id:
            continue
        if not (period_start <= activity.date <= period_end):
            continue
        by_type_entries[activity.activity_type_id].append(activity)
        days_logged.add(activity.date)
        weekday_counts[activity.date.weekday()] += 1

    by_type = []
    for activity_type in activity_types:
        entries = sorted(by_type_entries.get(activity_type.id, []), key=lambda a: a.date)
        if not entries:
            continue
        by_type.append(_analyze_type(activity_type, entries, midpoint, period_end))

    # Most consistent = longest streak still running at the window end
    most_consistent = None
    best_current = 0
    for analysis in by_type:
        if analysis.current_streak > best_current:
            best_current = analysis.current_streak
            most_consistent = analysis.name

    this_week_start = period_end - timedelta(days=6)
    last_week_start = period_end - timedelta(days=13)
    all_entries = [a for entries in by_type_entries.values() for a in entries]
    this_week = sum(1 for a in all_entries if a.date >= this_week_start)
    last_week = sum(1 for a in all_entries if last_week_start <= a.date < this_week_start)
    if last_week > 0:
        week_over_week = (this_week - last_week) / last_week * 100
    else:
        week_over_week = 100 if this_week > 0 else 0

    return ActivityAnalysis(
        tracked_types=[
            f"{t.name} ({t.unit})" if t.unit else t.name for t in activity_types
        ],
        by_type=by_type,
        total_days_logged=len(days_logged),
        total_days_in_period=period_days,
        consistency_score=round(len(days_logged) / period_days * 100) if period_days > 0 else 0,
        most_consistent_activity=most_consistent,
        busiest_day=DAY_NAMES[_busiest_weekday(weekday_counts)] if weekday_counts else None,
        quietest_day=DAY_NAMES[_quietest_weekday(weekday_counts)] if weekday_counts else None,
        week_over_week_change=round(week_over_week),
    )


def _analyze_type(
    activity_type: ActivityType,
    entries: List[Activity],
    midpoint: date,
    period_end: date,
) -> ActivityTypeAnalysis:
    values = [a.value for a in entries]
    polarity = activity_type.polarity

    # Trend: first half vs second half of the window
    first_half_avg = _mean([a.value for a in entries if a.date < midpoint])
    second_half_avg = _mean([a.value for a in entries if a.date >= midpoint])
    change_percent = None
    trend = "stable"
    if first_half_avg and second_half_avg is not None:
        change_percent = (second_half_avg - first_half_avg) / abs(first_half_avg) * 100
        better_when_lower = polarity == "negative"
        if change_percent >= TREND_THRESHOLD_PERCENT:
            trend = "declining" if better_when_lower else "improving"
        elif change_percent <= -TREND_THRESHOLD_PERCENT:
            trend = "improving" if better_when_lower else "declining"

    dates = sorted({a.date for a in entries})
    weekday_counts = Counter(d.weekday() for d in dates)

    return ActivityTypeAnalysis(
        type_id=activity_type.id,
        name=activity_type.name,
        unit=activity_type.unit or "",
        goal_type=polarity,
        total_entries=len(entries),
        total=round(sum(values), 2),
        average=round(sum(values) / len(values), 2),
        min=min(values),
        max=max(values),
        first_half_average=_round(first_half_avg, 2),
        second_half_average=_round(second_half_avg, 2),
        change_percent=_round(change_percent),
        trend=trend,
        trend_description=_describe_trend(
            activity_type.name, polarity, change_percent, trend, first_half_avg, second_half_avg
        ),
        current_streak=_current_streak(dates, period_end),
        longest_streak=_longest_streak(dates),
        most_active_day=DAY_NAMES[_busiest_weekday(weekday_counts)],
    )


def find_largest_weekly_change(
    activities: Iterable[Activity],
    activity_types: List[ActivityType],
    period_end: date,
) -> Optional[ChangeHighlight]:
    """Type with the biggest week-over-week swing in logged totals."""
    this_week_start = period_end - timedelta(days=6)
    last_week_start = period_end - timedelta(days=13)
    this_week = defaultdict(float)
    last_week = defaultdict(float)
    for activity in activities:
        if this_week_start <= activity.date <= period_end:
            this_week[activity.activity_type_id] += activity.value
        elif last_week_start <= activity.date < this_week_start:
            last_week[activity.activity_type_id] += activity.value

    best = None
    for activity_type in activity_types:
        current = this_week.get(activity_type.id, 0.0)
        previous = last_week.get(activity_type.id, 0.0)
        if previous > 0:
            change = (current - previous) / previous * 100
        elif current > 0:
            change = 100.0
        else:
            continue
        if change == 0:
            continue
        if best is None or abs(change) > abs(best.change_percent):
            lower_is_better = activity_type.polarity == "negative"
            best = ChangeHighlight(
                activity_name=activity_type.name,
                previous_week_total=round(previous, 2),
                this_week_total=round(current, 2),
                change_percent=round(change, 1),
                is_improvement=change < 0 if lower_is_better else change > 0,
            )
    return best


# ============== Voice notes ==============

def analyze_voice_notes(
    voice_notes: Iterable[VoiceNote],
    activity_types: List[ActivityType],
    period_start: date,
    period_end: date,
) -> VoiceNoteAnalysis:
    """Summarize voice notes; extracted suggestions are passed through as-is."""
    notes = sorted(
        (n for n in voice_notes if period_start <= n.date <= period_end),
        key=lambda n: n.date,
    )

    transcriptions = [
        n.transcription.strip()
        for n in notes
        if n.transcription and n.transcription_status == "completed" and n.transcription.strip()
    ]

    key_phrases = []
    for transcription in transcriptions:
        for sentence in re.split(r"[.!?]+", transcription):
            sentence = sentence.strip()
            if len(sentence) <= 10:
                continue
            lower = sentence.lower()
            if any(word in lower for word in FEELING_WORDS):
                key_phrases.append(sentence)

    all_text = " ".join(transcriptions).lower()
    positive = sum(len(re.findall(rf"\b{word}\b", all_text)) for word in POSITIVE_WORDS)
    challenging = sum(len(re.findall(rf"\b{word}\b", all_text)) for word in CHALLENGING_WORDS)
    tone = "mixed"
    if positive > challenging * 2:
        tone = "positive"
    elif challenging > positive * 2:
        tone = "challenging"

    mentioned = []
    for activity_type in activity_types:
        name = activity_type.name.lower()
        if name and name in all_text and name not in mentioned:
            mentioned.append(name)

    suggestions = [
        VoiceNoteSuggestions(date=n.date, suggestions=n.extracted_activities)
        for n in notes
        if n.extracted_activities
    ]

    return VoiceNoteAnalysis(
        total_notes=len(notes),
        dates=[n.date for n in notes],
        transcriptions=[t[:MAX_TRANSCRIPTION_CHARS] for t in transcriptions[:MAX_TRANSCRIPTIONS]],
        key_phrases=key_phrases[:MAX_KEY_PHRASES],
        emotional_tone=tone,
        mentioned_activities=mentioned,
        extracted_activities=suggestions[:MAX_VOICE_NOTE_SUGGESTIONS],
    )


# ============== Goals ==============

def _goal_period(goal: Goal, period_start: date, period_end: date) -> Optional[Tuple[date, date]]:
    """Date span a goal is measured over, clamped to the analysed window."""
    if goal.date_type == "daily":
        start, end = period_end, period_end
    elif goal.date_type == "weekly":
        start, end = period_end - timedelta(days=period_end.weekday()), period_end
    elif goal.date_type == "monthly":
        start, end = period_end.replace(day=1), period_end
    elif goal.date_type == "by_date":
        start = goal.created_at.date() if goal.created_at else period_end
        end = min(period_end, goal.target_date or period_end)
    elif goal.date_type == "date_range":
        start = goal.start_date or period_end
        end = min(period_end, goal.end_date or period_end)
    else:
        return None
    return max(start, period_start), end


def _tracking_mode(goal: Goal) -> str:
    return (goal.tracking_type or "average").strip().lower()


def goal_effective_value(
    goal: Goal,
    activity_type: ActivityType,
    values_by_date: Dict[date, float],
    period_start: date,
    period_end: date,
) -> Tuple[float, bool]:
    """Return (effective value, every logged day met the target)."""
    span = _goal_period(goal, period_start, period_end)
    if span is None:
        return 0.0, False
    start, end = span
    polarity = activity_type.polarity
    discrete = activity_type.ui_type in DISCRETE_UI_TYPES

    if goal.date_type == "daily":
        value = values_by_date.get(period_end, 0.0)
        return value, _day_met(value, goal.target_value, polarity, discrete)

    values = [v for d, v in values_by_date.items() if start <= d <= end]
    days_met = sum(1 for v in values if _day_met(v, goal.target_value, polarity, discrete))
    all_days_met = bool(values) and days_met == len(values)
    tracking = _tracking_mode(goal)

    if tracking == "sum":
        return sum(values), all_days_met
    if discrete:
        if tracking == "absolute":
            return float(days_met), all_days_met
        return (days_met / len(values) if values else 0.0), all_days_met
    if activity_type.ui_type == "slider":
        return (_mean(values) or 0.0), all_days_met
    return sum(values), all_days_met


def analyze_goal_progress(
    goals: Iterable[Goal],
    activity_types: List[ActivityType],
    activities: Iterable[Activity],
    period_start: date,
    period_end: date,
) -> List[GoalProgressAnalysis]:
    types_by_id = {t.id: t for t in activity_types}
    values = defaultdict(dict)
    for activity in activities:
        values[activity.activity_type_id][activity.date] = activity.value

    results = []
    for goal in sorted(goals, key=lambda g: g.id):
        activity_type = types_by_id.get(goal.activity_type_id)
        if activity_type is None:
            continue
        current, all_days_met = goal_effective_value(
            goal, activity_type, values[activity_type.id], period_start, period_end
        )
        percent = 0
        if goal.target_value > 0:
            percent = min(100, round(current / goal.target_value * 100))

        days_remaining = None
        if goal.date_type == "by_date" and goal.target_date:
            days_remaining = (goal.target_date - period_end).days
        elif goal.date_type == "date_range" and goal.end_date:
            days_remaining = (goal.end_date - period_end).days

        results.append(GoalProgressAnalysis(
            goal_id=goal.id,
            goal_name=goal.name,
            activity_type_id=activity_type.id,
            activity_type_name=activity_type.name,
            target_value=goal.target_value,
            date_type=goal.date_type,
            tracking_type=_tracking_mode(goal),
            current_value=round(current, 2),
            percent_complete=percent,
            is_on_track=percent >= ON_TRACK_PERCENT or all_days_met,
            days_remaining=days_remaining,
        ))
    return results[:MAX_GOALS]


# ============== Achievements ==============

def analyze_achievements(
    achievements: Iterable[Achievement],
    goals: Iterable[Goal],
    period_start: date,
    period_end: date,
) -> AchievementAnalysis:
    """Achievements whose period closed inside the window, newest first."""
    goals_by_id = {g.id: g for g in goals}
    in_window = [a for a in achievements if period_start <= a.period_end <= period_end]
    in_window.sort(key=lambda a: (a.period_end, a.achieved_at or datetime.min, a.id or 0), reverse=True)

    highlights = []
    for achievement in in_window:
        goal = goals_by_id.get(achievement.goal_id)
        highlights.append(AchievementHighlight(
            goal_name=goal.name if goal else "Unknown Goal",
            goal_icon=goal.icon if goal else None,
            period_start=achievement.period_start,
            period_end=achievement.period_end,
            achieved_at=achievement.achieved_at,
            achieved_value=achievement.achieved_value,
            target_value=achievement.target_value,
            exceeded_by=max(0.0, achievement.achieved_value - achievement.target_value),
        ))

    most_achieved = None
    if highlights:
        counts = Counter(h.goal_name for h in highlights)
        # Ties go to the most recently achieved
        top = max(counts.values())
        most_achieved = next(h.goal_name for h in highlights if counts[h.goal_name] == top)

    return AchievementAnalysis(
        total_earned=len(highlights),
        recent_achievements=highlights[:MAX_ACHIEVEMENTS],
        most_achieved_goal=most_achieved,
    )


# ============== Compile ==============

def compile_checkin_context(
    assessment: DataStateAssessment,
    activities: List[Activity],
    activity_types: List[ActivityType],
    voice_notes: List[VoiceNote],
    goals: List[Goal],
    achievements: List[Achievement],
    period_start: date,
    period_end: date,
) -> CheckInContext:
    """Build the analytical context for one generation run."""
    active_types = _active_types(activity_types)
    active_ids = {t.id for t in active_types}
    in_window = [
        a for a in activities
        if a.activity_type_id in active_ids and period_start <= a.date <= period_end
    ]

    activity_analysis = analyze_activities(in_window, active_types, period_start, period_end)
    voice_note_analysis = analyze_voice_notes(voice_notes, active_types, period_start, period_end)
    goal_progress = analyze_goal_progress(goals, active_types, in_window, period_start, period_end)
    achievement_analysis = analyze_achievements(achievements, goals, period_start, period_end)

    # Completion rate per type against its goals
    rates = defaultdict(list)
    for progress in goal_progress:
        rates[progress.activity_type_id].append(progress.percent_complete)
    for analysis in activity_analysis.by_type:
        if rates.get(analysis.type_id):
            analysis.goal_completion_rate = _round(_mean(rates[analysis.type_id]))

    trending_up = [a.name for a in activity_analysis.by_type if a.trend == "improving"]
    needs_attention = [
        g.goal_name for g in goal_progress
        if not g.is_on_track and g.percent_complete < ON_TRACK_PERCENT
    ]
    best_streaks = [
        StreakHighlight(activity_name=a.name, days=a.longest_streak)
        for a in sorted(activity_analysis.by_type, key=lambda a: -a.longest_streak)
        if a.longest_streak > 0
    ]

    biggest_win = "Starting your health tracking journey"
    if achievement_analysis.total_earned > 0:
        count = achievement_analysis.total_earned
        biggest_win = f"Earned {count} achievement{'s' if count > 1 else ''}"
    elif trending_up:
        biggest_win = f"Improving in {trending_up[0]}"
    elif activity_analysis.most_consistent_activity:
        biggest_win = f"Consistent with {activity_analysis.most_consistent_activity}"

    consistency_story = (
        f"Logged activities on {activity_analysis.total_days_logged} of "
        f"{activity_analysis.total_days_in_period} days "
        f"({activity_analysis.consistency_score}% consistency)"
    )

    return CheckInContext(
        period_start=period_start,
        period_end=period_end,
        data_state=assessment.state,
        data_state_details=assessment,
        activity_analysis=activity_analysis,
        voice_note_analysis=voice_note_analysis,
        goal_progress=goal_progress,
        achievements=achievement_analysis,
        highlights=CheckInHighlights(
            biggest_win=biggest_win,
            consistency_story=consistency_story,
            best_streaks=best_streaks[:MAX_BEST_STREAKS],
            largest_change=find_largest_weekly_change(in_window, active_types, period_end),
            trending_up=trending_up,
            needs_attention=needs_attention[:MAX_NEEDS_ATTENTION],
            achievements=achievement_analysis.recent_achievements[:MAX_HIGHLIGHT_ACHIEVEMENTS],
        ),
    )


def create_data_summary(context: CheckInContext) -> CheckInDataSummary:
    """Lightweight record of what a check-in was built from."""
    activity_analysis = context.activity_analysis
    return CheckInDataSummary(
        data_state=context.data_state,
        total_activities_logged=activity_analysis.total_days_logged,
        unique_activity_types=len(activity_analysis.by_type),
        most_tracked_activity=activity_analysis.most_consistent_activity,
        activity_streak=max((a.longest_streak for a in activity_analysis.by_type), default=0),
        voice_notes_count=context.voice_note_analysis.total_notes,
        transcription_highlights=context.voice_note_analysis.key_phrases[:MAX_SUMMARY_HIGHLIGHTS],
        goals_progress=[
            GoalProgress(
                goal_id=g.goal_id,
                goal_name=g.goal_name,
                target_value=g.target_value,
                achieved_value=g.current_value,
                percent_complete=g.percent_complete,
            )
            for g in context.goal_progress
        ],
        achievements_earned=context.achievements.total_earned,
        achievement_names=[a.goal_name for a in context.achievements.recent_achievements],
    )
