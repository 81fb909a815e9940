"""Prompt construction for check-in generation."""

from typing import List

from app.schemas import CheckInContext, CheckInResource


CHECKIN_SYSTEM_PROMPT = """You are the user's knowledgeable best friend who shares SPECIFIC, fascinating health science, never generic statements.

## Your tone
- Warm and conversational, like sharing cool facts with a friend
- Qualitative about THEIR behavior ("your hydration has been solid")
- Quantitative about the SCIENCE ("which matters because even 2% dehydration cuts focus by 10-20%")
- Second person ("you"), no lectures, no guilt

## Absolute rules
1. Never write "research shows X is good". Give the number, the mechanism or the researcher.
2. Only talk about activities the user actually tracks.
3. When an activity is marked "lower is better", a decrease is progress. Celebrate it as such.
4. Do not invent data points about the user that are not in the context.
5. Do not write resources: the resource list is attached separately.

Output format: follow the JSON schema exactly."""


GETTING_STARTED_TASK = """## Your Task
Create a "Getting Started" check-in. They have set things up but barely logged anything yet.

1. **overallSummary**: 3-5 paragraphs explaining WHY tracking each of their activity types matters, the measurement effect of tracking itself, and what habit research says about the first weeks (66 days on average, not 21).
2. **celebrations**: Celebrate the decision to start and the activities they chose.
3. **insights**: What their chosen activities say about their priorities, and the science behind each.
4. **recommendations**: At most 3 tiny first steps (habit stacking, environment design) tied to their tracked activities.
5. **weeklyFocus**: One very small, specific logging habit for this week.
6. **motivation**: A warm, science-backed thought about beginnings.

Do not comment on trends: there is not enough data yet."""


BUILDING_MOMENTUM_TASK = """## Your Task
Create a "Building Momentum" check-in. They have a few days of data: enough to notice early patterns, NOT enough for confident claims.

1. **overallSummary**: 3-5 paragraphs on the neuroscience of habit formation (each repetition strengthens the pathway, the habit loop, why early days are hardest) connected to what they have logged.
2. **celebrations**: Frame wins as real brain change, not "great job!".
3. **insights**: Early patterns, hedged ("so far", "early signs"), plus the science behind what they track most.
4. **recommendations**: At most 3 evidence-based habit strategies directly related to: {activity_names}.
5. **weeklyFocus**: Build on momentum with a science-based reason.
6. **motivation**: An insight from behavioral science that validates their effort.

Mention trends cautiously. Consistency matters more than perfection."""


FULL_ANALYSIS_TASK = """## Your Task
Create a full check-in with SPECIFIC DATA POINTS.

1. **overallSummary**: 3-5 paragraphs with at least 2-3 specific numbers or mechanisms (BDNF, cortisol, HRV...). Cover what is working AND plant seeds for growth.
2. **celebrations**: Each win paired with the mechanism or number that makes it real.
3. **insights**: 3-5 data-backed observations about their patterns, trends and streaks.
4. **recommendations**: At most 3 gentle suggestions ("worth exploring...") with a specific WHY, directly related to: {activity_names}.
5. **weeklyFocus**: One goal with a specific scientific reason.
6. **motivation**: A specific, fascinating fact about one of their tracked activities.

Be warm, but SPECIFIC. "X improves Y by Z%" beats "studies show X is good"."""


CHECKIN_PROMPT_TEMPLATE = """## Analysis Period
{period_start} to {period_end}

## Tracked Activity Types
{tracked_types}

## Activity Tracking Summary
{activity_summary}

## Voice Notes (User's Own Words)
{voice_notes}

## Goals & Progress
{goal_progress}

## Achievements
{achievements}

## Key Highlights
{highlights}

## Resources Attached To This Check-in
{resources}

{task}"""


TASKS_BY_STATE = {
    "insufficient_data": GETTING_STARTED_TASK,
    "building_baseline": BUILDING_MOMENTUM_TASK,
    "sufficient": FULL_ANALYSIS_TASK,
}


def _format_number(value: float) -> str:
    return f"{value:g}"


def format_activity_summary(context: CheckInContext) -> str:
    analysis = context.activity_analysis
    if not analysis.by_type:
        return "No activities logged during this period."

    lines = []
    for t in analysis.by_type:
        unit = f" {t.unit}" if t.unit else ""
        lines.append(f"### {t.name}" + (" (lower is better)" if t.goal_type == "negative" else ""))
        lines.append(f"- Entries: {t.total_entries} times logged")
        lines.append(f"- Total: {_format_number(t.total)}{unit}")
        lines.append(f"- Average: {t.average:.1f}{unit}")
        lines.append(f"- Range: {_format_number(t.min)} - {_format_number(t.max)}{unit}")
        lines.append(f"- Trend: {t.trend}. {t.trend_description}")
        lines.append(f"- Current streak: {t.current_streak} days (longest: {t.longest_streak})")
        lines.append(f"- Most active on: {t.most_active_day}s")
        if t.goal_completion_rate is not None:
            lines.append(f"- Goal completion: {t.goal_completion_rate:.0f}%")
        lines.append("")

    lines.append("### Overall Patterns")
    lines.append(f"- Logged activities on {analysis.total_days_logged} of {analysis.total_days_in_period} days")
    lines.append(f"- Consistency score: {analysis.consistency_score}%")
    if analysis.busiest_day:
        lines.append(f"- Busiest day of week: {analysis.busiest_day}")
        lines.append(f"- Quietest day of week: {analysis.quietest_day}")
    sign = "+" if analysis.week_over_week_change > 0 else ""
    lines.append(f"- Week-over-week change: {sign}{analysis.week_over_week_change}%")
    return "\n".join(lines)


def format_voice_notes(context: CheckInContext) -> str:
    notes = context.voice_note_analysis
    if notes.total_notes == 0:
        return "No voice notes recorded during this period."

    lines = [
        f"Total voice notes: {notes.total_notes}",
        f"Overall emotional tone: {notes.emotional_tone}",
    ]
    if notes.mentioned_activities:
        lines.append(f"Activities they talked about: {', '.join(notes.mentioned_activities)}")
    if notes.key_phrases:
        lines.append("\n**Key phrases from their voice notes:**")
        lines.extend(f'- "{phrase}"' for phrase in notes.key_phrases)
    if notes.transcriptions:
        lines.append("\n**Transcriptions (for context):**")
        for i, transcription in enumerate(notes.transcriptions, start=1):
            lines.append(f'[Voice Note {i}]: "{transcription}"')
    return "\n".join(lines)


def format_goal_progress(context: CheckInContext) -> str:
    if not context.goal_progress:
        return "No goals set up yet."

    lines = []
    for goal in context.goal_progress:
        lines.append(f"### {goal.goal_name} ({'on track' if goal.is_on_track else 'needs attention'})")
        lines.append(f"- Activity: {goal.activity_type_name}")
        lines.append(f"- Target: {_format_number(goal.target_value)} ({goal.date_type or 'no date scope'}, {goal.tracking_type})")
        lines.append(f"- Current: {goal.current_value:.1f} ({goal.percent_complete}% complete)")
        if goal.days_remaining is not None:
            lines.append(f"- Days remaining: {goal.days_remaining}")
        lines.append("")
    return "\n".join(lines).rstrip()


def format_achievements(context: CheckInContext) -> str:
    achievements = context.achievements
    if achievements.total_earned == 0:
        return "No achievements earned during this period."

    lines = [f"Total achievements earned: {achievements.total_earned}"]
    if achievements.most_achieved_goal:
        lines.append(f"Most achieved goal: {achievements.most_achieved_goal}")
    lines.append("\n**Recent achievements:**")
    for a in achievements.recent_achievements[:5]:
        exceeded = f" (exceeded by {_format_number(a.exceeded_by)}!)" if a.exceeded_by > 0 else ""
        lines.append(
            f"- {a.goal_name}: {_format_number(a.achieved_value)}/{_format_number(a.target_value)}{exceeded}"
        )
    return "\n".join(lines)


def format_highlights(context: CheckInContext) -> str:
    h = context.highlights
    lines = [
        f"- Biggest win: {h.biggest_win}",
        f"- Consistency: {h.consistency_story}",
        f"- Trending up: {', '.join(h.trending_up) if h.trending_up else 'N/A'}",
        f"- Needs attention: {', '.join(h.needs_attention) if h.needs_attention else 'All on track!'}",
    ]
    if h.best_streaks:
        streaks = ", ".join(f"{s.activity_name} ({s.days} days)" for s in h.best_streaks)
        lines.append(f"- Best streaks: {streaks}")
    if h.largest_change:
        c = h.largest_change
        verdict = "improvement" if c.is_improvement else "dip"
        lines.append(
            f"- Biggest weekly change: {c.activity_name} {c.change_percent:+.0f}% "
            f"({_format_number(c.previous_week_total)} -> {_format_number(c.this_week_total)}, {verdict})"
        )
    return "\n".join(lines)


def format_resources(resources: List[CheckInResource]) -> str:
    if not resources:
        return "None."
    return "\n".join(f"- {r.title} ({r.type}): {r.url}" for r in resources)


def build_checkin_prompt(context: CheckInContext, resources: List[CheckInResource]) -> str:
    """Build the user prompt for the variant matching the data state."""
    activity_names = ", ".join(t.name for t in context.activity_analysis.by_type) or "their tracked activities"
    task = TASKS_BY_STATE.get(context.data_state, FULL_ANALYSIS_TASK)

    return CHECKIN_PROMPT_TEMPLATE.format(
        period_start=context.period_start.isoformat(),
        period_end=context.period_end.isoformat(),
        tracked_types="\n".join(f"- {t}" for t in context.activity_analysis.tracked_types) or "None.",
        activity_summary=format_activity_summary(context),
        voice_notes=format_voice_notes(context),
        goal_progress=format_goal_progress(context),
        achievements=format_achievements(context),
        highlights=format_highlights(context),
        resources=format_resources(resources),
        task=task.format(activity_names=activity_names),
    )
