"""
Local substitute analysis.

Used when no provider credential is configured, so analysis works without
any AI service. The text is deterministic for a given entry and clearly
labeled as a local template.
"""

from deepreview.features.journal.models import Entry

LOCAL_ANALYSIS_LABEL = "📝 Local reflection summary (no AI provider configured)"


def _excerpt(text: str, limit: int = 80) -> str:
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + "…"


def generate_local_analysis(entry: Entry, user_name: str = "") -> str:
    """Build the four-section templated analysis for an entry."""
    name = user_name or entry.user_name or "friend"

    if entry.cognitive_breakthrough_bad.strip():
        pattern_note = (
            f"You noticed an old pattern today: \"{_excerpt(entry.cognitive_breakthrough_bad)}\". "
            "Naming a pattern is the first step in loosening its hold."
        )
    else:
        pattern_note = (
            "No old pattern was recorded today. Tomorrow, watch for one moment where you "
            "reacted on autopilot and write it down."
        )

    if entry.time_observation.strip():
        time_note = (
            f"On how your time went: \"{_excerpt(entry.time_observation)}\". "
            "Pick the one block of time you most want to protect tomorrow."
        )
    else:
        time_note = (
            "Time went unobserved today. A quick look back at where the hours went "
            "makes tomorrow's plan easier to keep."
        )

    growth_parts = []
    if entry.cognitive_breakthrough_good.strip():
        growth_parts.append(f"Your growth today: \"{_excerpt(entry.cognitive_breakthrough_good)}\".")
    if entry.tomorrow_plan_seed.strip():
        growth_parts.append(f"The seed you want to plant: \"{_excerpt(entry.tomorrow_plan_seed)}\".")
    if not growth_parts:
        growth_parts.append("Even a day without a clear breakthrough adds to the ground you stand on.")
    growth_note = " ".join(growth_parts)

    completed = round(entry.completion_percentage * 100)
    encouragement = (
        f"{name}, you completed {completed}% of today's reflection. "
        "Showing up to reflect is itself the practice; keep going."
    )

    return "\n\n".join([
        LOCAL_ANALYSIS_LABEL,
        f"**🧠 Cognitive patterns**\n{pattern_note}",
        f"**⏳ Time management**\n{time_note}",
        f"**🌱 Growth**\n{growth_note}",
        f"**✨ Encouragement**\n{encouragement}",
    ])
