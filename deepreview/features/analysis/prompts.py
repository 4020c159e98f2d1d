"""
Prompt template for the daily-reflection analysis.

The prompt embeds the entry date, the writer's name, weather, mood and all
nine reflection sections, then asks for five analysis dimensions.
"""

from deepreview.features.journal.models import Entry

SECTION_TITLES = (
    ("energy_source", "❤️ Today's energy source"),
    ("time_observation", "⏳ Observing the river of time"),
    ("emotion_exploration", "🌦️ Emotional weather"),
    ("cognitive_breakthrough_good", "💡 Breakthrough moment - growth"),
    ("cognitive_breakthrough_bad", "💡 Breakthrough moment - old pattern"),
    ("tomorrow_plan_avoid", "🗺️ Tomorrow's map - trap to avoid"),
    ("tomorrow_plan_seed", "🗺️ Tomorrow's map - seed to plant"),
    ("free_writing", "🌌 The inner garden"),
    ("daily_metaphor", "🔮 Today as a metaphor"),
)

ANALYSIS_DIMENSIONS = """1. **🌟 Inner patterns** - the deeper psychological patterns and growth trends visible in what was written
2. **🎯 Core theme** - the single theme most worth attention today
3. **💎 Distilled wisdom** - a careful reading of the breakthroughs, affirming their value
4. **🌱 Growth suggestions** - concrete, doable next steps grounded in the analysis
5. **🔮 Looking ahead** - refinements to tomorrow's plan and the longer direction"""


def build_analysis_prompt(entry: Entry, user_name: str = "") -> str:
    """Render the fixed analysis prompt for one entry."""
    name = user_name or entry.user_name or "the writer"
    sections = "\n\n".join(
        f"**{title}:**\n{getattr(entry, field)}" for field, title in SECTION_TITLES
    )

    return f"""As an experienced counselor and life mentor, analyze the following daily reflection in depth. Use warm, wise and insightful language.

## Reflection
**Date:** {entry.formatted_date}
**Name:** {name}
**Weather:** {entry.weather.symbol} {entry.weather.description}
**Mood:** {entry.mood_base}

{sections}

## Please cover these dimensions:

{ANALYSIS_DIMENSIONS}

Write like a wise friend: warm, poetic where it helps, and always specific to what was written."""
