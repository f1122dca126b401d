"""Title and description rendering for generated challenges."""

from __future__ import annotations

from poiking.challenges.rules import TIME_CHALLENGE_TYPES

TITLE_TEMPLATES: dict[str, str] = {
    "entry_count": "Complete {target} {period} entr{ies}{at_category}",
    "crown_claim": "Get {target} new crown{plural}",
    "session_duration": "Log {target} minutes of sessions",
    "longest_session": "Complete a {target} minute session",
    "unique_pois": "Visit {target} unique POI{plural}",
    "category_variety": "Visit {target} different categor{ies}",
    "category_similarity": "Log {target} session{plural} at {category}",
    "new_location": "Discover {target} new location{plural}",
}

DESCRIPTION_TEMPLATES: dict[str, str] = {
    "entry_count": "Complete {target} entr{ies} {when}{at_category}",
    "crown_claim": "Get {target} new crown{plural} {when}",
    "session_duration": "Log at least {target} minutes of total session time {when}",
    "longest_session": "Complete a single session of at least {target} minutes {when}",
    "unique_pois": "Visit {target} unique POI{plural} {when}",
    "category_variety": "Visit {target} different categor{ies} {when}",
    "category_similarity": "Log {target} session{plural} at {category} {when}",
    "new_location": "Discover {target} new location{plural} (POIs with no previous sessions) {when}",
}

PERIOD_PHRASES: dict[str, str] = {
    "daily": "today",
    "weekly": "this week",
    "monthly": "this month",
}


def display_value(challenge_type: str, target_value: int) -> int:
    """Value shown to players: minutes for time-based targets, raw count otherwise."""
    if challenge_type in TIME_CHALLENGE_TYPES:
        return round(target_value / 60)
    return target_value


def _fields(challenge_type: str, target_value: int, period: str) -> dict[str, str | int]:
    shown = display_value(challenge_type, target_value)
    return {
        "target": shown,
        "plural": "" if shown == 1 else "s",
        "ies": "y" if shown == 1 else "ies",
        "period": period,
        "when": PERIOD_PHRASES.get(period, period),
    }


def render_title(
    challenge_type: str,
    target_value: int,
    period: str,
    category: str | None = None,
) -> str:
    fields = _fields(challenge_type, target_value, period)
    fields["category"] = category or "the same category"
    fields["at_category"] = f" at {category}s" if category else ""
    return TITLE_TEMPLATES[challenge_type].format(**fields)


def render_description(
    challenge_type: str,
    target_value: int,
    period: str,
    category: str | None = None,
) -> str:
    fields = _fields(challenge_type, target_value, period)
    fields["category"] = category or "the same category"
    fields["at_category"] = f" at {category}s" if category else ""
    return DESCRIPTION_TEMPLATES[challenge_type].format(**fields)
