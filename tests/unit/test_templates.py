"""Challenge title/description rendering."""

from __future__ import annotations

import pytest

from poiking.challenges.rules import CHALLENGE_TYPES
from poiking.challenges.templates import display_value, render_description, render_title


class TestDisplayValue:
    def test_time_types_shown_in_minutes(self):
        assert display_value("session_duration", 900) == 15
        assert display_value("longest_session", 3600) == 60

    def test_count_types_unchanged(self):
        assert display_value("entry_count", 5) == 5
        assert display_value("unique_pois", 12) == 12


class TestRenderTitle:
    def test_session_duration(self):
        assert render_title("session_duration", 1200, "daily") == "Log 20 minutes of sessions"

    def test_singular_crown(self):
        assert render_title("crown_claim", 1, "weekly") == "Get 1 new crown"

    def test_plural_crowns(self):
        assert render_title("crown_claim", 3, "weekly") == "Get 3 new crowns"

    def test_category_variety_plural(self):
        assert render_title("category_variety", 1, "daily") == "Visit 1 different category"
        assert render_title("category_variety", 4, "daily") == "Visit 4 different categories"

    def test_entry_count_without_category(self):
        assert render_title("entry_count", 3, "daily") == "Complete 3 daily entries"

    def test_entry_count_with_category(self):
        assert render_title("entry_count", 1, "weekly", "castle") == "Complete 1 weekly entry at castles"

    def test_category_similarity_uses_category(self):
        assert render_title("category_similarity", 2, "monthly", "museum") == "Log 2 sessions at museum"

    @pytest.mark.parametrize("challenge_type", CHALLENGE_TYPES)
    def test_every_type_renders_without_placeholders(self, challenge_type):
        title = render_title(challenge_type, 120, "weekly", "park")
        description = render_description(challenge_type, 120, "weekly", "park")
        assert "{" not in title and "}" not in title
        assert "{" not in description and "}" not in description


class TestRenderDescription:
    def test_period_phrase(self):
        assert render_description("unique_pois", 5, "weekly") == "Visit 5 unique POIs this week"

    def test_entry_count_with_category(self):
        assert render_description("entry_count", 2, "daily", "castle") == "Complete 2 entries today at castles"

    def test_longest_session_minutes(self):
        text = render_description("longest_session", 600, "monthly")
        assert text == "Complete a single session of at least 10 minutes this month"
