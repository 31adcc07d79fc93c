"""Tests for render context building and helpers."""

import pytest

from steam_library_export.context import (
    DEFAULT_TEMPLATE,
    TEMPLATE_FILTERS,
    build_context,
    clean_description,
    completion_rate,
    format_date,
    format_duration,
    normalize_release_date,
    play_status,
    round_half_up,
    store_url,
    wiki_link,
)
from steam_library_export.models import NEVER, Record
from steam_library_export.steamstore import ReleaseDate, StoreDetails
from steam_library_export.template import TemplateEngine


class TestHelpers:
    """Test the template helper functions."""

    @pytest.mark.parametrize(
        "ms,expected",
        [
            (0, "0 minutes and 0 seconds"),
            (1000, "0 minutes and 1 second"),
            (61000, "1 minute and 1 second"),
            (125500, "2 minutes and 6 seconds"),
            (None, "0 minutes and 0 seconds"),
        ],
    )
    def test_format_duration(self, ms, expected):
        assert format_duration(ms) == expected

    def test_wiki_link(self):
        assert wiki_link("Valve") == '  - "[[Valve]]"'

    def test_wiki_link_escapes_quotes(self):
        assert wiki_link('The "Game"') == '  - "[[The \\"Game\\"]]"'

    def test_format_date(self):
        assert format_date(1700000000) == "2023-11-14"
        assert format_date(1700000000, "%d/%m/%Y") == "14/11/2023"

    @pytest.mark.parametrize("value", [None, 0, False, NEVER])
    def test_format_date_missing(self, value):
        assert format_date(value) == ""

    @pytest.mark.parametrize("value", [10**15, -(10**15), "soon", float("inf")])
    def test_format_date_out_of_range(self, value, caplog):
        """Timestamps no calendar can hold format as empty instead of raising."""
        with caplog.at_level("WARNING"):
            assert format_date(value) == ""
        assert "Cannot format timestamp" in caplog.text

    def test_build_context_with_millisecond_timestamp(self):
        context = build_context(Record(title="x", last_played=1700000000000), None)
        assert context["last_played_date"] == "Never"

    def test_store_url(self):
        assert store_url(620) == "https://store.steampowered.com/app/620"

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("18 Apr, 2011", "2011-04-18"),
            ("Apr 18, 2011", "2011-04-18"),
            ("2011-04-18", "2011-04-18"),
            ("Coming soon", "Coming soon"),
            ("  Q3 2025 ", "Q3 2025"),
            (None, ""),
        ],
    )
    def test_normalize_release_date(self, text, expected):
        assert normalize_release_date(text) == expected

    def test_clean_description(self):
        text = "The &quot;Perpetual Testing Initiative&quot;<br>Co-op <b>included</b>."
        assert clean_description(text) == 'The "Perpetual Testing Initiative"\nCo-op included.'

    def test_clean_description_empty(self):
        assert clean_description(None) == ""

    @pytest.mark.parametrize("value,expected", [(0.5, 1), (1.5, 2), (2.5, 3), (2.49, 2)])
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected

    def test_completion_rate(self):
        assert completion_rate(Record(title="x", unlocked_count=1, total_count=8)) == 13
        assert completion_rate(Record(title="x", unlocked_count=3, total_count=0)) == 0

    @pytest.mark.parametrize("hours,status", [(5, "Playing"), (2, "Backlog"), (0.1, "Backlog"), (0, "Wishlist/Backlog")])
    def test_play_status(self, hours, status):
        assert play_status(hours) == status

    def test_filters_registered(self):
        assert set(TEMPLATE_FILTERS) == {"wikilink", "duration", "date", "ceil", "floor"}


class TestBuildContext:
    """Test context construction."""

    def test_basic_record(self):
        record = Record(title="Unplayed", external_id=10, total_count=10)
        context = build_context(record, None)

        assert context["game"] is record
        assert context["store"] is None
        assert context["playtime"] == 0.0
        assert context["played"] is False
        assert context["enriched"] is False
        assert context["last_played_date"] == "Never"
        assert context["release_date"] == ""
        assert context["features"] == []
        assert context["summary"] == ""
        assert context["status"] == "Wishlist/Backlog"

    def test_enriched_record(self, portal_details):
        record = Record(
            title="Portal 2",
            external_id=620,
            playtime_hours=12.5,
            last_played=1700000000,
            unlocked_count=30,
            total_count=51,
        )
        context = build_context(record, portal_details)

        assert context["enriched"] is True
        assert context["played"] is True
        assert context["completion_rate"] == 59
        assert context["release_date"] == "2011-04-18"
        assert context["is_released"] is True
        assert context["last_played_date"] == "2023-11-14"
        assert context["features"] == ["Single-player", "Co-op", "Full Controller Support"]
        assert context["summary"].startswith('The "Perpetual')
        assert context["status"] == "Playing"

    def test_coming_soon(self):
        store = StoreDetails(
            name="Later",
            steam_appid=999999,
            release_date=ReleaseDate(coming_soon=True, date="Coming soon"),
        )
        context = build_context(Record(title="Later", external_id=999999), store)

        assert context["is_released"] is False
        assert context["release_date"] == "Coming soon"

    def test_same_input_same_context(self, portal_details):
        record = Record(title="Portal 2", external_id=620, playtime_hours=1.0)
        assert build_context(record, portal_details) == build_context(record, portal_details)


class TestDefaultTemplate:
    """Test the built-in note template."""

    @pytest.fixture
    def engine(self):
        return TemplateEngine(filters=TEMPLATE_FILTERS)

    def test_compiles_cleanly(self, engine):
        assert engine.validate(DEFAULT_TEMPLATE) == []

    def test_enriched_note(self, engine, portal_details):
        record = Record(
            title="Portal 2",
            external_id=620,
            playtime_hours=12.5,
            last_played=1700000000,
            unlocked_count=30,
            total_count=51,
        )

        result = engine.render(DEFAULT_TEMPLATE, build_context(record, portal_details))

        assert result.ok, result.errors
        text = result.text
        assert text.startswith('---\ntitle: "[[Portal 2]]"\n')
        assert "releaseDate: 2011-04-18\n" in text
        assert 'developers:\n  - "[[Valve]]"\npublishers:' in text
        assert '  - "[[Electronic Arts]]"' in text
        assert 'genres:\n  - "[[Action]]"\n  - "[[Adventure]]"\n' in text
        assert '  - "[[Full Controller Support]]"' in text
        assert "metacriticRating: 95\n" in text
        assert "released: true\n" in text
        assert "playtimeHours: 12.5\n" in text
        assert "completionRate: 59%\n" in text
        assert "  - status/playing\n" in text
        assert "image: https://cdn.example.test/apps/620/header.jpg\n" in text
        assert "- **Playtime**: 750 minutes and 0 seconds (12.5 hours)" in text
        assert "- **Last Played**: 2023-11-14" in text
        assert "- [Steam Store](https://store.steampowered.com/app/620)" in text

    def test_basic_note(self, engine):
        record = Record(title='Say "Hi"', external_id=10, total_count=10)

        result = engine.render(DEFAULT_TEMPLATE, build_context(record, None))

        assert result.ok, result.errors
        text = result.text
        assert text.startswith('---\ntitle: "[[Say \\"Hi\\"]]"\n')
        assert "metacriticRating: 0\n" in text
        assert "released: false\n" in text
        assert "played: false\n" in text
        assert "playtimeHours: 0\n" in text
        assert "  - status/wishlist\n" in text
        assert "image: \n" in text
        assert "- **Last Played**: Never" in text
        assert "- **Completion**: 0% (0/10)" in text
