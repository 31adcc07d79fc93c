"""Shared pytest fixtures for steam-library-export tests."""

import json

import pytest

from steam_library_export.config import ExportConfig
from steam_library_export.steamstore import (
    Metacritic,
    Platforms,
    ReleaseDate,
    StoreDetails,
    StoreTag,
)


@pytest.fixture
def write_batch():
    """Return a helper that writes a scrape batch file and returns its path."""

    def _write(directory, entries, name="SteamScrape_tester_2025-01-01 1200.json"):
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_text(json.dumps(entries), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def config(tmp_path):
    """Config pointing at temporary input/output folders, with no delay."""
    return ExportConfig(
        input_dir=tmp_path / "raw_data",
        output_dir=tmp_path / "library",
        delay_seconds=0,
    )


@pytest.fixture
def portal_details():
    """Store details for a fully described app."""
    return StoreDetails(
        name="Portal 2",
        steam_appid=620,
        header_image="https://cdn.example.test/apps/620/header.jpg",
        short_description="The &quot;Perpetual Testing Initiative&quot;<br>Co-op <b>included</b>.",
        developers=["Valve"],
        publishers=["Valve", "Electronic Arts"],
        release_date=ReleaseDate(coming_soon=False, date="18 Apr, 2011"),
        metacritic=Metacritic(score=95, url="https://www.metacritic.com/game/portal-2"),
        categories=[StoreTag(id="2", description="Single-player"), StoreTag(id="9", description="Co-op")],
        genres=[StoreTag(id="1", description="Action"), StoreTag(id="25", description="Adventure")],
        platforms=Platforms(windows=True, mac=True, linux=True),
        controller_support="full",
    )


@pytest.fixture
def portal_payload():
    """The appdetails ``data`` object matching ``portal_details``."""
    return {
        "name": "Portal 2",
        "steam_appid": 620,
        "header_image": "https://cdn.example.test/apps/620/header.jpg",
        "short_description": "The &quot;Perpetual Testing Initiative&quot;<br>Co-op <b>included</b>.",
        "developers": ["Valve"],
        "publishers": ["Valve", "Electronic Arts"],
        "release_date": {"coming_soon": False, "date": "18 Apr, 2011"},
        "metacritic": {"score": 95, "url": "https://www.metacritic.com/game/portal-2"},
        "categories": [
            {"id": 2, "description": "Single-player"},
            {"id": 9, "description": "Co-op"},
        ],
        "genres": [{"id": "1", "description": "Action"}, {"id": "25", "description": "Adventure"}],
        "platforms": {"windows": True, "mac": True, "linux": True},
        "controller_support": "full",
        "required_age": 0,
    }
