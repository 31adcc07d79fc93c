"""
Render context and template helpers.

``build_context`` turns a record and its (optional) store details into the
names a template can use. Nothing here touches the network or filesystem,
so the same record always produces the same context.
"""

import html
import logging
import math
import re
from datetime import UTC, datetime
from typing import Any

from .models import NEVER, Record
from .steamstore import StoreDetails

logger = logging.getLogger(__name__)

STORE_APP_URL = "https://store.steampowered.com/app"

# Steam writes release dates in the store's locale; these cover English
RELEASE_DATE_FORMATS = (
    "%d %b, %Y",
    "%b %d, %Y",
    "%d %B, %Y",
    "%B %d, %Y",
    "%d %b %Y",
    "%Y-%m-%d",
    "%b %Y",
    "%B %Y",
    "%Y",
)

_BR_PATTERN = re.compile(r"<br\s*/?>", re.IGNORECASE)
_TAG_PATTERN = re.compile(r"<[^>]+>")


def format_duration(ms: float) -> str:
    """Format milliseconds as ``"N minutes and M seconds"``."""
    total_seconds = math.ceil((ms or 0) / 1000)
    minutes, seconds = divmod(total_seconds, 60)

    min_str = "1 minute" if minutes == 1 else f"{minutes} minutes"
    sec_str = "1 second" if seconds == 1 else f"{seconds} seconds"
    return f"{min_str} and {sec_str}"


def wiki_link(value: Any) -> str:
    """Format a value as a quoted YAML list item holding an Obsidian wiki link."""
    escaped = str(value).replace('"', '\\"')
    return f'  - "[[{escaped}]]"'


def format_date(timestamp: Any, fmt: str = "%Y-%m-%d") -> str:
    """Format a Unix timestamp (seconds, UTC); empty for missing or out-of-range values."""
    if not timestamp:
        return ""
    try:
        return datetime.fromtimestamp(float(timestamp), tz=UTC).strftime(fmt)
    except (TypeError, ValueError, OverflowError, OSError) as e:
        logger.warning(f"Cannot format timestamp {timestamp!r}: {e}")
        return ""


def store_url(app_id: Any) -> str:
    return f"{STORE_APP_URL}/{app_id}"


def normalize_release_date(text: str | None) -> str:
    """
    Convert a store release date to ``YYYY-MM-DD``.

    Returns the original text when it is not a recognizable date
    (e.g. "Coming soon", "Q3 2025").
    """
    if not text:
        return ""
    cleaned = text.strip()
    for fmt in RELEASE_DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).date().isoformat()
        except ValueError:
            continue
    return cleaned


def clean_description(text: str | None) -> str:
    """Strip HTML from a store description, keeping line breaks."""
    if not text:
        return ""
    text = _BR_PATTERN.sub("\n", text)
    text = _TAG_PATTERN.sub("", text)
    return html.unescape(text).strip()


def round_half_up(value: float) -> int:
    """Round halves up (the built-in ``round`` rounds them to even)."""
    return math.floor(value + 0.5)


def completion_rate(record: Record) -> int:
    """Achievement completion in whole percent."""
    if record.total_count <= 0:
        return 0
    return round_half_up(record.unlocked_count / record.total_count * 100)


def play_status(playtime: float) -> str:
    if playtime > 2:
        return "Playing"
    if playtime > 0:
        return "Backlog"
    return "Wishlist/Backlog"


# Helpers exposed as template filters: ``value | wikilink``
TEMPLATE_FILTERS = {
    "wikilink": wiki_link,
    "duration": format_duration,
    "date": format_date,
    "ceil": math.ceil,
    "floor": math.floor,
}


def build_context(record: Record, store: StoreDetails | None) -> dict[str, Any]:
    """
    Build the template context for one record.

    Args:
        record: Record from the scrape batch
        store: Store details, or None when enrichment was unavailable

    Returns:
        Mapping of template names to values and helper functions
    """
    playtime = 0.0 if record.playtime_hours is NEVER else record.playtime_hours

    release_date = ""
    is_released = False
    if store and store.release_date:
        is_released = not store.release_date.coming_soon
        release_date = normalize_release_date(store.release_date.date)

    features: list[str] = []
    if store:
        features = [c.description for c in store.categories]
        if store.controller_support == "full":
            features.append("Full Controller Support")

    if record.last_played is NEVER:
        last_played_date = "Never"
    else:
        last_played_date = format_date(record.last_played) or "Never"

    return {
        "game": record,
        "store": store,
        # Derived values
        "playtime": playtime,
        "played": playtime > 0,
        "completion_rate": completion_rate(record),
        "release_date": release_date,
        "is_released": is_released,
        "last_played_date": last_played_date,
        "features": features,
        "summary": clean_description(store.short_description if store else None),
        "status": play_status(playtime),
        "enriched": store is not None,
        # Helpers
        "format_duration": format_duration,
        "wiki_link": wiki_link,
        "format_date": format_date,
        "store_url": store_url,
    }


DEFAULT_TEMPLATE = r"""---
title: "[[${ game.title | replace('"', '\\"') }]]"
releaseDate: ${ release_date }
developers:
${ store.developers | map('wikilink') | join('\n') }
publishers:
${ store.publishers | map('wikilink') | join('\n') }
genres:
${ store.genres | map(attribute='description') | map('wikilink') | join('\n') }
features:
${ features | map('wikilink') | join('\n') }
url: ${ store_url(game.external_id) }
released: ${ is_released }
metacriticRating: ${ store.metacritic.score or 0 }
played: ${ played }
playtimeHours: ${ playtime }
achievementsTotal: ${ game.total_count }
achievementsUnlocked: ${ game.unlocked_count }
completionRate: ${ completion_rate }%
personalRating: 0
type: game
platform: steam
id: ${ game.external_id }
tags:
  - steamgame
  - ${ ('status/playing' if playtime > 2 else 'status/backlog') if played else 'status/wishlist' }
image: ${ store.header_image }
---
![Cover](${ store.header_image })

> [!summary] Description
> ${ summary }

# My Stats
- **Status**: ${ status }
- **Playtime**: ${ format_duration(playtime * 3600000) } (${ playtime } hours)
- **Last Played**: ${ last_played_date }
- **Completion**: ${ completion_rate }% (${ game.unlocked_count }/${ game.total_count })

# Links
- [Steam Store](${ store_url(game.external_id) })
- [ProtonDB (Linux/Deck Compatibility)](https://www.protondb.com/app/${ game.external_id })
- [SteamDB](https://steamdb.info/app/${ game.external_id }/)
"""
