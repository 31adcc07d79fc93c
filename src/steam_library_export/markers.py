"""
Detect notes that were already enriched.

Every note carries ``enriched: true`` or ``enriched: false`` in its YAML
front matter, written by ``stamp_marker``; an explicit value always decides.
Notes produced before the marker existed are recognized by an
``image:``/``cover_url:`` field holding a URL.
"""

import logging
import re
from collections.abc import Iterable

import yaml

logger = logging.getLogger(__name__)

MARKER_KEY = "enriched"
DEFAULT_MARKER_FIELDS = ("image", "cover_url")

_FRONT_MATTER = re.compile(r"\A---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)", re.DOTALL | re.MULTILINE)


def split_front_matter(text: str) -> tuple[str | None, str]:
    """Return ``(front matter body, rest)``; body is None when absent."""
    match = _FRONT_MATTER.match(text)
    if not match:
        return None, text
    return match.group(1), text[match.end() :]


def _structured_marker(front_matter: str) -> bool | None:
    """The marker value from parsed front matter; None when absent or unparsable."""
    try:
        data = yaml.safe_load(front_matter)
    except yaml.YAMLError as e:
        logger.debug(f"Front matter does not parse: {e}")
        return None
    if not isinstance(data, dict) or MARKER_KEY not in data:
        return None
    return data[MARKER_KEY] is True


def _has_legacy_marker(text: str, fields: Iterable[str]) -> bool:
    for name in fields:
        pattern = re.compile(rf"^\s*{re.escape(name)}:\s*[\"']?https?://\S", re.MULTILINE)
        if pattern.search(text):
            return True
    return False


def should_skip(
    existing_text: str | None,
    marker_fields: Iterable[str] = DEFAULT_MARKER_FIELDS,
) -> bool:
    """
    Decide whether an existing note is already enriched.

    Args:
        existing_text: Current note contents, or None if there is no note
        marker_fields: Field names that count as a legacy marker when they
            hold a URL

    Returns:
        True if the note should be left alone
    """
    if not existing_text:
        return False

    front_matter, _ = split_front_matter(existing_text)
    if front_matter is not None:
        structured = _structured_marker(front_matter)
        if structured is not None:
            return structured

    return _has_legacy_marker(existing_text, marker_fields)


def stamp_marker(text: str, enriched: bool = True) -> str:
    """
    Set the ``enriched`` key in a note's front matter.

    A note without front matter gets a new block. An existing ``enriched``
    line in the front matter is replaced rather than duplicated.
    """
    line = f"{MARKER_KEY}: {'true' if enriched else 'false'}"
    front_matter, _ = split_front_matter(text)
    if front_matter is None:
        return f"---\n{line}\n---\n{text}"

    opening = text[: text.index("\n") + 1]
    rest = text[len(opening) :]
    existing = re.compile(rf"^{MARKER_KEY}:[^\r\n]*", re.MULTILINE)
    if existing.search(front_matter):
        # The front matter body is the start of ``rest``
        updated = existing.sub(line, front_matter, count=1)
        return f"{opening}{updated}{rest[len(front_matter):]}"

    return f"{opening}{line}\n{rest}"
