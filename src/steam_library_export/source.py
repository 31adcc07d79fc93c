"""
Locate and load library scrape batches.

The scraper writes one ``SteamScrape_<account>_<timestamp>.json`` file per
run; we always read the most recently modified one.
"""

import json
import logging
from pathlib import Path

from .errors import BatchFormatError, BatchNotFound
from .models import Record

logger = logging.getLogger(__name__)


def find_latest_batch(input_dir: Path, pattern: str = "SteamScrape*.json") -> Path:
    """
    Find the newest scrape batch in ``input_dir``.

    Args:
        input_dir: Directory the scraper writes into
        pattern: Glob pattern for batch files

    Returns:
        Path of the most recently modified matching file

    Raises:
        BatchNotFound: If the directory is missing or holds no matching file
    """
    if not input_dir.is_dir():
        raise BatchNotFound(
            f"No scrape batches found: {input_dir} does not exist. Run the scraper first."
        )

    candidates = [p for p in input_dir.glob(pattern) if p.is_file()]
    if not candidates:
        raise BatchNotFound(
            f"No files matching {pattern} in {input_dir}. Run the scraper first."
        )

    # Name breaks mtime ties so the choice is stable
    return max(candidates, key=lambda p: (p.stat().st_mtime, p.name))


def load_records(path: Path) -> list[Record]:
    """
    Parse a scrape batch into records, keeping file order.

    Entries that are not objects or have no name are skipped with a warning.

    Raises:
        BatchFormatError: If the file is not valid JSON or not a list
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        raise BatchFormatError(f"Could not read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise BatchFormatError(f"{path} is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise BatchFormatError(f"{path} must contain a JSON list of games")

    records = []
    for index, entry in enumerate(data):
        if not isinstance(entry, dict):
            logger.warning(f"Skipping entry {index} in {path.name}: not an object")
            continue
        try:
            records.append(Record.from_dict(entry))
        except (ValueError, OverflowError) as e:
            logger.warning(f"Skipping entry {index} in {path.name}: {e}")

    return records
