"""
CLI runner for steam-library-export.

Usage:
    python -m steam_library_export.run [OPTIONS]

    # Convert the latest scrape with the default settings
    python -m steam_library_export.run

    # Use a config file and a custom template
    python -m steam_library_export.run --config library-export.yaml --template note.md

    # See what would be processed without calling the store or writing files
    python -m steam_library_export.run --dry-run
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path

from .config import DEFAULT_CONFIG_PATH, ExportConfig, load_template
from .context import DEFAULT_TEMPLATE, TEMPLATE_FILTERS
from .errors import ConfigurationError
from .markers import should_skip
from .models import Record
from .output import ArtifactWriter
from .pipeline import Pipeline, RunSummary
from .source import find_latest_batch, load_records
from .template import TemplateEngine, parse_template

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("steam-library-export")


async def run_export(config: ExportConfig, records: list[Record], template_text: str) -> RunSummary:
    """Run the pipeline over a loaded batch."""
    engine = TemplateEngine(filters=TEMPLATE_FILTERS)
    template = parse_template(template_text)

    for error in engine.validate(template):
        logger.warning(f"Template problem at {error}")

    pipeline = Pipeline(config, template, engine=engine)
    summary = await pipeline.run(records)
    pipeline.reporter.finish(config.output_dir)
    return summary


def dry_run(config: ExportConfig, records: list[Record]) -> None:
    """List what a real run would do, without network access or writes."""
    writer = ArtifactWriter(config.output_dir, config.extension)
    pipeline = Pipeline(config, "", writer=writer)
    outcomes = pipeline.plan(records)

    would_skip = 0
    for outcome in outcomes:
        skip = should_skip(writer.read_existing(outcome.path), config.marker_fields)
        would_skip += skip
        action = "skip" if skip else ("fetch" if outcome.record.has_external_id else "basic")
        print(f"[{outcome.index}/{len(outcomes)}] {action:5} {outcome.record.title} -> {outcome.path.name}")

    logger.info(f"Dry run: {len(outcomes) - would_skip} to process, {would_skip} already enriched")


def build_config(args: argparse.Namespace) -> ExportConfig:
    """Load the config file and apply command-line overrides."""
    config = ExportConfig.from_yaml(args.config)
    config = config.with_overrides(
        input_dir=args.input_dir,
        output_dir=args.output_dir,
        delay_seconds=args.delay,
    )
    if args.template:
        # An explicit template file beats an inline template from the config
        config = replace(config, template=None, template_path=args.template)
    if config.delay_seconds < 0:
        raise ConfigurationError("--delay must not be negative")
    return config


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="steam-library-export: Markdown notes for a scraped Steam library",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Convert the latest scrape
    python -m steam_library_export.run

    # Read scrapes from and write notes to specific folders
    python -m steam_library_export.run --input-dir scrape_results --output-dir vault/Games

    # Use a custom template
    python -m steam_library_export.run --template my-template.md
        """,
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to config file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--input-dir",
        type=Path,
        help="Directory holding SteamScrape*.json batches",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        help="Directory to write notes into",
    )
    parser.add_argument(
        "--template",
        type=Path,
        help="Template file to use instead of the configured one",
    )
    parser.add_argument(
        "--delay",
        type=float,
        help="Seconds to wait between store lookups",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be processed without making changes",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        config = build_config(args)
        batch_path = find_latest_batch(config.input_dir, config.batch_pattern)
        records = load_records(batch_path)
    except ConfigurationError as e:
        logger.error(str(e))
        return 1

    logger.info(f"Reading data from: {batch_path}")
    logger.info(f"Writing notes to: {config.output_dir}")

    if args.dry_run:
        dry_run(config, records)
        return 0

    template_text = load_template(config, DEFAULT_TEMPLATE)

    try:
        summary = asyncio.run(run_export(config, records, template_text))
    except KeyboardInterrupt:
        logger.info("Stopped by user; notes written so far are kept")
        return 130

    return 0 if summary.failed == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
