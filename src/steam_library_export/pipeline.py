"""
Processing pipeline for steam-library-export.

Each record moves through the same stages, one record at a time:

    skip check -> store lookup -> render -> write

A record whose note is already enriched stops after the skip check. A
failed lookup or a bad template slot only degrades that record's note;
nothing short of a configuration error stops the batch.
"""

import asyncio
import logging
import sys
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO

from .config import ExportConfig
from .context import TEMPLATE_FILTERS, build_context, format_duration, round_half_up
from .errors import WriteFailure
from .markers import should_skip, stamp_marker
from .models import Record, RecordState
from .output import ArtifactWriter, sanitize_filename
from .steamstore import SteamStoreClient, StoreDetails
from .template import CompiledTemplate, SlotError, TemplateEngine, parse_template

logger = logging.getLogger(__name__)


@dataclass
class RecordOutcome:
    """Progress and result of one record through the pipeline."""

    index: int  # 1-based position in the batch
    record: Record
    path: Path
    state: RecordState = RecordState.PENDING
    fetched: bool = False  # reached the lookup stage
    store: StoreDetails | None = None
    text: str | None = None
    slot_errors: list[SlotError] = field(default_factory=list)
    error: str | None = None
    failed_stage: str | None = None

    @property
    def enriched(self) -> bool:
        return self.store is not None


@dataclass
class RunSummary:
    """Counts and per-record outcomes for a run."""

    outcomes: list[RecordOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.state == RecordState.SKIPPED)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.state == RecordState.FAILED)

    @property
    def enriched(self) -> int:
        return sum(1 for o in self.outcomes if o.state == RecordState.DONE and o.enriched)

    @property
    def basic(self) -> int:
        return sum(1 for o in self.outcomes if o.state == RecordState.DONE and not o.enriched)

    @property
    def processed(self) -> int:
        return self.enriched + self.basic


@dataclass
class StageResult:
    """Result from a pipeline stage."""

    success: bool
    message: str | None = None
    halt: bool = False  # stop processing this record


def checkpoint_step(total: int) -> int:
    """How many records between progress checkpoints; 0 means none."""
    if total >= 100:
        return -(-total // 10)
    if total >= 10:
        return 10
    return 0


class ProgressReporter:
    """Writes per-record and checkpoint progress lines to stdout."""

    def __init__(self, stream: TextIO | None = None):
        self._stream = stream

    def _print(self, line: str = "") -> None:
        print(line, file=self._stream or sys.stdout, flush=True)

    def start(self, total: int, delay_seconds: float) -> None:
        self._print(f"Found {total} games.")
        if total:
            self._print(
                f"Note: This will take about {format_duration(total * delay_seconds * 1000)} "
                "to avoid hitting Steam rate limits."
            )

    def record(self, outcome: RecordOutcome, total: int) -> None:
        prefix = f"[{outcome.index}/{total}]"
        title = outcome.record.title

        if outcome.state == RecordState.SKIPPED:
            self._print(f"{prefix} Skipping: {title} (already enriched)")
            return
        if outcome.state == RecordState.FAILED:
            self._print(f"{prefix} {title}: {outcome.failed_stage} failed ({outcome.error})")
            return

        status = "enriched" if outcome.enriched else "basic info only"
        if outcome.slot_errors:
            count = len(outcome.slot_errors)
            status += f" ({count} template error{'s' if count != 1 else ''})"
        self._print(f"{prefix} {title}: {status}")

    def checkpoint(self, done: int, total: int, delay_seconds: float) -> None:
        percent = round_half_up(done / total * 100)
        remaining = format_duration((total - done) * delay_seconds * 1000)
        self._print()
        self._print(f"--- {percent}% Complete. Estimated time remaining: {remaining} ---")
        self._print()

    def finish(self, output_dir: Path) -> None:
        self._print()
        self._print("Success! Files saved to:")
        self._print(str(output_dir.resolve()))


class PipelineStage(ABC):
    """Base class for pipeline stages."""

    name: str = "base"
    state: RecordState = RecordState.PENDING

    def __init__(self, pipeline: "Pipeline"):
        self.pipeline = pipeline
        self.config = pipeline.config

    @abstractmethod
    async def process(self, outcome: RecordOutcome) -> StageResult:
        """Process a record through this stage."""
        pass


class SkipCheckStage(PipelineStage):
    """Stage 1: leave notes that are already enriched alone."""

    name = "skip_check"
    state = RecordState.SKIP_CHECK

    async def process(self, outcome: RecordOutcome) -> StageResult:
        existing = self.pipeline.writer.read_existing(outcome.path)
        if should_skip(existing, self.config.marker_fields):
            outcome.state = RecordState.SKIPPED
            return StageResult(success=True, message="already enriched", halt=True)
        return StageResult(success=True)


class EnrichmentStage(PipelineStage):
    """Stage 2: look up store details.

    A missing app id or a failed lookup is not an error; the note is
    rendered with basic fields only.
    """

    name = "enrichment"
    state = RecordState.FETCHING

    async def process(self, outcome: RecordOutcome) -> StageResult:
        outcome.fetched = True
        record = outcome.record

        if not record.has_external_id:
            logger.debug(f"No app id for {record.title!r}, skipping store lookup")
            return StageResult(success=True, message="no app id")

        try:
            outcome.store = await self.pipeline.client.fetch(record.external_id)
        except Exception as e:
            logger.exception(f"Store lookup failed for {record.title!r}")
            outcome.store = None
            return StageResult(success=False, message=f"Store lookup failed: {e}")

        if outcome.store is None:
            return StageResult(success=True, message="store details unavailable")
        return StageResult(success=True, message="store details found")


class RenderStage(PipelineStage):
    """Stage 3: render the note from the template."""

    name = "render"
    state = RecordState.RENDERING

    async def process(self, outcome: RecordOutcome) -> StageResult:
        context = build_context(outcome.record, outcome.store)
        result = self.pipeline.engine.render(self.pipeline.template, context)
        outcome.slot_errors = result.errors

        # Notes without store data or with template errors are marked false so
        # the next run (or a fixed template) reaches them
        outcome.text = stamp_marker(result.text, enriched=outcome.enriched and result.ok)

        if not result.ok:
            return StageResult(
                success=False,
                message=f"{len(result.errors)} template slot(s) failed",
            )
        return StageResult(success=True)


class WriteStage(PipelineStage):
    """Stage 4: write the note."""

    name = "write"
    state = RecordState.WRITING

    async def process(self, outcome: RecordOutcome) -> StageResult:
        try:
            self.pipeline.writer.write(outcome.path, outcome.text or "")
        except WriteFailure as e:
            logger.error(str(e))
            outcome.state = RecordState.FAILED
            outcome.failed_stage = self.name
            outcome.error = e.reason
            return StageResult(success=False, message=str(e), halt=True)
        return StageResult(success=True)


class Pipeline:
    """
    The main processing pipeline for steam-library-export.

    Runs records through each stage in sequence, one record at a time, and
    waits ``delay_seconds`` after every record that reached the store lookup.
    """

    def __init__(
        self,
        config: ExportConfig,
        template: str | CompiledTemplate,
        client: SteamStoreClient | None = None,
        engine: TemplateEngine | None = None,
        writer: ArtifactWriter | None = None,
        reporter: ProgressReporter | None = None,
        sleep: Callable[[float], Awaitable[object]] | None = None,
    ):
        """
        Initialize the pipeline.

        Args:
            config: Export configuration
            template: Template text or parsed template
            client: Optional store client (for testing)
            engine: Optional template engine
            writer: Optional artifact writer
            reporter: Optional progress reporter
            sleep: Optional replacement for asyncio.sleep (for testing)
        """
        self.config = config
        self.template = parse_template(template) if isinstance(template, str) else template
        self.client = client or SteamStoreClient.from_config(config.store)
        self.engine = engine or TemplateEngine(filters=TEMPLATE_FILTERS)
        self.writer = writer or ArtifactWriter(config.output_dir, config.extension)
        self.reporter = reporter or ProgressReporter()
        self._sleep = sleep or asyncio.sleep
        self.stages: list[PipelineStage] = [
            SkipCheckStage(self),
            EnrichmentStage(self),
            RenderStage(self),
            WriteStage(self),
        ]

    def plan(self, records: Sequence[Record]) -> list[RecordOutcome]:
        """
        Assign each record its note path, in batch order.

        Titles that sanitize to a name already taken in this batch get the
        app id (or a counter) appended instead of overwriting the earlier note.
        """
        taken: set[str] = set()
        outcomes = []

        for index, record in enumerate(records, start=1):
            base = sanitize_filename(record.title)
            name = base
            if name.casefold() in taken and record.has_external_id:
                name = f"{base} ({record.external_id})"
            counter = 2
            while name.casefold() in taken:
                name = f"{base} ({counter})"
                counter += 1

            if name != base:
                logger.warning(
                    f"{record.title!r} collides with an earlier note named {base!r}; "
                    f"writing {name!r} instead"
                )
            taken.add(name.casefold())
            outcomes.append(
                RecordOutcome(index=index, record=record, path=self.writer.path_for(name))
            )

        return outcomes

    async def process_record(self, outcome: RecordOutcome) -> RecordOutcome:
        """Run one record through every stage."""
        logger.debug(f"Processing {outcome.record.title!r}")

        for stage in self.stages:
            outcome.state = stage.state
            try:
                result = await stage.process(outcome)
            except Exception as e:
                logger.exception(f"Stage {stage.name} raised for {outcome.record.title!r}")
                outcome.state = RecordState.FAILED
                outcome.failed_stage = stage.name
                outcome.error = str(e) or type(e).__name__
                return outcome

            if not result.success:
                logger.warning(f"Stage {stage.name} failed for {outcome.record.title!r}: {result.message}")
            if result.halt:
                return outcome

        outcome.state = RecordState.DONE
        return outcome

    async def run(self, records: Sequence[Record]) -> RunSummary:
        """
        Process a batch of records in order.

        Returns:
            RunSummary with one outcome per record
        """
        summary = RunSummary()
        outcomes = self.plan(records)
        total = len(outcomes)
        step = checkpoint_step(total)
        delay = self.config.delay_seconds

        self.reporter.start(total, delay)

        for outcome in outcomes:
            await self.process_record(outcome)
            summary.outcomes.append(outcome)
            self.reporter.record(outcome, total)

            if step and outcome.index % step == 0 and outcome.index != total:
                self.reporter.checkpoint(outcome.index, total, delay)

            # Rate limit: pause after every lookup attempt, except the last record
            if outcome.fetched and outcome.index != total and delay > 0:
                await self._sleep(delay)

        logger.info(
            f"Run complete: {summary.enriched} enriched, {summary.basic} basic, "
            f"{summary.skipped} skipped, {summary.failed} failed"
        )
        return summary
