"""
Pipeline Runner

Orchestrates one table build:

    acquire archive -> seed dictionaries -> dispatch product documents
    -> write staged product rows -> close tables -> (verify) -> RunSummary

Workers write reference rows as they go; product, presentation and link
rows are staged by the Normalizer and written once dispatch is over, so
records sharing a registration id resolve the same way at any concurrency.

Every run gets a fresh RunContext (registries, writer, aggregator, stop
event), so a pipeline object can run any number of times in one process.

Failure handling:
- archive download or open failures abort the run before any table exists
- a document that cannot be read, parsed or normalized is recorded and the
  run continues with its siblings
- a table write failure stops dispatch; in-flight documents finish and the
  table set is marked incomplete
"""

import json
import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Tuple

import requests

from ..acquisition import ArchiveDownloader, DocumentHandle, DumpArchive
from ..common.errors import (
    ArchiveError,
    NormalizationInvariantError,
    ParseError,
    TransferError,
    WriteError,
)
from ..export import TableWriter, check_referential_integrity
from ..extraction import DictionaryParser, PrescriptionParser, get_dictionary_spec, seed_rank
from ..models import RunSummary
from ..normalization import TABLES, Normalizer
from .aggregator import RunAggregator
from .config import PipelineConfig
from .scheduler import WorkScheduler

logger = logging.getLogger(__name__)

SUMMARY_FILENAME = 'run_summary.json'


@dataclass
class RunContext:
    """Run-wide state shared by the workers of one run."""
    config: PipelineConfig
    aggregator: RunAggregator
    normalizer: Normalizer = field(default_factory=Normalizer)
    parser: PrescriptionParser = field(default_factory=PrescriptionParser)
    stop_event: threading.Event = field(default_factory=threading.Event)
    writer: Optional[TableWriter] = None
    cancelled: bool = False
    write_failed: bool = False


class NomenclatorPipeline:
    """
    Builds the normalized table set from a Nomenclátor dump.

    Usage:
        pipeline = NomenclatorPipeline(PipelineConfig(output_dir="csv_output"))
        summary = pipeline.run()                       # download, then build
        summary = pipeline.run("prescripcion.zip")     # local archive

    cancel() may be called from another thread (e.g. a SIGINT handler).
    """

    def __init__(self, config: Optional[PipelineConfig] = None,
                 session: Optional[requests.Session] = None):
        """
        Args:
            config: Build settings (default: config/pipeline.yaml)
            session: Optional HTTP session for the download
        """
        self.config = config or PipelineConfig.from_settings()
        self.session = session
        self._lock = threading.Lock()
        self._context: Optional[RunContext] = None

    # ── Control ──────────────────────────────────────────────────────────────

    def cancel(self) -> None:
        """Stop dispatching documents; in-flight documents finish."""
        with self._lock:
            ctx = self._context
        if ctx is None:
            logger.debug("cancel() called with no run in progress")
            return
        logger.warning("Cancellation requested, finishing in-flight documents")
        ctx.cancelled = True
        ctx.aggregator.mark_cancelled()
        ctx.stop_event.set()

    def run(self, archive_path=None) -> RunSummary:
        """
        Execute one build.

        Args:
            archive_path: Local archive to use instead of downloading
                (default: config.archive_path, else download)

        Returns:
            RunSummary, also written to <output_dir>/run_summary.json
        """
        started = time.monotonic()
        ctx = RunContext(config=self.config,
                         aggregator=RunAggregator(fail_on_error=self.config.fail_on_error))
        with self._lock:
            self._context = ctx

        logger.info("Building tables in %s with concurrency %d",
                    self.config.output_dir, self.config.concurrency)
        try:
            self._execute(ctx, archive_path)
        finally:
            with self._lock:
                self._context = None

        rows = ctx.writer.row_counts() if ctx.writer is not None else {}
        summary = ctx.aggregator.finish(rows, time.monotonic() - started)
        self._write_summary(summary)
        logger.info("Build finished: %d succeeded, %d failed, %d rows",
                    summary.documents_succeeded, summary.documents_failed, summary.total_rows)
        return summary

    def _execute(self, ctx: RunContext, archive_path) -> None:
        try:
            archive = DumpArchive(self._acquire(archive_path))
            archive.validate()
        except (TransferError, ArchiveError) as e:
            ctx.aggregator.record_fatal(str(e))
            return

        try:
            ctx.writer = TableWriter(self.config.output_dir, TABLES, self.config.delimiter)
        except WriteError as e:
            ctx.aggregator.record_fatal(str(e))
            return

        try:
            self._seed_dictionaries(ctx, archive)
            if not ctx.stop_event.is_set():
                self._process_documents(ctx, archive)
            self._write_staged(ctx)
        except ArchiveError as e:
            ctx.aggregator.record_fatal(str(e))
        finally:
            try:
                ctx.writer.close()
            except WriteError as e:
                ctx.aggregator.record_fatal(str(e))

        if self.config.verify_output and not ctx.aggregator.failed and not ctx.cancelled:
            self._verify(ctx)

    def _acquire(self, archive_path) -> Path:
        path = archive_path or self.config.archive_path
        if path is not None:
            logger.info("Using local archive %s", path)
            return Path(path)

        downloader = ArchiveDownloader(
            url=self.config.dump_url,
            session=self.session,
            timeout=self.config.download_timeout,
            chunk_size=self.config.chunk_size,
        )
        return downloader.download(self.config.download_path)

    # ── Dictionaries ─────────────────────────────────────────────────────────

    def _seed_dictionaries(self, ctx: RunContext, archive: DumpArchive) -> None:
        """Seed reference tables sequentially, in dependency order."""
        parser = DictionaryParser()
        handles = sorted(archive.dictionaries(), key=lambda handle: seed_rank(handle.entry))
        logger.info("Seeding %d dictionaries", len(handles))

        for handle in handles:
            if ctx.stop_event.is_set():
                ctx.aggregator.record_skipped(handle.name, self._stop_reason(ctx))
                continue

            spec = get_dictionary_spec(handle.entry)
            if spec is None:
                logger.warning("No mapping for dictionary %s, ignoring it", handle.name)
                continue

            try:
                parsed = parser.parse(handle.read(), handle.name, spec)
            except ArchiveError as e:
                ctx.aggregator.record_failure(handle.name, 'extract', str(e))
                continue
            except ParseError as e:
                ctx.aggregator.record_failure(handle.name, 'parse', e.cause)
                continue

            try:
                rows = ctx.normalizer.seed(parsed.entries)
            except NormalizationInvariantError as e:
                if self._write(ctx, handle.name, e.reference_rows):
                    ctx.aggregator.record_failure(handle.name, 'normalize', str(e))
                continue

            if self._write(ctx, handle.name, rows):
                ctx.aggregator.record_dictionary(len(parsed.entries), parsed.skipped)
                logger.info("Seeded %s: %d entries, %d new rows",
                            handle.name, len(parsed.entries), len(rows))

    # ── Product documents ────────────────────────────────────────────────────

    def _process_documents(self, ctx: RunContext, archive: DumpArchive) -> None:
        scheduler = WorkScheduler(self.config.concurrency, ctx.stop_event)

        def on_error(handle: DocumentHandle, error: BaseException) -> None:
            ctx.aggregator.record_failure(handle.name, 'internal', repr(error))

        stats = scheduler.run(
            archive.documents(),
            lambda handle: self._process_document(ctx, handle),
            on_error=on_error,
        )
        logger.info("Processed %d documents (peak %d in flight)", stats.completed, stats.peak_in_flight)

    def _process_document(self, ctx: RunContext, handle: DocumentHandle) -> None:
        """Worker: read, parse, normalize and write one product document."""
        if ctx.stop_event.is_set():
            ctx.aggregator.record_skipped(handle.name, self._stop_reason(ctx))
            return

        try:
            content = handle.read()
        except ArchiveError as e:
            ctx.aggregator.record_failure(handle.name, 'extract', str(e))
            return

        try:
            record = ctx.parser.parse(content, handle.name)
        except ParseError as e:
            ctx.aggregator.record_failure(handle.name, 'parse', e.cause)
            return

        try:
            document = ctx.normalizer.normalize(record)
        except NormalizationInvariantError as e:
            if self._write(ctx, handle.name, e.reference_rows):
                ctx.aggregator.record_failure(handle.name, 'normalize', str(e))
            return

        if not self._write(ctx, handle.name, document.rows):
            return
        if document.duplicate:
            ctx.aggregator.record_skipped(handle.name, 'duplicate record')
        else:
            ctx.aggregator.record_success(handle.name, merged=document.merged)

    def _write(self, ctx: RunContext, name: str, rows: Iterable[Tuple[str, dict]]) -> bool:
        """Write rows; on failure record it as fatal and stop dispatch."""
        rows = list(rows)
        if not rows:
            return True
        try:
            ctx.writer.write_rows(rows)
        except WriteError as e:
            ctx.aggregator.record_failure(name, 'write', str(e))
            ctx.write_failed = True
            if not ctx.stop_event.is_set():
                ctx.aggregator.record_fatal(f"table write failed: {e}")
            ctx.stop_event.set()
            return False
        return True

    def _write_staged(self, ctx: RunContext) -> None:
        """Write the product, presentation and link rows staged by the workers."""
        if ctx.write_failed:
            return
        rows = ctx.normalizer.staged_rows()
        logger.info("Writing %d product, presentation and link rows", len(rows))
        try:
            ctx.writer.write_rows(rows)
        except WriteError as e:
            ctx.write_failed = True
            ctx.aggregator.record_fatal(f"table write failed: {e}")

    @staticmethod
    def _stop_reason(ctx: RunContext) -> str:
        return 'cancelled' if ctx.cancelled else 'run aborted'

    # ── Results ──────────────────────────────────────────────────────────────

    def _verify(self, ctx: RunContext) -> None:
        report = check_referential_integrity(self.config.output_dir, TABLES, self.config.delimiter)
        for violation in report.violations():
            ctx.aggregator.record_fatal(f"integrity: {violation}")

    def _write_summary(self, summary: RunSummary) -> None:
        path = self.config.output_dir / SUMMARY_FILENAME
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(summary.to_dict(), f, indent=2, ensure_ascii=False)
        except OSError as e:
            logger.error("Could not write %s: %s", path, e)
