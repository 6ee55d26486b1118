"""Export run orchestration.

Creates the run directory, ingests URLs one at a time with a fixed pause
between them, isolates per-URL failures, writes both workbooks and records
the run so the last successful output directory can be found later.
"""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
import threading
import time
import zipfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

import httpx
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from .config import ConfigError, ExportConfig, load_config
from .export import ExportComposer
from .extraction import ExtractionCollaborator, ExtractionError, PlaywrightExtractor
from .logging_config import get_logger, setup_logging
from .models import Record, RunContext, RunSummary
from .origin import OriginClassifier, OriginReference
from .pipeline import IngestionPipeline
from .run_store import RunStore

logger = get_logger("runner")


class RunSetupError(RuntimeError):
    """Raised when a run cannot start: URL list unreadable or run directory unusable."""


def _utc_now() -> str:
    return datetime.utcnow().replace(microsecond=0).isoformat() + "Z"


def dedupe_urls(urls: Iterable[str]) -> List[str]:
    """Strip, drop blanks and keep the first occurrence of each URL."""
    seen = set()
    result: List[str] = []
    for url in urls:
        text = str(url).strip() if url is not None else ""
        if not text:
            continue
        if text in seen:
            logger.info(f"Ignoring duplicate URL: {text}")
            continue
        seen.add(text)
        result.append(text)
    return result


def load_urls(excel_path: Optional[Path], column: str = "url") -> List[str]:
    """Read product URLs from the first worksheet of an .xlsx workbook.

    The header row locates ``column`` (case-insensitive).

    Raises:
        RunSetupError: If the workbook is missing, unreadable or lacks the column
    """
    if excel_path is None:
        raise RunSetupError("No URL workbook configured (excel_path)")
    path = Path(excel_path)
    if not path.exists():
        raise RunSetupError(f"URL workbook not found: {path}")

    try:
        wb = load_workbook(path, read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, OSError, KeyError, ValueError) as exc:
        raise RunSetupError(f"Cannot read URL workbook {path}: {exc}") from exc

    try:
        ws = wb.worksheets[0]
        rows = ws.iter_rows(values_only=True)
        header = next(rows, None) or ()
        wanted = column.strip().lower()
        index = next(
            (i for i, name in enumerate(header) if name is not None and str(name).strip().lower() == wanted),
            None,
        )
        if index is None:
            raise RunSetupError(f"Column '{column}' not found in {path}")
        values = [row[index] if index < len(row) else None for row in rows]
    finally:
        wb.close()

    urls = dedupe_urls(values)
    logger.info(f"Loaded {len(urls)} URLs from {path}")
    return urls


@dataclass
class PacingPolicy:
    """Fixed pause between consecutive URLs."""

    interval_seconds: float = 1.0
    sleep: Callable[[float], None] = time.sleep

    def wait(self, cancel_event: Optional[threading.Event] = None) -> None:
        if self.interval_seconds <= 0:
            return
        if cancel_event is not None:
            # returns early when the run is cancelled
            cancel_event.wait(self.interval_seconds)
            return
        self.sleep(self.interval_seconds)


class RunController:
    """Top-level sequencing of an export run."""

    def __init__(
        self,
        extractor: ExtractionCollaborator,
        *,
        store: Optional[RunStore] = None,
        classifier: Optional[OriginClassifier] = None,
        http_client: Optional[httpx.Client] = None,
        pacing: Optional[PacingPolicy] = None,
        composer: Optional[ExportComposer] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.extractor = extractor
        self.store = store
        self.classifier = classifier
        self.http_client = http_client
        self.pacing = pacing
        self.clock = clock
        self.composer = composer

    def prepare_run(self, config: ExportConfig, now: datetime) -> RunContext:
        """Create (or reuse) the timestamped run directory."""
        run_directory = (config.resolve_output_root() / now.strftime(config.run_dir_format)).absolute()
        try:
            return RunContext.create(run_directory, now)
        except OSError as exc:
            raise RunSetupError(f"Cannot create run directory {run_directory}: {exc}") from exc

    def _classifier_for(self, config: ExportConfig) -> OriginClassifier:
        if self.classifier is not None:
            return self.classifier
        if config.origin_reference_path is None:
            return OriginClassifier()
        try:
            reference = OriginReference.from_yaml(config.origin_reference_path)
        except (OSError, ValueError) as exc:
            raise ConfigError(f"origin_reference_path: {exc}") from exc
        return OriginClassifier(reference)

    def run(
        self,
        urls: Sequence[str],
        config: ExportConfig,
        cancel_event: Optional[threading.Event] = None,
    ) -> RunSummary:
        """Ingest ``urls`` in order and export the resulting records.

        Raises:
            RunSetupError: If the run directory cannot be created
            ConfigError: If the origin reference file is unusable

        Once the run is recorded in the store it is always completed there,
        with status ``failed`` if ingestion or export raises.
        """
        urls = dedupe_urls(urls)
        classifier = self._classifier_for(config)
        pacing = self.pacing or PacingPolicy(config.pacing_seconds)
        started_at = _utc_now()
        run_context = self.prepare_run(config, self.clock())

        run_id = self.store.start_run(run_context.run_directory, len(urls)) if self.store else 0
        summary = RunSummary(
            run_id=run_id,
            run_directory=str(run_context.run_directory),
            started_at=started_at,
            total_urls=len(urls),
        )
        logger.info(f"Starting run {run_id}: {len(urls)} URLs -> {run_context.run_directory}")

        try:
            records = self._ingest(urls, config, run_context, classifier, pacing, summary, cancel_event)
            self._export(records, config, run_context, summary)
        except (Exception, KeyboardInterrupt) as exc:
            summary.errors.append(f"Run aborted: {type(exc).__name__}: {exc}")
            raise
        finally:
            summary.completed_at = _utc_now()
            self._record_completion(summary)

        logger.info(
            f"Run {run_id} finished ({summary.status}): "
            f"{summary.successful_urls}/{summary.total_urls} URLs, "
            f"{len(summary.skipped_urls)} skipped, {summary.failed_assets} assets failed"
        )
        return summary

    def _ingest(
        self,
        urls: Sequence[str],
        config: ExportConfig,
        run_context: RunContext,
        classifier: OriginClassifier,
        pacing: PacingPolicy,
        summary: RunSummary,
        cancel_event: Optional[threading.Event],
    ) -> List[Record]:
        pipeline = IngestionPipeline(
            self.extractor,
            classifier=classifier,
            http_client=self.http_client,
            download_timeout=config.download_timeout,
            download_workers=config.download_workers,
        )
        records: List[Record] = []
        try:
            for index, url in enumerate(urls):
                if index:
                    pacing.wait(cancel_event)
                if cancel_event is not None and cancel_event.is_set():
                    summary.cancelled = True
                    logger.warning(f"Run cancelled; {len(urls) - index} URLs not started")
                    break

                logger.info(f"[{index + 1}/{len(urls)}] Processing {url}")
                try:
                    records.append(pipeline.ingest(url, run_context))
                except ExtractionError as exc:
                    summary.skipped_urls.append(url)
                    logger.warning(f"Skipping {url}: {exc}")
                except Exception as exc:
                    summary.skipped_urls.append(url)
                    logger.exception(f"Skipping {url} after unexpected error: {exc}")
        finally:
            pipeline.close()
            summary.successful_urls = len(records)
            summary.failed_assets = pipeline.failed_assets
        return records

    def _export(
        self,
        records: Sequence[Record],
        config: ExportConfig,
        run_context: RunContext,
        summary: RunSummary,
    ) -> None:
        composer = self.composer or ExportComposer(
            config.profit_percent, publish_defaults=config.publish_defaults
        )
        try:
            artifacts = composer.compose(records, run_context, config.template, config.overflow_limit)
        except OSError as exc:
            error_msg = f"Failed to write workbooks: {exc}"
            logger.error(error_msg)
            summary.errors.append(error_msg)
            return
        summary.primary_artifact = str(artifacts.primary_artifact)
        summary.secondary_artifact = str(artifacts.secondary_artifact)

    def _record_completion(self, summary: RunSummary) -> None:
        if not self.store:
            return
        self.store.complete_run(
            summary.run_id,
            status=summary.status,
            successful_urls=summary.successful_urls,
            skipped_urls=len(summary.skipped_urls),
            metadata={
                "skipped_urls": summary.skipped_urls,
                "failed_assets": summary.failed_assets,
                "errors": summary.errors,
            },
        )

    def run_from_workbook(
        self,
        config: ExportConfig,
        cancel_event: Optional[threading.Event] = None,
    ) -> RunSummary:
        """Load URLs from ``config.excel_path`` and run them."""
        urls = load_urls(config.excel_path, column=config.url_column)
        return self.run(urls, config, cancel_event=cancel_event)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Scrape product pages listed in a workbook and export archival and publish workbooks"
    )
    parser.add_argument("--config", type=Path, help="Path to YAML configuration file")
    parser.add_argument("--excel", type=Path, help="Workbook with a 'url' column")
    parser.add_argument("--url", dest="urls", action="append", help="Product URL (repeatable, replaces --excel)")
    parser.add_argument("--output", "-o", type=Path, help="Root directory for run folders")
    parser.add_argument("--profit", type=float, help="Markup percentage applied to scraped prices")
    parser.add_argument(
        "--headless",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Run the browser without a window",
    )
    parser.add_argument("--template-file", type=Path, help="Detail-description template file")
    parser.add_argument("--pacing", type=float, help="Seconds to wait between URLs")
    parser.add_argument("--state-db", type=Path, help="Run history database path")
    parser.add_argument(
        "--last-run",
        action="store_true",
        help="Print the output directory of the last successful run and exit",
    )
    parser.add_argument("--log-file", type=Path, help="Write logs to file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--json", action="store_true", help="Output summary as JSON")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for the export runner."""
    args = _build_parser().parse_args(argv)
    root_logger = setup_logging(
        log_file=args.log_file,
        level=logging.DEBUG if args.verbose else logging.INFO,
    )

    if args.last_run:
        store = RunStore(args.state_db)
        print(store.last_successful_run_directory() or "")
        return 0

    overrides: Dict[str, Any] = {
        "excel_path": args.excel,
        "output_root": args.output,
        "profit_percent": args.profit,
        "headless": args.headless,
        "pacing_seconds": args.pacing,
        "state_db_path": args.state_db,
    }
    try:
        if args.template_file:
            overrides["template_text"] = args.template_file.read_text(encoding="utf-8")
        config = load_config(args.config, overrides=overrides)
    except (ConfigError, OSError) as exc:
        root_logger.error(f"Invalid configuration: {exc}")
        return 1

    cancel_event = threading.Event()

    def _request_cancel(signum, frame) -> None:
        root_logger.warning("Interrupt received; finishing the current URL before exporting")
        cancel_event.set()

    signal.signal(signal.SIGINT, _request_cancel)

    try:
        urls = dedupe_urls(args.urls) if args.urls else load_urls(config.excel_path, config.url_column)
        with PlaywrightExtractor(
            headless=config.headless,
            executable_path=config.browser_executable,
        ) as extractor:
            controller = RunController(extractor, store=RunStore(config.state_db_path))
            summary = controller.run(urls, config, cancel_event=cancel_event)
    except (RunSetupError, ConfigError) as exc:
        root_logger.error(f"Run aborted: {exc}")
        return 1
    except Exception as exc:
        root_logger.exception(f"Fatal error: {exc}")
        return 1

    if args.json:
        print(json.dumps(summary.to_dict(), indent=2, ensure_ascii=False))
    else:
        root_logger.info(f"Primary workbook: {summary.primary_artifact}")
        root_logger.info(f"Publish workbook: {summary.secondary_artifact}")
        if summary.skipped_urls:
            root_logger.warning(f"Skipped URLs: {', '.join(summary.skipped_urls)}")

    return summary.exit_code()


if __name__ == "__main__":
    sys.exit(main())
