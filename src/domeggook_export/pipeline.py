"""Per-URL ingestion: extraction, asset downloads and classification."""

from __future__ import annotations

from typing import Dict, Optional

import httpx

from .assets import AssetAcquirer
from .extraction import ExtractionCollaborator
from .logging_config import get_logger
from .models import AcquiredAsset, Record, RunContext
from .origin import OriginClassifier

logger = get_logger("pipeline")


class IngestionPipeline:
    """Turns a product URL into a :class:`Record`.

    Asset failures are absorbed: a failed thumbnail leaves an empty asset on
    the record and failed detail images are dropped. Only extraction errors
    propagate, and the caller is expected to skip the URL when they do.
    """

    def __init__(
        self,
        extractor: ExtractionCollaborator,
        *,
        classifier: Optional[OriginClassifier] = None,
        http_client: Optional[httpx.Client] = None,
        download_timeout: float = 30.0,
        download_workers: int = 4,
    ) -> None:
        self.extractor = extractor
        self.classifier = classifier or OriginClassifier()
        self.http_client = http_client
        self.download_timeout = download_timeout
        self.download_workers = download_workers
        self.failed_assets = 0
        self._acquirers: Dict[str, AssetAcquirer] = {}

    def acquirer_for(self, run_context: RunContext) -> AssetAcquirer:
        key = str(run_context.images_subdirectory)
        acquirer = self._acquirers.get(key)
        if acquirer is None:
            acquirer = AssetAcquirer(
                run_context.images_subdirectory,
                client=self.http_client,
                timeout=self.download_timeout,
                max_workers=self.download_workers,
            )
            self._acquirers[key] = acquirer
        return acquirer

    def close(self) -> None:
        for acquirer in self._acquirers.values():
            acquirer.close()
        self._acquirers.clear()

    def ingest(self, url: str, run_context: RunContext) -> Record:
        """Build the record for ``url``.

        Raises:
            ExtractionError: If the collaborator cannot produce the page fields
        """
        extraction = self.extractor.extract(url, run_context.screenshots_directory)
        raw = extraction.raw
        acquirer = self.acquirer_for(run_context)

        if raw.thumbnail_url:
            thumbnail = acquirer.acquire(raw.thumbnail_url)
            if not thumbnail.succeeded:
                self.failed_assets += 1
                logger.warning(f"Thumbnail unavailable for {url}: {raw.thumbnail_url}")
        else:
            thumbnail = AcquiredAsset.failed("")

        details = acquirer.acquire_all(list(raw.detail_image_urls))
        kept = tuple(asset for asset in details if asset.succeeded)
        dropped = len(details) - len(kept)
        if dropped:
            self.failed_assets += dropped
            logger.warning(f"Dropped {dropped}/{len(details)} detail images for {url}")

        record = Record(
            source_url=url,
            raw=raw,
            screenshot_path=extraction.screenshot_path,
            thumbnail=thumbnail,
            detail_assets=kept,
            origin=self.classifier.classify(raw.origin),
        )
        logger.info(
            f"Ingested '{raw.title}' ({len(kept)} detail images, origin={record.origin.origin_type})"
        )
        return record
