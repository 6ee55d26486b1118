"""Data models for the product export pipeline."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple


ORIGIN_DOMESTIC = "domestic"
ORIGIN_FOREIGN = "foreign"


@dataclass(frozen=True)
class ShippingInfo:
    """Shipping sub-fields scraped from the delivery section of a product page."""

    method: str = ""
    lead_time: str = ""
    base_cost: str = ""
    regional_surcharge: str = ""
    bundling_note: str = ""


@dataclass(frozen=True)
class RawExtraction:
    """Field values scraped from one product page.

    Produced by an extraction collaborator and never modified afterwards;
    list-valued fields are stored as tuples.
    """

    title: str
    price: int = 0
    description: str = ""
    thumbnail_url: str = ""
    detail_image_urls: Tuple[str, ...] = ()
    category: str = ""
    condition: str = ""
    shipping: ShippingInfo = field(default_factory=ShippingInfo)
    origin: str = ""
    model_name: str = ""
    manufacturer: str = ""
    package_size: str = ""
    certification: str = ""
    detail_html: str = ""
    image_permission: str = ""


@dataclass(frozen=True)
class Extraction:
    """Collaborator output for one URL: the scraped fields plus a screenshot."""

    raw: RawExtraction
    screenshot_path: str = ""


@dataclass(frozen=True)
class AcquiredAsset:
    """Outcome of a single download attempt.

    ``local_path`` is empty whenever ``succeeded`` is False.
    """

    source_url: str
    local_path: str = ""
    succeeded: bool = False

    @classmethod
    def failed(cls, source_url: str) -> "AcquiredAsset":
        return cls(source_url=source_url, local_path="", succeeded=False)


@dataclass(frozen=True)
class OriginClassification:
    """Structured origin derived from free-text origin strings.

    Exactly one of ``domestic_region``/``foreign_country`` may be non-empty,
    and only the one that matches ``origin_type``.
    """

    origin_type: str = ORIGIN_FOREIGN
    domestic_region: str = ""
    foreign_country: str = ""

    @property
    def is_domestic(self) -> bool:
        return self.origin_type == ORIGIN_DOMESTIC

    @classmethod
    def domestic(cls, region: str) -> "OriginClassification":
        return cls(origin_type=ORIGIN_DOMESTIC, domestic_region=region)

    @classmethod
    def foreign(cls, country: str) -> "OriginClassification":
        return cls(origin_type=ORIGIN_FOREIGN, foreign_country=country)


@dataclass(frozen=True)
class Record:
    """Fully assembled result for one ingested URL."""

    source_url: str
    raw: RawExtraction
    screenshot_path: str
    thumbnail: AcquiredAsset
    detail_assets: Tuple[AcquiredAsset, ...]
    origin: OriginClassification

    @property
    def detail_image_paths(self) -> List[str]:
        return [asset.local_path for asset in self.detail_assets]


@dataclass(frozen=True)
class RunContext:
    """Directories and timestamp owned by a single run."""

    run_directory: Path
    timestamp: datetime
    images_subdirectory: Path

    @property
    def screenshots_directory(self) -> Path:
        return self.run_directory / "screenshots"

    @property
    def details_directory(self) -> Path:
        return self.run_directory / "details"

    @classmethod
    def create(cls, run_directory: Path, timestamp: Optional[datetime] = None) -> "RunContext":
        """Create the run directory tree; existing directories are reused."""
        run_directory = Path(run_directory)
        images = run_directory / "images"
        images.mkdir(parents=True, exist_ok=True)
        (run_directory / "screenshots").mkdir(parents=True, exist_ok=True)
        return cls(
            run_directory=run_directory,
            timestamp=timestamp or datetime.now(),
            images_subdirectory=images,
        )


@dataclass
class ExportArtifacts:
    """Paths of the two workbooks produced for a run."""

    primary_artifact: Path
    secondary_artifact: Path


@dataclass
class RunSummary:
    """Summary of a pipeline run."""

    run_id: int
    run_directory: str
    started_at: str
    completed_at: str = ""
    total_urls: int = 0
    successful_urls: int = 0
    skipped_urls: List[str] = field(default_factory=list)
    failed_assets: int = 0
    primary_artifact: Optional[str] = None
    secondary_artifact: Optional[str] = None
    cancelled: bool = False
    errors: List[str] = field(default_factory=list)

    def exit_code(self) -> int:
        """Return appropriate exit code based on run status."""
        if self.errors or self.cancelled:
            return 1
        if self.skipped_urls:
            return 2
        return 0

    @property
    def status(self) -> str:
        if self.errors:
            return "failed"
        if self.cancelled:
            return "cancelled"
        if self.skipped_urls:
            return "completed_with_skips"
        return "completed"

    def to_dict(self) -> Dict[str, Any]:
        """Convert summary to dictionary for JSON serialization."""
        return {
            "run_id": self.run_id,
            "run_directory": self.run_directory,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "total_urls": self.total_urls,
            "successful_urls": self.successful_urls,
            "skipped_urls": self.skipped_urls,
            "failed_assets": self.failed_assets,
            "primary_artifact": self.primary_artifact,
            "secondary_artifact": self.secondary_artifact,
            "cancelled": self.cancelled,
            "status": self.status,
            "errors": self.errors,
            "exit_code": self.exit_code(),
        }
