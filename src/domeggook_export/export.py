"""Workbook export for ingested records.

Two workbooks are produced from the same record set:

* the archival workbook, a near-verbatim dump of every scraped field plus the
  local paths of downloaded assets;
* the publish workbook, reshaped for catalog upload: marked-up price, origin
  triple, template-rendered detail description and fixed publish defaults.

Long text is routed through :func:`overflow.guard` so no cell exceeds the
XLSX per-cell limit.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Any, List, Optional, Sequence

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from .config import EXCEL_CELL_LIMIT, PublishDefaults
from .logging_config import get_logger
from .models import ORIGIN_DOMESTIC, ORIGIN_FOREIGN, ExportArtifacts, Record, RunContext
from .overflow import guard
from .templating import DEFAULT_TEMPLATE, TemplateRenderer, build_template_fields

logger = get_logger("export")

PRIMARY_FILENAME = "크롤링결과.xlsx"
PRIMARY_SHEET = "크롤링결과"
SECONDARY_FILENAME = "등록용.xlsx"
SECONDARY_SHEET = "등록용"

ORIGIN_TYPE_LABELS = {ORIGIN_DOMESTIC: "국내", ORIGIN_FOREIGN: "국외"}

HEADER_FONT = Font(bold=True, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
HEADER_ALIGNMENT = Alignment(horizontal="center", vertical="center", wrap_text=True)


@dataclass(frozen=True)
class Column:
    header: str
    width: int


PRIMARY_COLUMNS: Sequence[Column] = (
    Column("상품명", 40),
    Column("가격", 12),
    Column("설명", 50),
    Column("썸네일URL", 40),
    Column("썸네일경로", 40),
    Column("카테고리", 30),
    Column("상태", 15),
    Column("배송방법", 20),
    Column("배송기간", 15),
    Column("기본배송비", 12),
    Column("지역별추가배송비", 20),
    Column("묶음배송", 20),
    Column("원산지", 20),
    Column("모델명", 20),
    Column("제조사", 20),
    Column("포장부피/무게", 20),
    Column("인증정보", 30),
    Column("이미지사용권한", 20),
    Column("상세이미지URL", 50),
    Column("상세이미지경로", 50),
    Column("상세설명", 60),
    Column("스크린샷경로", 40),
    Column("원본URL", 50),
)

SECONDARY_COLUMNS: Sequence[Column] = (
    Column("상품명", 40),
    Column("판매가", 12),
    Column("매입가", 12),
    Column("원산지구분", 12),
    Column("국내원산지", 20),
    Column("해외원산지", 20),
    Column("모델명", 20),
    Column("제조사", 20),
    Column("규격", 20),
    Column("인증정보", 30),
    Column("기본이미지", 40),
    Column("추가이미지", 50),
    Column("상세설명", 60),
    Column("배송방법", 20),
    Column("배송비", 12),
    Column("납품가능기간", 14),
    Column("보증기간", 12),
    Column("반품배송비", 12),
    Column("묶음배송여부", 12),
    Column("제주/도서산간 추가배송비", 20),
    Column("과세여부", 10),
    Column("원본URL", 50),
)


def compute_price(base_price: int, profit_percent: float) -> int:
    """Apply the markup and round half-up to a whole currency unit."""
    multiplier = (Decimal(100) + Decimal(str(profit_percent))) / Decimal(100)
    value = Decimal(int(base_price)) * multiplier
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def clean_cell(value: Any) -> Any:
    """Strip control characters that XLSX cells cannot hold."""
    if isinstance(value, str):
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    return value


def write_workbook(
    path: Path,
    sheet_title: str,
    columns: Sequence[Column],
    rows: Sequence[Sequence[Any]],
) -> Path:
    """Write one formatted sheet; an empty ``rows`` still yields the header."""
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title

    for col_idx, column in enumerate(columns, 1):
        cell = ws.cell(row=1, column=col_idx, value=column.header)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGNMENT
        ws.column_dimensions[get_column_letter(col_idx)].width = column.width

    for row_idx, row in enumerate(rows, 2):
        for col_idx, value in enumerate(row, 1):
            cell = ws.cell(row=row_idx, column=col_idx, value=clean_cell(value))
            if cell.data_type == "f":
                # scraped text is never a formula
                cell.data_type = "s"

    ws.freeze_panes = "A2"
    if rows:
        ws.auto_filter.ref = ws.dimensions

    path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(path)
    logger.info(f"Wrote {len(rows)} rows to {path}")
    return path


class ExportComposer:
    """Builds the archival and publish workbooks for a run."""

    def __init__(
        self,
        profit_percent: float,
        *,
        publish_defaults: Optional[PublishDefaults] = None,
        renderer: Optional[TemplateRenderer] = None,
    ) -> None:
        self.profit_percent = profit_percent
        self.publish_defaults = publish_defaults or PublishDefaults()
        self.renderer = renderer or TemplateRenderer()

    def compose(
        self,
        records: Sequence[Record],
        run_context: RunContext,
        template_text: Optional[str] = None,
        overflow_limit: int = EXCEL_CELL_LIMIT,
    ) -> ExportArtifacts:
        """Write both workbooks into the run directory and return their paths."""
        template = template_text or DEFAULT_TEMPLATE
        spill_dir = run_context.details_directory

        primary_rows = [
            self.primary_row(index, record, spill_dir, overflow_limit)
            for index, record in enumerate(records, 1)
        ]
        secondary_rows = [
            self.secondary_row(index, record, spill_dir, overflow_limit, template)
            for index, record in enumerate(records, 1)
        ]

        primary = write_workbook(
            run_context.run_directory / PRIMARY_FILENAME, PRIMARY_SHEET, PRIMARY_COLUMNS, primary_rows
        )
        secondary = write_workbook(
            run_context.run_directory / SECONDARY_FILENAME,
            SECONDARY_SHEET,
            SECONDARY_COLUMNS,
            secondary_rows,
        )
        return ExportArtifacts(primary_artifact=primary, secondary_artifact=secondary)

    def spill(self, text: str, limit: int, spill_dir: Path, name: str) -> str:
        """Route oversized text to a side file, truncating the cell if the file cannot be written."""
        try:
            return guard(text, limit, spill_dir, name)
        except OSError as exc:
            logger.error(f"Could not spill {name} to {spill_dir}: {exc}; truncating the cell")
            return text[:limit]

    def primary_row(self, index: int, record: Record, spill_dir: Path, limit: int) -> List[Any]:
        raw = record.raw

        def spill(text: str, suffix: str) -> str:
            return self.spill(text, limit, spill_dir, f"{index:03d}_{raw.title}_{suffix}")

        return [
            raw.title,
            raw.price,
            spill(raw.description, "설명.txt"),
            raw.thumbnail_url,
            record.thumbnail.local_path,
            raw.category,
            raw.condition,
            raw.shipping.method,
            raw.shipping.lead_time,
            raw.shipping.base_cost,
            raw.shipping.regional_surcharge,
            raw.shipping.bundling_note,
            raw.origin,
            raw.model_name,
            raw.manufacturer,
            raw.package_size,
            raw.certification,
            raw.image_permission,
            "\n".join(raw.detail_image_urls),
            "\n".join(record.detail_image_paths),
            spill(raw.detail_html, "원본.html"),
            record.screenshot_path,
            record.source_url,
        ]

    def secondary_row(
        self,
        index: int,
        record: Record,
        spill_dir: Path,
        limit: int,
        template: str,
    ) -> List[Any]:
        raw = record.raw
        defaults = self.publish_defaults
        price = compute_price(raw.price, self.profit_percent)

        fields = build_template_fields(record, price=price)
        rendered = self.renderer.render_with_fallback(template, fields)
        detail = self.spill(rendered, limit, spill_dir, f"{index:03d}_{raw.title}_상세.html")

        origin = record.origin
        return [
            raw.title,
            price,
            raw.price,
            ORIGIN_TYPE_LABELS.get(origin.origin_type, origin.origin_type),
            origin.domestic_region,
            origin.foreign_country,
            raw.model_name,
            raw.manufacturer,
            raw.package_size,
            raw.certification,
            record.thumbnail.local_path,
            "\n".join(record.detail_image_paths),
            detail,
            raw.shipping.method,
            raw.shipping.base_cost,
            defaults.delivery_lead_time,
            defaults.warranty_period,
            defaults.return_shipping_cost,
            defaults.bundle_shipping,
            defaults.regional_surcharge,
            defaults.tax_type,
            record.source_url,
        ]
