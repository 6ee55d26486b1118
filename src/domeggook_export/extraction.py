"""Product page extraction.

The pipeline only depends on the :class:`ExtractionCollaborator` protocol.
:class:`PlaywrightExtractor` is the browser-backed implementation: it loads a
page with Playwright, captures the detail section as a screenshot and hands
the rendered HTML to :func:`parse_product_page`.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from .logging_config import get_logger
from .models import Extraction, RawExtraction, ShippingInfo
from .overflow import sanitize_filename

logger = get_logger("extraction")

_INFO_CELL = "#lInfoViewItemInfoWrap .lTblRow:nth-child({row}) .lTblHalf:{half}-child .lTblCell:last-child"

SELECTORS: Dict[str, str] = {
    "title": "#lInfoItemTitle",
    "price": ".lGGookDealAmt b",
    "description": "#lInfoBody",
    "body_images": "#lInfoBody img",
    "thumbnail": "#lThumbImg img",
    "category": "#lPath a",
    "category_fallback": ".lInfoItemCountryContent",
    "condition": ".lInfoQty .lInfoItemContent",
    "shipping_method": ".lDeliMethod",
    "shipping_lead_time": ".lDeliDay",
    "shipping_base_cost": ".lDeliFee",
    "shipping_regional_surcharge": ".lDeliJeju",
    "shipping_bundling_note": ".lDeliBundle",
    "origin": _INFO_CELL.format(row=1, half="first"),
    "model_name": _INFO_CELL.format(row=1, half="last"),
    "manufacturer": _INFO_CELL.format(row=2, half="first"),
    "package_size": _INFO_CELL.format(row=2, half="last"),
    "certification": "#lSafetyCert .lExemContent",
    "image_permission": "#lInfoImgUse .lInfoItemContent",
    "detail_content": "#lInfoViewItemContents",
    "detail_images": "#lInfoViewItemContents img",
}

_NON_DIGITS = re.compile(r"[^0-9]")


class ExtractionError(RuntimeError):
    """Raised when a page cannot be turned into a :class:`RawExtraction`."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"{url}: {message}")
        self.url = url


class ExtractionCollaborator(Protocol):
    """Anything that can turn a product URL into an :class:`Extraction`."""

    def extract(self, url: str, screenshot_dir: Path) -> Extraction:
        """Return the scraped fields for ``url``.

        Raises:
            ExtractionError: If the page is unreachable or a required field is absent
        """
        ...


def _text(soup: BeautifulSoup, selector: str) -> str:
    element = soup.select_one(selector)
    if element is None:
        return ""
    return element.get_text().strip()


def _image_urls(soup: BeautifulSoup, selector: str, base_url: str) -> List[str]:
    urls: List[str] = []
    for img in soup.select(selector):
        src = img.get("src") or img.get("data-src") or ""
        src = src.strip()
        if src:
            urls.append(urljoin(base_url, src))
    return urls


def parse_price(text: str) -> int:
    """Digits of ``text`` as an integer, 0 when there are none."""
    digits = _NON_DIGITS.sub("", text or "")
    return int(digits) if digits else 0


def parse_product_page(html: str, url: str) -> RawExtraction:
    """Parse a rendered product page into a :class:`RawExtraction`.

    Raises:
        ExtractionError: If the product title is missing
    """
    soup = BeautifulSoup(html or "", "lxml")

    title = _text(soup, SELECTORS["title"])
    if not title:
        raise ExtractionError(url, "product title not found")

    body_images = _image_urls(soup, SELECTORS["body_images"], url)
    thumbnails = _image_urls(soup, SELECTORS["thumbnail"], url)
    thumbnail_url = thumbnails[0] if thumbnails else (body_images[0] if body_images else "")

    crumbs = [crumb.get_text().strip() for crumb in soup.select(SELECTORS["category"])]
    crumbs = [crumb for crumb in crumbs if crumb]
    category = " > ".join(crumbs) if crumbs else _text(soup, SELECTORS["category_fallback"])

    detail = soup.select_one(SELECTORS["detail_content"])
    detail_html = detail.decode_contents().strip() if detail is not None else ""

    return RawExtraction(
        title=title,
        price=parse_price(_text(soup, SELECTORS["price"])),
        description=_text(soup, SELECTORS["description"]),
        thumbnail_url=thumbnail_url,
        detail_image_urls=tuple(_image_urls(soup, SELECTORS["detail_images"], url)),
        category=category,
        condition=_text(soup, SELECTORS["condition"]),
        shipping=ShippingInfo(
            method=_text(soup, SELECTORS["shipping_method"]),
            lead_time=_text(soup, SELECTORS["shipping_lead_time"]),
            base_cost=_text(soup, SELECTORS["shipping_base_cost"]),
            regional_surcharge=_text(soup, SELECTORS["shipping_regional_surcharge"]),
            bundling_note=_text(soup, SELECTORS["shipping_bundling_note"]),
        ),
        origin=_text(soup, SELECTORS["origin"]),
        model_name=_text(soup, SELECTORS["model_name"]),
        manufacturer=_text(soup, SELECTORS["manufacturer"]),
        package_size=_text(soup, SELECTORS["package_size"]),
        certification=_text(soup, SELECTORS["certification"]),
        detail_html=detail_html,
        image_permission=_text(soup, SELECTORS["image_permission"]),
    )


class PlaywrightExtractor:
    """Browser-backed extraction collaborator using Playwright's sync API."""

    LAUNCH_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]

    def __init__(
        self,
        *,
        headless: bool = False,
        executable_path: Optional[str] = None,
        navigation_timeout_ms: int = 60_000,
    ) -> None:
        self.headless = headless
        self.executable_path = executable_path
        self.navigation_timeout_ms = navigation_timeout_ms
        self._playwright: Any = None
        self._browser: Any = None

    def start(self) -> None:
        if self._browser is not None:
            return
        self._playwright = sync_playwright().start()
        self._browser = self._playwright.chromium.launch(
            headless=self.headless,
            executable_path=self.executable_path,
            args=self.LAUNCH_ARGS,
        )
        logger.info(f"Browser launched (headless={self.headless})")

    def close(self) -> None:
        if self._browser is not None:
            self._browser.close()
            self._browser = None
        if self._playwright is not None:
            self._playwright.stop()
            self._playwright = None

    def __enter__(self) -> "PlaywrightExtractor":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def extract(self, url: str, screenshot_dir: Path) -> Extraction:
        if self._browser is None:
            raise ExtractionError(url, "browser is not started")

        page = self._browser.new_page()
        try:
            try:
                page.goto(url, wait_until="networkidle", timeout=self.navigation_timeout_ms)
                html = page.content()
            except PlaywrightError as exc:
                raise ExtractionError(url, f"navigation failed: {exc}") from exc

            raw = parse_product_page(html, url)
            screenshot_path = self._capture_detail(page, raw.title, Path(screenshot_dir))
            return Extraction(raw=raw, screenshot_path=screenshot_path)
        finally:
            page.close()

    def _capture_detail(self, page: Any, title: str, screenshot_dir: Path) -> str:
        element = page.query_selector(SELECTORS["detail_content"])
        if element is None:
            logger.info(f"No detail section to capture for '{title}'")
            return ""
        screenshot_dir.mkdir(parents=True, exist_ok=True)
        target = screenshot_dir / f"{sanitize_filename(title)}.png"
        try:
            element.screenshot(path=str(target), type="png")
        except PlaywrightError as exc:
            logger.warning(f"Detail screenshot failed for '{title}': {exc}")
            return ""
        return str(target)
