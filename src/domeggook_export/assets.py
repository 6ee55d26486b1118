"""Content-addressed image downloads for product records."""

from __future__ import annotations

import hashlib
import re
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Sequence
from urllib.parse import urlparse

import httpx

from .logging_config import get_logger
from .models import AcquiredAsset

logger = get_logger("assets")

DEFAULT_EXTENSION = ".jpg"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0 Safari/537.36"
)
CHUNK_SIZE = 64 * 1024

_EXTENSION_PATTERN = re.compile(r"^\.[A-Za-z0-9]{1,5}$")


def url_extension(url: str) -> str:
    """Return the lower-cased extension of the URL path, or ``.jpg``."""
    suffix = Path(urlparse(url).path).suffix
    if suffix and _EXTENSION_PATTERN.match(suffix):
        return suffix.lower()
    return DEFAULT_EXTENSION


def is_fetchable(url: Optional[str]) -> bool:
    """True for parseable http(s) URLs that name a host."""
    if not url:
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.hostname)


def content_addressed_name(url: str) -> str:
    """File name derived from a SHA-256 of the URL plus the URL's extension."""
    digest = hashlib.sha256(url.encode("utf-8")).hexdigest()
    return f"{digest}{url_extension(url)}"


class AssetAcquirer:
    """Downloads remote images into a run's image directory.

    A single attempt is made per URL. Transport and write errors are logged
    and reported as a failed :class:`AcquiredAsset`; they never propagate.
    """

    def __init__(
        self,
        images_dir: Path,
        *,
        client: Optional[httpx.Client] = None,
        timeout: float = 30.0,
        max_workers: int = 4,
    ) -> None:
        self.images_dir = Path(images_dir)
        self.max_workers = max(1, max_workers)
        self._owns_client = client is None
        self.client = client or httpx.Client(
            timeout=httpx.Timeout(timeout, connect=10.0),
            follow_redirects=True,
            headers={"User-Agent": DEFAULT_USER_AGENT},
        )

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def __enter__(self) -> "AssetAcquirer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def target_path(self, url: str) -> Path:
        return self.images_dir / content_addressed_name(url)

    def acquire(self, url: str) -> AcquiredAsset:
        """Download ``url`` and return where it was stored."""
        if not is_fetchable(url):
            logger.warning(f"Skipping asset with unsupported URL: {url!r}")
            return AcquiredAsset.failed(url or "")

        partial: Optional[Path] = None
        try:
            target = self.target_path(url)
            if target.exists():
                logger.debug(f"Asset already present: {url} -> {target}")
                return AcquiredAsset(source_url=url, local_path=str(target), succeeded=True)

            partial = target.with_name(target.name + ".part")
            self.images_dir.mkdir(parents=True, exist_ok=True)
            with self.client.stream("GET", url) as response:
                response.raise_for_status()
                with open(partial, "wb") as handle:
                    for chunk in response.iter_bytes(CHUNK_SIZE):
                        handle.write(chunk)
            partial.replace(target)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError, OSError) as exc:
            logger.warning(f"Failed to download asset {url}: {exc}")
            if partial is not None:
                partial.unlink(missing_ok=True)
            return AcquiredAsset.failed(url)

        logger.debug(f"Downloaded asset {url} -> {target}")
        return AcquiredAsset(source_url=url, local_path=str(target), succeeded=True)

    def acquire_all(self, urls: Sequence[str]) -> List[AcquiredAsset]:
        """Download ``urls`` concurrently; results keep the input order."""
        if not urls:
            return []
        # Repeated URLs share one target file, so each is fetched once
        unique = list(dict.fromkeys(urls))
        workers = min(self.max_workers, len(unique))
        if workers == 1:
            results = [self.acquire(url) for url in unique]
        else:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                results = list(executor.map(self.acquire, unique))
        by_url = dict(zip(unique, results))
        return [by_url[url] for url in urls]
