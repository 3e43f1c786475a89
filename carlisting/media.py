"""Image download for listing galleries.

Images are fetched with the same retry policy as pages.  An image that cannot
be fetched after retries is logged and skipped; it never fails the listing.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from pathlib import Path
from typing import Iterable, List
from urllib.parse import urljoin

from carlisting.db.models import ListingImage
from carlisting.errors import FetchError
from carlisting.scraper.fetcher import fetch_bytes
from carlisting.scraper.retry import RetryingFetcher

logger = logging.getLogger(__name__)


def slugify(value: str) -> str:
    """ASCII, lowercase, hyphen-separated form of *value* (``"listing"`` if empty)."""
    ascii_value = (
        unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    )
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_value.lower()).strip("-")
    return slug or "listing"


class ImageStore:
    """Download images into *media_dir* and describe them as :class:`ListingImage`."""

    def __init__(
        self,
        media_dir: Path,
        base_url: str,
        fetcher: RetryingFetcher[bytes] | None = None,
    ) -> None:
        self.media_dir = Path(media_dir)
        self.base_url = base_url
        self.fetcher = fetcher or RetryingFetcher(fetch=fetch_bytes)

    def download(self, urls: Iterable[str], listing_id: str, title: str) -> List[ListingImage]:
        images: List[ListingImage] = []
        slug = slugify(title)
        for url in urls:
            try:
                absolute = urljoin(self.base_url, url)
            except ValueError as exc:
                logger.warning("Skipping image with invalid URL %r: %s", url, exc)
                continue
            try:
                content = self.fetcher.fetch(absolute)
            except FetchError as exc:
                logger.warning("Error downloading image %s: %s", absolute, exc)
                continue

            position = len(images)
            path = self.media_dir / f"{listing_id[:8]}-{slug}-{position}.jpg"
            try:
                self.media_dir.mkdir(parents=True, exist_ok=True)
                path.write_bytes(content)
            except OSError as exc:
                logger.warning("Could not write image %s: %s", path, exc)
                continue
            images.append(ListingImage(position=position, source_url=url, file_path=str(path)))
        return images

    @staticmethod
    def remove(images: Iterable[ListingImage]) -> None:
        for image in images:
            if not image.file_path:
                continue
            try:
                Path(image.file_path).unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("Could not remove image file %s: %s", image.file_path, exc)
