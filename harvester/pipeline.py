import asyncio
import hashlib
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Set
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import aiohttp
from loguru import logger

from harvester.adapters.base import PageCapability
from harvester.cancel import CancellationToken
from harvester.config import (
    DEFAULT_EXTENSION,
    DOWNLOAD_CHUNK,
    DOWNLOAD_TIMEOUT_S,
    HASH_LEN,
    MAX_EXTENSION_LEN,
    STRIPPED_PARAMS,
    UA,
)
from harvester.resolver import ContentType


class DownloadError(Exception):
    """Non-200 answer for an image URL."""

    def __init__(self, url: str, status: int):
        super().__init__(f"HTTP {status} for {url}")
        self.url = url
        self.status = status


@dataclass
class BatchResult:
    saved: int = 0      # files written by this batch
    skipped: int = 0    # already on disk, or the fetch failed


def canonicalize_url(url: str) -> str:
    """
    Drops the query params that only pick a resized variant (w, h, width,
    height, resize) and sorts what is left, so every variant of one image
    maps to the same key. Unparseable input comes back unchanged.
    """
    try:
        parts = urlsplit(url)
        query = parse_qsl(parts.query, keep_blank_values=True)
    except ValueError:
        return url

    kept = sorted((k, v) for k, v in query if k not in STRIPPED_PARAMS)
    return urlunsplit(parts._replace(query=urlencode(kept)))


def image_filename(canonical_url: str, content_type: ContentType) -> str:
    digest = hashlib.md5(canonical_url.encode("utf-8")).hexdigest()[:HASH_LEN]

    try:
        path = urlsplit(canonical_url).path
    except ValueError:
        path = canonical_url
    ext = os.path.splitext(path)[1]

    if not ext or len(ext) > MAX_EXTENSION_LEN:
        ext = DEFAULT_EXTENSION
    if content_type == ContentType.PNG_SEARCH and "png" not in ext.lower():
        ext = ".png"
    return f"{digest}{ext}"


class ImageFetcher:
    """Streams image bodies to disk over one aiohttp session."""

    def __init__(self, timeout_s: float = DOWNLOAD_TIMEOUT_S):
        self._timeout = aiohttp.ClientTimeout(total=timeout_s)
        self.session = None

    async def __aenter__(self):
        self.session = aiohttp.ClientSession(
            timeout=self._timeout,
            headers={"User-Agent": UA},
        )
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.session.close()
        self.session = None
        return False

    async def fetch(self, url: str, dest: Path):
        try:
            async with self.session.get(url) as resp:
                if resp.status != 200:
                    raise DownloadError(url, resp.status)
                with open(dest, "wb") as f:
                    async for chunk in resp.content.iter_chunked(DOWNLOAD_CHUNK):
                        f.write(chunk)
        except BaseException:
            # no half-written images left behind, a later run must not skip them
            dest.unlink(missing_ok=True)
            raise


async def run_batch(
    page: PageCapability,
    folder_path: Path,
    seen: Set[str],
    content_type: ContentType,
    token: CancellationToken,
    fetcher,
) -> BatchResult:
    """
    One harvest pass over the current page snapshot.

    Every new URL is marked as seen before anything is fetched, so a failed
    download is never retried inside the same job. Files already present in
    the folder are skipped without a network call, which makes re-runs of
    the same request idempotent.
    """
    result = BatchResult()
    extracted = await page.extract_images(content_type)

    new_batch: List[str] = []
    for url in extracted:
        if url not in seen:
            seen.add(url)
            new_batch.append(url)

    for url in new_batch:
        if token.cancelled:
            logger.debug("[STOP] Cancellation observed, leaving batch")
            break

        canonical = canonicalize_url(url)
        dest = Path(folder_path) / image_filename(canonical, content_type)

        if dest.exists():
            result.skipped += 1
            logger.debug(f"[SKIP] {dest.name} already on disk")
            continue

        try:
            await fetcher.fetch(canonical, dest)
        # ValueError: hosts the browser accepted but IDNA encoding refuses (a..b, labels > 63)
        except (aiohttp.ClientError, asyncio.TimeoutError, DownloadError, OSError, ValueError) as e:
            result.skipped += 1
            logger.info(f"[ERR ] {canonical} -> {e}")
            continue

        result.saved += 1
        logger.debug(f"[NEW ] {dest.name} <- {canonical}")

    return result
