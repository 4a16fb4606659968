"""Fetching schemas, with an optional on-disk cache, and writing them to disk."""

from __future__ import annotations

import hashlib
import json
import logging
import urllib.error
import urllib.request
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

log = logging.getLogger(__name__)

MAX_SCHEMA_SIZE = 10 * 1024 * 1024
"""Largest serialized schema that is kept (10 MiB)."""

_MIB = 1024 * 1024


class FetchError(Exception):
    """Raised when a schema cannot be fetched, parsed or accepted."""


class _Fetcher(Protocol):
    def fetch(self, url: str) -> Any: ...


class SchemaFetcher:
    """Fetches JSON documents by URL, optionally caching them in a directory.

    With ``force_fetch`` the cache is not read, but fetched documents are
    still written to it.
    """

    def __init__(
        self,
        cache_dir: str | Path | None = None,
        force_fetch: bool = False,
        timeout: float = 30.0,
    ) -> None:
        self.cache_dir = Path(cache_dir) if cache_dir is not None else None
        self.force_fetch = force_fetch
        self.timeout = timeout

    def _cache_path(self, url: str) -> Path | None:
        if self.cache_dir is None:
            return None
        digest = hashlib.sha256(url.encode("utf-8")).hexdigest()
        return self.cache_dir / f"{digest}.json"

    def _read_cache(self, path: Path | None) -> Any:
        if path is None or self.force_fetch or not path.is_file():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            log.debug("ignoring unreadable cache entry %s", path)
            return None

    def fetch(self, url: str) -> Any:
        """Return the parsed JSON document at *url*."""
        cache_path = self._cache_path(url)
        cached = self._read_cache(cache_path)
        if cached is not None:
            log.debug("cache hit for %s", url)
            return cached

        try:
            with urllib.request.urlopen(url, timeout=self.timeout) as response:
                body = response.read()
        except (urllib.error.URLError, OSError, ValueError) as exc:
            raise FetchError(f"failed to fetch {url}: {exc}") from exc

        try:
            value = json.loads(body)
        except ValueError as exc:
            raise FetchError(f"failed to parse JSON from {url}: {exc}") from exc

        if cache_path is not None:
            try:
                cache_path.parent.mkdir(parents=True, exist_ok=True)
                cache_path.write_text(json.dumps(value), encoding="utf-8")
            except OSError as exc:
                log.warning("failed to write cache for %s: %s", url, exc)
        return value


@dataclass(frozen=True)
class DownloadItem:
    """A URL to download and the path to write it to."""

    url: str
    dest: Path


def download_one(fetcher: _Fetcher, url: str, path: str | Path) -> str:
    """Fetch a schema, write it pretty-printed to *path* and return the text.

    Raises FetchError if the serialized schema exceeds MAX_SCHEMA_SIZE.
    """
    log.debug("fetching schema %s", url)
    value = fetcher.fetch(url)
    text = json.dumps(value, indent=2, ensure_ascii=False)

    size = len(text.encode("utf-8"))
    if size > MAX_SCHEMA_SIZE:
        raise FetchError(
            f"schema too large ({size // _MIB} MiB, limit {MAX_SCHEMA_SIZE // _MIB} MiB)"
        )

    dest = Path(path)
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_text(text, encoding="utf-8")
    return text


def download_batch(
    fetcher: _Fetcher,
    items: Iterable[DownloadItem],
    concurrency: int,
) -> set[str]:
    """Download items concurrently and return the URLs that succeeded.

    Failures are logged as warnings and skipped.
    """
    items = list(items)
    total = len(items)

    def attempt(index: int, item: DownloadItem) -> str | None:
        try:
            download_one(fetcher, item.url, item.dest)
        except (FetchError, OSError, ValueError, TypeError) as exc:
            log.warning("failed to download schema %s, skipping: %s", item.url, exc)
            return None
        log.debug("downloaded %s (%d/%d)", item.url, index + 1, total)
        return item.url

    with ThreadPoolExecutor(max_workers=max(1, concurrency)) as pool:
        results = pool.map(attempt, range(total), items)
        return {url for url in results if url is not None}