"""Extension catalog: discovery metadata for installable extensions.

The catalog is a JSON document listing extensions by id. It is fetched over
HTTPS, cached under ``.faber/extensions/.cache/`` and only ever read; the
local registry decides what is installed.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import httpx

from faber.extensions.errors import (
    CatalogIoError,
    Err,
    InvalidUrlError,
    NetworkError,
    NotFoundError,
    Ok,
    Result,
)

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_URL = (
    "https://raw.githubusercontent.com/faber-dev/faber/main/extensions/catalog.json"
)
CACHE_DURATION_SECONDS = 3600
CATALOG_CACHE_FILE = "catalog.json"
CATALOG_METADATA_FILE = "catalog-metadata.json"

_LOCAL_HOSTS = {"localhost", "127.0.0.1", "::1"}


@dataclass(frozen=True)
class CatalogEntry:
    """Catalog listing for one extension."""

    name: str
    description: str
    version: str
    author: str
    tags: tuple[str, ...] = ()
    verified: bool = False
    download_url: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CatalogEntry:
        tags = data.get("tags") or []
        return cls(
            name=str(data.get("name") or ""),
            description=str(data.get("description") or ""),
            version=str(data.get("version") or ""),
            author=str(data.get("author") or ""),
            tags=tuple(str(t) for t in tags) if isinstance(tags, list) else (),
            verified=data.get("verified") is True,
            download_url=str(data.get("download_url") or data.get("downloadUrl") or ""),
        )


@dataclass(frozen=True)
class SearchResult:
    """A catalog entry together with its id."""

    id: str
    entry: CatalogEntry

    @property
    def name(self) -> str:
        return self.entry.name

    @property
    def version(self) -> str:
        return self.entry.version

    @property
    def author(self) -> str:
        return self.entry.author

    @property
    def verified(self) -> bool:
        return self.entry.verified

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.entry.name,
            "description": self.entry.description,
            "version": self.entry.version,
            "author": self.entry.author,
            "tags": list(self.entry.tags),
            "verified": self.entry.verified,
            "download_url": self.entry.download_url,
        }


@dataclass(frozen=True)
class Catalog:
    schema_version: str = "1.0"
    extensions: dict[str, CatalogEntry] = field(default_factory=dict)


@dataclass(frozen=True)
class CacheMetadata:
    cached_at: str
    catalog_url: str


def parse_catalog(data: Any) -> Result[Catalog, CatalogIoError]:
    """Build a ``Catalog`` from decoded JSON."""
    if not isinstance(data, dict):
        return Err(CatalogIoError(message="Catalog must be a JSON object"))

    raw_extensions = data.get("extensions", {})
    if not isinstance(raw_extensions, dict):
        return Err(CatalogIoError(message="Catalog 'extensions' must be an object"))

    extensions = {
        str(ext_id): CatalogEntry.from_dict(raw)
        for ext_id, raw in raw_extensions.items()
        if isinstance(raw, dict)
    }
    schema_version = str(data.get("schema_version") or data.get("schemaVersion") or "1.0")
    return Ok(Catalog(schema_version=schema_version, extensions=extensions))


# =============================================================================
# URLs
# =============================================================================


def _is_secure(url: str) -> Result[str, InvalidUrlError]:
    try:
        parsed = urlparse(url)
    except ValueError:
        return Err(InvalidUrlError(url=url, message="Not a valid URL"))

    if not parsed.scheme or not parsed.hostname:
        return Err(InvalidUrlError(url=url, message="URL must have a scheme and host"))
    if parsed.scheme == "https":
        return Ok(url)
    if parsed.scheme == "http" and parsed.hostname in _LOCAL_HOSTS:
        return Ok(url)
    return Err(
        InvalidUrlError(url=url, message="Must use HTTPS (HTTP only allowed for localhost)")
    )


def resolve_catalog_url(raw: str | None) -> Result[str, InvalidUrlError]:
    """Validate a configured catalog URL, falling back to the default."""
    value = (raw or "").strip()
    if not value:
        return Ok(DEFAULT_CATALOG_URL)
    return _is_secure(value)


def validate_download_url(url: str) -> Result[str, InvalidUrlError]:
    if not url:
        return Err(InvalidUrlError(url=url, message="Empty download URL"))
    return _is_secure(url)


# =============================================================================
# Queries
# =============================================================================


def search_extensions(
    catalog: Catalog,
    query: str | None = None,
    tag: str | None = None,
    author: str | None = None,
    verified_only: bool = False,
) -> list[SearchResult]:
    """Filter the catalog; all text matching is case-insensitive.

    Args:
        catalog: Catalog to search.
        query: Substring matched against name, description, id and tags.
        tag: Exact tag the entry must carry.
        author: Exact author.
        verified_only: Only verified extensions.

    Returns:
        Matching results sorted by id.
    """
    results: list[SearchResult] = []
    for ext_id, entry in sorted(catalog.extensions.items()):
        if verified_only and not entry.verified:
            continue
        if author and entry.author.lower() != author.lower():
            continue
        if tag and tag.lower() not in (t.lower() for t in entry.tags):
            continue
        if query:
            haystack = " ".join([entry.name, entry.description, ext_id, *entry.tags]).lower()
            if query.lower() not in haystack:
                continue
        results.append(SearchResult(id=ext_id, entry=entry))
    return results


def get_extension_info(catalog: Catalog, ext_id: str) -> Result[SearchResult, NotFoundError]:
    entry = catalog.extensions.get(ext_id)
    if entry is None:
        return Err(NotFoundError(id=ext_id))
    return Ok(SearchResult(id=ext_id, entry=entry))


# =============================================================================
# Cache and client
# =============================================================================


def is_cache_valid(
    meta: CacheMetadata,
    max_age_seconds: int = CACHE_DURATION_SECONDS,
    now: datetime | None = None,
) -> bool:
    try:
        cached_at = datetime.fromisoformat(meta.cached_at.replace("Z", "+00:00"))
    except ValueError:
        return False
    if cached_at.tzinfo is None:
        cached_at = cached_at.replace(tzinfo=timezone.utc)
    current = now or datetime.now(timezone.utc)
    return (current - cached_at).total_seconds() < max_age_seconds


class CatalogClient:
    """Fetch the extension catalog with a small on-disk cache.

    Example:
        >>> client = CatalogClient(DEFAULT_CATALOG_URL, cache_dir=Path(".faber/extensions/.cache"))
        >>> result = client.fetch()
        >>> if result.is_ok():
        ...     search_extensions(result.value, query="lint")
    """

    def __init__(
        self,
        catalog_url: str = DEFAULT_CATALOG_URL,
        cache_dir: Path | None = None,
        cache_seconds: int = CACHE_DURATION_SECONDS,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            catalog_url: Catalog JSON URL (already validated).
            cache_dir: Cache directory; ``None`` disables caching.
            cache_seconds: Maximum cache age.
            timeout: HTTP timeout in seconds.
            transport: Optional httpx transport (tests use ``MockTransport``).
        """
        self.catalog_url = catalog_url
        self.cache_dir = cache_dir
        self.cache_seconds = cache_seconds
        self.timeout = timeout
        self.transport = transport

    def fetch(self, force_refresh: bool = False) -> Result[Catalog, NetworkError | CatalogIoError]:
        """Return the catalog, from cache when fresh."""
        if not force_refresh:
            cached = self._read_cache()
            if cached is not None:
                logger.debug("Using cached catalog for %s", self.catalog_url)
                return parse_catalog(cached)

        downloaded = self._download()
        if isinstance(downloaded, Err):
            return downloaded

        parsed = parse_catalog(downloaded.value)
        if isinstance(parsed, Ok):
            self._write_cache(downloaded.value)
        return parsed

    def _download(self) -> Result[Any, NetworkError | CatalogIoError]:
        logger.debug("Fetching catalog from %s", self.catalog_url)
        try:
            with httpx.Client(
                timeout=self.timeout, follow_redirects=True, transport=self.transport
            ) as client:
                response = client.get(self.catalog_url)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            return Err(NetworkError(message=f"HTTP {e.response.status_code} from {self.catalog_url}"))
        except httpx.RequestError as e:
            return Err(NetworkError(message=f"Connection error: {e}"))

        try:
            return Ok(response.json())
        except ValueError as e:
            return Err(CatalogIoError(message=f"Invalid catalog JSON: {e}"))

    def _read_cache(self) -> Any | None:
        if self.cache_dir is None:
            return None
        cache_file = self.cache_dir / CATALOG_CACHE_FILE
        meta_file = self.cache_dir / CATALOG_METADATA_FILE
        if not cache_file.exists() or not meta_file.exists():
            return None

        try:
            meta_raw = json.loads(meta_file.read_text(encoding="utf-8"))
            meta = CacheMetadata(
                cached_at=str(meta_raw.get("cached_at", "")),
                catalog_url=str(meta_raw.get("catalog_url", "")),
            )
            if meta.catalog_url != self.catalog_url:
                return None
            if not is_cache_valid(meta, self.cache_seconds):
                return None
            return json.loads(cache_file.read_text(encoding="utf-8"))
        except (OSError, ValueError, AttributeError) as e:
            logger.debug("Ignoring unreadable catalog cache: %s", e)
            return None

    def _write_cache(self, data: Any) -> None:
        if self.cache_dir is None:
            return
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            (self.cache_dir / CATALOG_CACHE_FILE).write_text(
                json.dumps(data, indent=2), encoding="utf-8"
            )
            meta = {
                "cached_at": datetime.now(timezone.utc).isoformat(),
                "catalog_url": self.catalog_url,
            }
            (self.cache_dir / CATALOG_METADATA_FILE).write_text(
                json.dumps(meta, indent=2), encoding="utf-8"
            )
        except OSError as e:
            logger.warning("Could not write catalog cache: %s", e)
