from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from common.config import yaml_config
from common.logger import get_logger
from common.settings import settings
from ingestion.dates import MONTH_NAMES
from ingestion.document_models import Outcome, RawDocument, ResolvedDocument
from ingestion.encoding import decode_bytes, normalize

log = get_logger(__name__)


class RepositoryError(Exception):
    """A repository could not produce content it claims to hold."""


class DocumentRepository(Protocol):
    def identities(self) -> List[str]: ...

    def get_text(self, identity: str) -> Optional[str]: ...

    async def fetch_bytes(self, identity: str) -> Optional[bytes]: ...


class InMemoryRepository:
    """Repository over documents held in memory (synthetic corpora, tests)."""

    def __init__(self, documents: Iterable[RawDocument] = ()):
        self._docs: Dict[str, RawDocument] = {d.identity: d for d in documents}

    @classmethod
    def from_texts(cls, texts: Mapping[str, str]) -> "InMemoryRepository":
        return cls(RawDocument(identity=k, text=v) for k, v in texts.items())

    def identities(self) -> List[str]:
        return sorted(self._docs)

    def get_text(self, identity: str) -> Optional[str]:
        doc = self._docs.get(identity)
        return doc.text if doc else None

    async def fetch_bytes(self, identity: str) -> Optional[bytes]:
        doc = self._docs.get(identity)
        return doc.data if doc else None


class FileSystemRepository:
    """Newsletter files below a directory; identities are relative POSIX paths."""

    def __init__(self, root: Path, patterns: Sequence[str] | None = None):
        self.root = Path(root)
        self.patterns = list(patterns or yaml_config.app.file_patterns)

    def _path(self, identity: str) -> Path:
        return self.root / identity

    def identities(self) -> List[str]:
        found = set()
        for pattern in self.patterns:
            for p in self.root.rglob(pattern):
                if p.is_file():
                    found.add(p.relative_to(self.root).as_posix())
        return sorted(found)

    def get_text(self, identity: str) -> Optional[str]:
        path = self._path(identity)
        if not path.is_file():
            return None
        return decode_bytes(path.read_bytes())

    async def fetch_bytes(self, identity: str) -> Optional[bytes]:
        path = self._path(identity)
        if not path.is_file():
            return None
        return await asyncio.to_thread(path.read_bytes)


class HttpRepository:
    """Fetches documents below ``base_url``; synchronous text comes from ``fallback``."""

    def __init__(
        self,
        base_url: str,
        identities: Iterable[str],
        fallback: Optional[DocumentRepository] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/") + "/"
        self._identities = sorted(identities)
        self.fallback = fallback
        self._client = client

    def identities(self) -> List[str]:
        return list(self._identities)

    def get_text(self, identity: str) -> Optional[str]:
        return self.fallback.get_text(identity) if self.fallback else None

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _fetch(self, client: httpx.AsyncClient, url: str) -> httpx.Response:
        """Download URL with retry logic."""
        resp = await client.get(url, headers={"User-Agent": settings.user_agent})
        if resp.status_code == 404:
            return resp
        resp.raise_for_status()
        return resp

    async def fetch_bytes(self, identity: str) -> Optional[bytes]:
        url = self.base_url + identity.lstrip("/")
        try:
            if self._client is not None:
                resp = await self._fetch(self._client, url)
            else:
                async with httpx.AsyncClient(timeout=settings.timeout) as client:
                    resp = await self._fetch(client, url)
        except httpx.HTTPError as e:
            raise RepositoryError(f"Failed to fetch {url}: {e}") from e
        if resp.status_code == 404:
            return None
        return resp.content


class DocumentResolver:
    """Turns document identities into decoded text without ever raising."""

    def __init__(self, repository: DocumentRepository):
        self.repository = repository

    def identities(self) -> List[str]:
        return self.repository.identities()

    def resolve(self, identity: str) -> Outcome[ResolvedDocument]:
        try:
            text = self.repository.get_text(identity)
        except Exception as e:
            log.warning("Synchronous lookup failed for %s: %s", identity, e, exc_info=True)
            text = None
        if text is None:
            return Outcome.absent(f"no content for {identity}")
        return Outcome.ok(ResolvedDocument(identity, normalize(text)))

    async def resolve_async(self, identity: str) -> Outcome[ResolvedDocument]:
        """Fetch and decode bytes, falling back to the synchronous text on failure."""
        reason = "fetch returned nothing"
        try:
            data = await self.repository.fetch_bytes(identity)
            if data:
                return Outcome.ok(ResolvedDocument(identity, normalize(data)))
        except Exception as e:
            log.warning("Fetch failed for %s: %s", identity, e)
            reason = f"fetch failed: {e}"

        fallback = self.resolve(identity)
        if not fallback.found:
            return Outcome.absent(f"no content for {identity} ({reason})")
        return Outcome.degraded(fallback.value, reason)

    async def resolve_many(self, identities: Iterable[str]) -> Dict[str, Outcome[ResolvedDocument]]:
        identities = list(identities)
        results = await asyncio.gather(*(self.resolve_async(i) for i in identities))
        return dict(zip(identities, results))

    def _identity_for_month_year(self, month_index: int, year: int) -> Outcome[str]:
        if not 0 <= month_index < len(MONTH_NAMES):
            return Outcome.absent(f"invalid month index {month_index}")
        month = MONTH_NAMES[month_index]
        year_str = str(year)
        yy = f" '{year % 100:02d}"
        for identity in self.identities():
            lower = identity.lower()
            if month in lower and (year_str in lower or yy in lower):
                return Outcome.ok(identity)
        return Outcome.absent(f"no newsletter for {month} {year}")

    def find_by_month_year(self, month_index: int, year: int) -> Outcome[ResolvedDocument]:
        """First document whose identity names the month and the year."""
        match = self._identity_for_month_year(month_index, year)
        if not match.found:
            return Outcome.absent(match.reason)
        return self.resolve(match.value)

    async def find_by_month_year_async(self, month_index: int, year: int) -> Outcome[ResolvedDocument]:
        """Like ``find_by_month_year`` but fetches the bytes, falling back to the synchronous text."""
        match = self._identity_for_month_year(month_index, year)
        if not match.found:
            return Outcome.absent(match.reason)
        return await self.resolve_async(match.value)
