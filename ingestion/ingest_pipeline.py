from __future__ import annotations

import asyncio
import calendar
import hashlib
from pathlib import Path
from typing import Dict, List
from urllib.parse import unquote

import orjson
from tqdm import tqdm

from common.config import yaml_config
from common.logger import get_logger
from common.settings import settings
from ingestion.cleaners import slugify, truncate
from ingestion.dates import infer_date
from ingestion.document_models import NewsletterRecord, SearchIndexEntry
from ingestion.extractor import extract_plain_text
from ingestion.loaders import DocumentResolver, FileSystemRepository, HttpRepository
from ingestion.sections import extract_sections
from ingestion.text_index import extract_lead_excerpt

log = get_logger(__name__)


def base_name(identity: str) -> str:
    """File name without directories and the .htm/.html suffix, URL-decoded."""
    last = identity.replace("\\", "/").rsplit("/", 1)[-1]
    return unquote(Path(last).stem if last.lower().endswith((".htm", ".html")) else last)


def build_record(identity: str, html: str) -> NewsletterRecord:
    """
    Derive the catalog entry for one newsletter:
    - date from the file name, else from the raw and rendered text
    - display title from the date (or the file name)
    - lead excerpt, sections and search text
    """
    file_title = base_name(identity)
    date = infer_date(identity, html)
    if date is not None:
        title = yaml_config.catalog.title_template.format(
            month=calendar.month_name[date.month_index + 1], year=date.year
        )
    else:
        title = file_title

    excerpt = extract_lead_excerpt(html) if html else ""
    if not excerpt:
        excerpt = f"Imported HTML newsletter ({file_title})"

    slug = slugify(file_title) or slugify(identity)
    return NewsletterRecord(
        id=slug,
        slug=slug,
        title=title,
        date=date,
        excerpt=truncate(excerpt, yaml_config.excerpt.max_chars),
        source_path=identity,
        sections=extract_sections(html) if html else [],
        text=extract_plain_text(html) if html else "",
        content_sha1=hashlib.sha1((html or "").encode("utf-8")).hexdigest(),
    )


def sort_newest_first(records: List[NewsletterRecord]) -> List[NewsletterRecord]:
    dated = [r for r in records if r.date is not None]
    undated = [r for r in records if r.date is None]
    dated.sort(key=lambda r: (-r.date.year, -r.date.month_index, r.id))
    undated.sort(key=lambda r: r.id)
    return dated + undated


async def build_catalog(resolver: DocumentResolver) -> List[NewsletterRecord]:
    """Resolve every document concurrently and derive its catalog record."""
    identities = resolver.identities()
    outcomes = await resolver.resolve_many(identities)

    records: List[NewsletterRecord] = []
    for identity in tqdm(identities, desc="Extracting newsletters", disable=len(identities) < 2):
        outcome = outcomes[identity]
        if not outcome.found:
            log.warning("Skipping %s: %s", identity, outcome.reason)
            continue
        if outcome.reason:
            log.info("Using fallback content for %s (%s)", identity, outcome.reason)
        records.append(build_record(identity, outcome.value.html))
    return sort_newest_first(records)


def build_search_index(records: List[NewsletterRecord]) -> Dict[str, SearchIndexEntry]:
    return {r.id: SearchIndexEntry(identity=r.source_path, text=r.text) for r in records}


def _manifest_entry(record: NewsletterRecord) -> dict:
    return {
        "id": record.id,
        "title": record.title,
        "source_path": record.source_path,
        "month_index": record.date.month_index if record.date else None,
        "year": record.date.year if record.date else None,
        "excerpt": record.excerpt,
        "sections": [{"id": s.id, "title": s.title, "level": s.level} for s in record.sections],
        "sha1": record.content_sha1,
        "text_len": len(record.text),
    }


def ingest_folder(
    input_dir: Path | None = None,
    output: Path | None = None,
    base_url: str | None = None,
) -> List[NewsletterRecord]:
    """
    Build the newsletter catalog for a folder of exported .htm files:
    - Discovers files (fetched from base_url when a remote mirror is configured)
    - Decodes, dates, excerpts and segments each newsletter
    - Writes a JSON manifest (for audit/debug)
    """
    input_dir = Path(input_dir or yaml_config.app.data_dir)
    output = Path(output) if output else yaml_config.app.cache_dir / "manifest_newsletters.json"

    local = FileSystemRepository(input_dir)
    base_url = base_url or settings.base_url
    if base_url:
        log.info("Fetching newsletters from %s", base_url)
        resolver = DocumentResolver(HttpRepository(base_url, local.identities(), fallback=local))
    else:
        resolver = DocumentResolver(local)
    log.info("Discovered %d files in %s", len(resolver.identities()), input_dir)

    records = asyncio.run(build_catalog(resolver))
    if not records:
        log.warning("No newsletters found to ingest.")

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(
        orjson.dumps([_manifest_entry(r) for r in records], option=orjson.OPT_INDENT_2)
    )
    log.info("Wrote manifest for %d newsletters to %s", len(records), output)
    return records
