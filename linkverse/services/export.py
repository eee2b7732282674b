"""Data export (JSON / CSV) and the delete-everything operation.

Both read live from the gateway rather than the cache: an export must not
silently ship a stale or empty snapshot, and a wipe must see every row.
"""

import asyncio
import csv
import io
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

import orjson
from pydantic import BaseModel, Field, computed_field

from linkverse.core.cache import SharedCache
from linkverse.core.errors import ConfirmationRequired, LinkverseError
from linkverse.core.logging import get_logger
from linkverse.models.entities import Collection, EntityKind, Link
from linkverse.services.gateway import RemoteDataGateway
from linkverse.services.search import compute_stats

logger = get_logger(__name__)

CSV_HEADERS = ['Title', 'URL', 'Description', 'Category', 'Tags', 'Collection', 'Created Date']
TAG_SEPARATOR = '; '


class BulkDeleteFailure(BaseModel):
    kind: EntityKind
    id: str
    error: str


class BulkDeleteReport(BaseModel):
    """Outcome of a bulk delete, including partial failure."""
    total: int
    deleted: int
    failures: List[BulkDeleteFailure] = Field(default_factory=list)

    @computed_field
    @property
    def message(self) -> str:
        if self.total == 0:
            return "Nothing to delete"
        if self.deleted == self.total:
            return f"All {self.total} items deleted"
        return f"{self.deleted} of {self.total} items deleted"

    @property
    def complete(self) -> bool:
        return self.deleted == self.total


def iso_timestamp(now: datetime) -> str:
    """UTC timestamp with millisecond precision and a ``Z`` suffix."""
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def export_filename(kind: str, now: datetime) -> str:
    day = now.astimezone(timezone.utc).date().isoformat()
    if kind == "csv":
        return f"linkverse-links-{day}.csv"
    return f"linkverse-export-{day}.json"


def render_json(links: List[Link], collections: List[Collection], stats: Dict,
                now: datetime) -> str:
    document = {
        "exportDate": iso_timestamp(now),
        "stats": stats,
        "links": [link.model_dump(mode="json") for link in links],
        "collections": [collection.model_dump(mode="json") for collection in collections],
    }
    return orjson.dumps(document, option=orjson.OPT_INDENT_2).decode("utf-8")


def render_csv(links: List[Link], collections: List[Collection]) -> str:
    """One row per link; every field quoted, embedded quotes doubled."""
    names = {collection.id: collection.name for collection in collections}
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for link in links:
        writer.writerow([
            link.title or '',
            link.url or '',
            link.description or '',
            link.category.value,
            TAG_SEPARATOR.join(link.tags),
            names.get(link.collection_id) or link.collection or '',
            link.created_at.isoformat() if link.created_at else '',
        ])
    return buffer.getvalue()


class ExportService:
    """Export the user's data and wipe it on request."""

    def __init__(self, gateway: RemoteDataGateway, cache: SharedCache):
        self.gateway = gateway
        self.cache = cache

    async def _load_all(self) -> Tuple[List[Link], List[Collection]]:
        links, collections = await asyncio.gather(
            self.gateway.list(EntityKind.LINKS),
            self.gateway.list(EntityKind.COLLECTIONS),
        )
        return links, collections

    async def export_json(self, now: Optional[datetime] = None) -> Tuple[str, str]:
        """Return ``(filename, content)`` for a full JSON export."""
        now = now or datetime.now(timezone.utc)
        links, collections = await self._load_all()
        content = render_json(links, collections, compute_stats(links, collections, now), now)
        logger.info("JSON export generated", links=len(links), collections=len(collections))
        return export_filename("json", now), content

    async def export_csv(self, now: Optional[datetime] = None) -> Tuple[str, str]:
        """Return ``(filename, content)`` for a CSV export of links."""
        now = now or datetime.now(timezone.utc)
        links, collections = await self._load_all()
        logger.info("CSV export generated", links=len(links))
        return export_filename("csv", now), render_csv(links, collections)

    async def _delete_all(self, targets: List[Tuple[EntityKind, str]]) -> List:
        return list(await asyncio.gather(
            *(self.gateway.delete(kind, entity_id) for kind, entity_id in targets),
            return_exceptions=True,
        ))

    async def wipe_all_data(self, confirmed: bool = False) -> BulkDeleteReport:
        """Delete every link and collection concurrently and report the tally."""
        if not confirmed:
            raise ConfirmationRequired("Deleting all data")

        links, collections = await self._load_all()
        link_targets = [(EntityKind.LINKS, link.id) for link in links]
        collection_targets = [(EntityKind.COLLECTIONS, collection.id) for collection in collections]
        targets = link_targets + collection_targets

        # collections go only after every link delete has settled
        try:
            results = await self._delete_all(link_targets)
            results += await self._delete_all(collection_targets)
        finally:
            self.cache.invalidate()

        failures = []
        for (kind, entity_id), result in zip(targets, results):
            if isinstance(result, LinkverseError):
                failures.append(BulkDeleteFailure(kind=kind, id=entity_id, error=str(result)))
            elif isinstance(result, BaseException):
                raise result

        report = BulkDeleteReport(
            total=len(targets), deleted=len(targets) - len(failures), failures=failures
        )
        if failures:
            logger.warning("Bulk delete incomplete", deleted=report.deleted,
                           total=report.total, failed=len(failures))
        else:
            logger.info("Bulk delete complete", total=report.total)
        return report
