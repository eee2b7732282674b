"""Link and collection operations.

Reads go through the shared cache; every mutation goes straight to the
gateway and then invalidates the cache so the next read refetches.
"""

from collections import Counter
from datetime import datetime, timezone
from typing import List, Optional

from linkverse.core.cache import SharedCache
from linkverse.core.errors import ConfirmationRequired, ValidationError
from linkverse.core.logging import get_logger
from linkverse.models.entities import (
    Collection,
    CollectionCreate,
    CollectionSummary,
    CollectionUpdate,
    EntityKind,
    Link,
    LinkCreate,
    LinkQuery,
    LinkUpdate,
)
from linkverse.services.gateway import RemoteDataGateway
from linkverse.services.search import filter_links
from linkverse.services.suggestions import categorize_url
from linkverse.services.urls import extract_domain, require_valid_url

logger = get_logger(__name__)


class LinkService:
    """Create, edit, favorite and delete links and collections."""

    def __init__(self, gateway: RemoteDataGateway, cache: SharedCache):
        self.gateway = gateway
        self.cache = cache

    # =========================================================================
    # LINKS
    # =========================================================================

    async def list_links(self, query: Optional[LinkQuery] = None) -> List[Link]:
        entry = await self.cache.get_or_refresh(EntityKind.LINKS)
        return filter_links(entry.value, query or LinkQuery())

    async def get_link(self, link_id: str) -> Link:
        return await self.gateway.get(EntityKind.LINKS, link_id)

    async def create_link(self, data: LinkCreate) -> Link:
        """Validate and save a new link."""
        url = require_valid_url(data.url)
        title = (data.title or "").strip()
        if not title:
            raise ValidationError("title", "is required")

        attrs = data.model_dump(mode="json")
        attrs["url"] = url
        attrs["title"] = title
        attrs["domain"] = data.domain or extract_domain(url)
        if data.category.value == "other" and "category" not in data.model_fields_set:
            attrs["category"] = categorize_url(url).value
        if data.collection_id:
            await self._require_collection(data.collection_id)

        link = await self.gateway.create(EntityKind.LINKS, attrs)
        self.cache.invalidate()
        return link

    async def update_link(self, link_id: str, data: LinkUpdate) -> Link:
        attrs = data.model_dump(mode="json", exclude_unset=True)
        if "url" in attrs:
            attrs["url"] = require_valid_url(attrs["url"])
            attrs["domain"] = extract_domain(attrs["url"])
        if "title" in attrs:
            attrs["title"] = (attrs["title"] or "").strip()
            if not attrs["title"]:
                raise ValidationError("title", "is required")
        if attrs.get("collection_id"):
            await self._require_collection(attrs["collection_id"])
        if not attrs:
            return await self.get_link(link_id)

        link = await self.gateway.update(EntityKind.LINKS, link_id, attrs)
        self.cache.invalidate()
        return link

    async def toggle_favorite(self, link_id: str) -> Link:
        current = await self.gateway.get(EntityKind.LINKS, link_id)
        link = await self.gateway.update(
            EntityKind.LINKS, link_id, {"is_favorite": not current.is_favorite}
        )
        self.cache.invalidate()
        return link

    async def mark_accessed(self, link_id: str) -> Link:
        link = await self.gateway.update(
            EntityKind.LINKS, link_id,
            {"last_accessed": datetime.now(timezone.utc).isoformat()},
        )
        self.cache.invalidate()
        return link

    async def delete_link(self, link_id: str) -> None:
        await self.gateway.delete(EntityKind.LINKS, link_id)
        self.cache.invalidate()

    # =========================================================================
    # COLLECTIONS
    # =========================================================================

    async def list_collections(self) -> List[CollectionSummary]:
        """Cached collections with the number of cached links in each."""
        collections = await self.cache.get_or_refresh(EntityKind.COLLECTIONS)
        links = await self.cache.get_or_refresh(EntityKind.LINKS)
        counts = Counter(link.collection_id for link in links.value if link.collection_id)
        return [
            CollectionSummary(**collection.model_dump(), link_count=counts.get(collection.id, 0))
            for collection in collections.value
        ]

    async def _require_collection(self, collection_id: str) -> Collection:
        return await self.gateway.get(EntityKind.COLLECTIONS, collection_id)

    async def create_collection(self, data: CollectionCreate) -> Collection:
        existing = await self.gateway.list(EntityKind.COLLECTIONS)
        if any(c.name.lower() == data.name.lower() for c in existing):
            raise ValidationError("name", f"a collection named {data.name!r} already exists")

        collection = await self.gateway.create(EntityKind.COLLECTIONS, data.model_dump(mode="json"))
        self.cache.invalidate()
        return collection

    async def update_collection(self, collection_id: str, data: CollectionUpdate) -> Collection:
        attrs = data.model_dump(mode="json", exclude_unset=True)
        if attrs.get("name"):
            attrs["name"] = attrs["name"].strip()
            existing = await self.gateway.list(EntityKind.COLLECTIONS)
            if any(c.name.lower() == attrs["name"].lower() and c.id != collection_id for c in existing):
                raise ValidationError("name", f"a collection named {attrs['name']!r} already exists")
        if not attrs:
            return await self.gateway.get(EntityKind.COLLECTIONS, collection_id)

        collection = await self.gateway.update(EntityKind.COLLECTIONS, collection_id, attrs)
        self.cache.invalidate()
        return collection

    async def delete_collection(self, collection_id: str, confirmed: bool = False) -> None:
        """Delete a collection. Links in it are kept and become unfiled."""
        if not confirmed:
            raise ConfirmationRequired("Deleting a collection")
        await self._require_collection(collection_id)
        try:
            # unfile first; the links' foreign key would block the delete
            unfiled = await self.gateway.update_where(
                EntityKind.LINKS, {"collection_id": collection_id}, {"collection_id": None}
            )
            await self.gateway.delete(EntityKind.COLLECTIONS, collection_id)
        finally:
            self.cache.invalidate()
        logger.info("Collection deleted", collection_id=collection_id, unfiled_links=len(unfiled))
