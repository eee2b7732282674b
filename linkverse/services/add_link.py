"""Add-Link form controller.

Holds the draft a user is editing, runs debounced enrichment as the URL
changes, suggests a collection once a category is known, and saves the
link on submit.
"""

import asyncio
from typing import List, Optional

from linkverse.core.cache import SharedCache
from linkverse.core.config import Settings
from linkverse.core.errors import ValidationError
from linkverse.core.logging import get_logger
from linkverse.models.enrichment import LinkDraft, LinkMetadata
from linkverse.models.entities import Category, Collection, EntityKind, Link, LinkCreate
from linkverse.services.enrichment import MetadataEnrichmentService, UrlAnalyzer
from linkverse.services.links import LinkService
from linkverse.services.suggestions import categorize_url, suggest_collection
from linkverse.services.urls import extract_domain, is_valid_url, require_valid_url

logger = get_logger(__name__)


class AddLinkForm:

    def __init__(self, enrichment: MetadataEnrichmentService, links: LinkService,
                 cache: SharedCache, settings: Settings):
        self.links = links
        self.cache = cache
        self.draft = LinkDraft()
        self.collections: List[Collection] = []
        self.preview: Optional[LinkMetadata] = None
        self.analysis_error: Optional[str] = None
        self.suggested_collection: Optional[Collection] = None
        self.enrichment = enrichment
        self.auto_analyze = enrichment.enabled
        self.analyzer = UrlAnalyzer(
            enrichment,
            settings.enrichment_debounce_seconds,
            on_result=self._apply_metadata,
            on_error=self._record_error,
        )

    async def load(self) -> None:
        """Fetch collections for suggestion and honour the auto-analyze preference."""
        entry = await self.cache.get_or_refresh(EntityKind.COLLECTIONS)
        self.collections = list(entry.value)
        profile = self.cache.peek(EntityKind.PROFILE).value
        self.auto_analyze = self.enrichment.enabled and (
            profile is None or profile.preferences.auto_analyze
        )
        self._suggest()

    def reset(self) -> None:
        """Discard the draft and any analysis still pending."""
        self.analyzer.cancel()
        self.draft = LinkDraft()
        self.preview = None
        self.analysis_error = None
        self.suggested_collection = None

    # =========================================================================
    # EDITS
    # =========================================================================

    def set_url(self, url: str) -> Optional[asyncio.Task]:
        """Store the URL and schedule analysis if it parses."""
        candidate = url.strip()
        # domain and favicon belong to the previous URL
        self.draft = self.draft.model_copy(update={
            "url": url, "domain": extract_domain(candidate) or None, "favicon": None,
        })
        self.preview = None
        self.analysis_error = None
        if candidate and is_valid_url(candidate) and self.auto_analyze:
            return self.analyzer.submit(candidate)

        self.analyzer.cancel()
        if candidate and is_valid_url(candidate):
            self._fallback_category(candidate)
        return None

    def update(self, **fields) -> None:
        """Apply plain user edits (title, description, tags, notes, is_favorite)."""
        self.draft = self.draft.model_copy(update=fields)

    def set_category(self, category) -> None:
        self.draft = self.draft.model_copy(update={"category": Category.coerce(category)})
        self._suggest()

    def select_collection(self, collection_id: Optional[str]) -> None:
        self.draft = self.draft.model_copy(update={"collection_id": collection_id})
        self.suggested_collection = None

    # =========================================================================
    # ENRICHMENT CALLBACKS
    # =========================================================================

    def _apply_metadata(self, url: str, metadata: LinkMetadata) -> None:
        self.preview = metadata
        self.draft = self.draft.merge(metadata)
        self._suggest()

    def _record_error(self, url: str, error: Exception) -> None:
        self.analysis_error = str(error)
        self._fallback_category(url)

    def _fallback_category(self, url: str) -> None:
        if self.draft.category is None:
            self.draft = self.draft.model_copy(update={"category": categorize_url(url)})
            self._suggest()

    def _suggest(self) -> None:
        suggestion = suggest_collection(
            self.draft.category, self.collections, selected=self.draft.collection_id
        )
        if suggestion is not None:
            self.draft = self.draft.model_copy(update={"collection_id": suggestion.id})
            self.suggested_collection = suggestion

    # =========================================================================
    # SUBMIT
    # =========================================================================

    async def submit(self) -> Link:
        """Validate the draft and save it. Nothing is sent if validation fails."""
        url = require_valid_url(self.draft.url)
        title = self.draft.title.strip()
        if not title:
            raise ValidationError("title", "is required")

        fields = {
            "url": url,
            "title": title,
            "description": self.draft.description.strip() or None,
            "tags": self.draft.tags,
            "collection_id": self.draft.collection_id,
            "favicon": self.draft.favicon,
            "notes": self.draft.notes.strip() or None,
            "is_favorite": self.draft.is_favorite,
            "domain": self.draft.domain or extract_domain(url),
        }
        if self.draft.category is not None:
            fields["category"] = self.draft.category

        link = await self.links.create_link(LinkCreate(**fields))
        self.reset()
        logger.info("Link saved from form", link_id=link.id, category=link.category.value)
        return link
