"""Models for URL metadata enrichment and the Add-Link form draft."""

from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

from linkverse.constants import MAX_TAG_LENGTH, MAX_TAGS
from linkverse.models.entities import Category, unique_tags


def _blank_to_none(v):
    if v is None:
        return None
    v = str(v).strip()
    return v or None


class LinkMetadata(BaseModel):
    """Best-effort metadata for a URL. Any field may be absent."""
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[Category] = None
    domain: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    favicon: Optional[str] = None

    model_config = {"extra": "ignore"}

    @field_validator("title", "description", "domain", "favicon", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        return _blank_to_none(v)

    @field_validator("category", mode="before")
    @classmethod
    def coerce_category(cls, v):
        v = _blank_to_none(v)
        return None if v is None else Category.coerce(v)

    @field_validator("tags", mode="before")
    @classmethod
    def limit_tags(cls, v):
        if isinstance(v, str):
            v = v.split(",")
        tags = [t for t in unique_tags(v) if len(t) <= MAX_TAG_LENGTH]
        return tags[:MAX_TAGS]


class LinkDraft(BaseModel):
    """State of the Add-Link form before submission."""
    url: str = ""
    title: str = ""
    description: str = ""
    category: Optional[Category] = None
    tags: List[str] = Field(default_factory=list)
    collection_id: Optional[str] = None
    notes: str = ""
    is_favorite: bool = False
    domain: Optional[str] = None
    favicon: Optional[str] = None

    def merge(self, metadata: LinkMetadata) -> "LinkDraft":
        """Return a copy with present metadata fields applied over the draft."""
        updates = {
            "title": metadata.title or self.title,
            "description": metadata.description or self.description,
            "category": metadata.category or self.category,
            "tags": metadata.tags or self.tags,
            "domain": metadata.domain or self.domain,
            "favicon": metadata.favicon or self.favicon,
        }
        return self.model_copy(update=updates)
