"""Pydantic v2 domain models for links, collections and the user profile.

Records come back from the BaaS with extra columns (``user_id``, joined
relations, counters); those are ignored rather than rejected.
"""

from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional
from pydantic import BaseModel, Field, field_validator

from linkverse.constants import COLLECTION_COLORS, COLLECTION_ICONS


class Category(str, Enum):
    """Closed category taxonomy shared by the UI and enrichment parsing."""
    SOCIAL_MEDIA = "social_media"
    VIDEO = "video"
    DEVELOPMENT = "development"
    NEWS = "news"
    SHOPPING = "shopping"
    EDUCATION = "education"
    PRODUCTIVITY = "productivity"
    DESIGN = "design"
    BUSINESS = "business"
    ENTERTAINMENT = "entertainment"
    RESEARCH = "research"
    DOCUMENTATION = "documentation"
    PORTFOLIO = "portfolio"
    BLOG = "blog"
    OTHER = "other"

    @classmethod
    def coerce(cls, value: Optional[str]) -> "Category":
        """Map free-form text onto the taxonomy; unknown values become OTHER."""
        if isinstance(value, Category):
            return value
        if not value:
            return cls.OTHER
        normalized = value.strip().lower().replace(" ", "_").replace("-", "_")
        try:
            return cls(normalized)
        except ValueError:
            return cls.OTHER


class EntityKind(str, Enum):
    """The three entity collections held by the shared cache."""
    LINKS = "links"
    COLLECTIONS = "collections"
    PROFILE = "profile"


def unique_tags(tags) -> List[str]:
    """Trim tags and drop blanks and case-insensitive duplicates, keeping order."""
    seen = set()
    result = []
    for tag in tags or []:
        cleaned = str(tag).strip()
        if not cleaned or cleaned.lower() in seen:
            continue
        seen.add(cleaned.lower())
        result.append(cleaned)
    return result


class BaseRecord(BaseModel):
    model_config = {"extra": "ignore", "coerce_numbers_to_str": True}


# =============================================================================
# LINKS
# =============================================================================

class Link(BaseRecord):
    """A saved URL owned by the signed-in user."""
    id: str
    url: str
    title: str = ""
    description: Optional[str] = None
    category: Category = Category.OTHER
    tags: List[str] = Field(default_factory=list)
    collection_id: Optional[str] = None
    collection: Optional[str] = None  # display name, never used as a reference
    favicon: Optional[str] = None
    notes: Optional[str] = None
    is_favorite: bool = False
    domain: str = ""
    created_at: Optional[datetime] = None
    last_accessed: Optional[datetime] = None

    @field_validator("title", "domain", mode="before")
    @classmethod
    def null_to_empty(cls, v):
        return "" if v is None else v

    @field_validator("is_favorite", mode="before")
    @classmethod
    def null_to_false(cls, v):
        return False if v is None else v

    @field_validator("category", mode="before")
    @classmethod
    def coerce_category(cls, v):
        return Category.coerce(v)

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v):
        return unique_tags(v)


class LinkCreate(BaseModel):
    """Attributes accepted when saving a new link."""
    url: str
    title: str = ""
    description: Optional[str] = None
    category: Category = Category.OTHER
    tags: List[str] = Field(default_factory=list)
    collection_id: Optional[str] = None
    favicon: Optional[str] = None
    notes: Optional[str] = None
    is_favorite: bool = False
    domain: Optional[str] = None

    @field_validator("category", mode="before")
    @classmethod
    def coerce_category(cls, v):
        return Category.coerce(v)

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v):
        return unique_tags(v)


class LinkUpdate(BaseModel):
    """Partial update; unset fields are left untouched."""
    url: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[Category] = None
    tags: Optional[List[str]] = None
    collection_id: Optional[str] = None
    favicon: Optional[str] = None
    notes: Optional[str] = None
    is_favorite: Optional[bool] = None

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v):
        return None if v is None else unique_tags(v)


DateRange = Literal["all", "today", "last7days", "last30days"]


class LinkQuery(BaseModel):
    """In-memory filters applied to the cached link list."""
    search: Optional[str] = None
    category: Optional[Category] = None
    collection_id: Optional[str] = None
    favorites_only: bool = False
    date_range: DateRange = "all"
    sort: str = "-created_at"
    limit: Optional[int] = Field(default=None, ge=1)


# =============================================================================
# COLLECTIONS
# =============================================================================

class Collection(BaseRecord):
    """A user-defined group of links."""
    id: str
    name: str
    description: Optional[str] = None
    color: str = COLLECTION_COLORS[0]
    icon: Optional[str] = None
    is_private: bool = False
    created_at: Optional[datetime] = None

    @field_validator("color", mode="before")
    @classmethod
    def default_color(cls, v):
        return v or COLLECTION_COLORS[0]

    @field_validator("is_private", mode="before")
    @classmethod
    def null_to_false(cls, v):
        return False if v is None else v


class CollectionCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    description: Optional[str] = None
    color: str = COLLECTION_COLORS[0]
    icon: Optional[str] = "Folder"
    is_private: bool = False

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v

    @field_validator("icon")
    @classmethod
    def known_icon(cls, v):
        return v if v in COLLECTION_ICONS else "Folder"


class CollectionUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    description: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    is_private: Optional[bool] = None


class CollectionSummary(Collection):
    """Collection with the number of cached links that reference it."""
    link_count: int = 0


# =============================================================================
# PROFILE
# =============================================================================

class Preferences(BaseModel):
    theme: Literal["light", "dark", "system"] = "light"
    default_view: Literal["grid", "list"] = "grid"
    auto_analyze: bool = True
    email_notifications: bool = True

    model_config = {"extra": "ignore"}


class UserProfile(BaseRecord):
    """The signed-in user's profile row merged with auth metadata."""
    id: str
    email: str = ""
    full_name: str = "User"
    avatar_url: Optional[str] = None
    preferences: Preferences = Field(default_factory=Preferences)
    role: str = "user"

    @field_validator("preferences", mode="before")
    @classmethod
    def default_preferences(cls, v):
        return v or {}


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    preferences: Optional[Preferences] = None


class AuthUser(BaseRecord):
    """User object returned by the auth endpoint."""
    id: str
    email: str = ""
    role: Optional[str] = None
    user_metadata: dict = Field(default_factory=dict)
    created_at: Optional[datetime] = None
