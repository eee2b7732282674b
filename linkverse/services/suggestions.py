"""Static categorization helpers: collection suggestion and domain fallback."""

from typing import Iterable, Optional

from linkverse.constants import CATEGORY_COLLECTION_KEYWORDS, DOMAIN_CATEGORY_MAP
from linkverse.models.entities import Category, Collection
from linkverse.services.urls import extract_domain


def suggest_collection(category: Optional[Category],
                       collections: Iterable[Collection],
                       selected: Optional[str] = None) -> Optional[Collection]:
    """Pick a collection whose name matches the category's keywords.

    Returns None when the user already selected a collection, when there is
    no category, or when no collection name matches.
    """
    if selected or not category:
        return None

    tag = Category.coerce(category).value
    keywords = CATEGORY_COLLECTION_KEYWORDS.get(tag, ())

    for collection in collections:
        name = collection.name.lower()
        if tag in name or any(keyword in name for keyword in keywords):
            return collection
    return None


def categorize_url(url: str) -> Category:
    """Guess a category from well-known domains."""
    domain = extract_domain(url).lower()
    if not domain:
        return Category.OTHER
    for known, category in DOMAIN_CATEGORY_MAP.items():
        if domain == known or domain.endswith("." + known):
            return Category(category)
    return Category.OTHER
