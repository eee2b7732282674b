from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable

from linkverse.models.entities import Collection, Link, LinkQuery

_DATE_WINDOWS = {
    "last7days": timedelta(days=7),
    "last30days": timedelta(days=30),
}

SORT_KEYS = {"created_at", "last_accessed", "title", "domain", "category"}


def _matches_text(link: Link, needle: str) -> bool:
    return (
        needle in link.title.lower()
        or needle in link.url.lower()
        or needle in (link.description or "").lower()
        or any(needle in tag.lower() for tag in link.tags)
    )


def _in_date_range(link: Link, date_range: str, now: datetime) -> bool:
    if date_range == "all":
        return True
    if link.created_at is None:
        return False
    created = link.created_at
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    if date_range == "today":
        return created.astimezone(now.tzinfo).date() == now.date()
    return created >= now - _DATE_WINDOWS[date_range]


def _sort_value(link: Link, key: str):
    value = getattr(link, key)
    if key == "category":
        return value.value
    if isinstance(value, str):
        return value.lower()
    if value is None:
        return datetime.min.replace(tzinfo=timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def filter_links(links: Iterable[Link], query: LinkQuery,
                 now: datetime | None = None) -> list[Link]:
    """Apply search text, filters, sort and limit to a link list."""
    now = now or datetime.now(timezone.utc)
    result = list(links)

    needle = (query.search or "").strip().lower()
    if needle:
        result = [link for link in result if _matches_text(link, needle)]
    if query.category:
        result = [link for link in result if link.category == query.category]
    if query.collection_id:
        result = [link for link in result if link.collection_id == query.collection_id]
    if query.favorites_only:
        result = [link for link in result if link.is_favorite]
    if query.date_range != "all":
        result = [link for link in result if _in_date_range(link, query.date_range, now)]

    descending = not query.sort.startswith("+")
    key = query.sort.lstrip("+-")
    if key not in SORT_KEYS:
        key = "created_at"
    result.sort(key=lambda link: _sort_value(link, key), reverse=descending)

    if query.limit:
        result = result[:query.limit]
    return result


def compute_stats(links: list[Link], collections: list[Collection],
                  now: datetime | None = None) -> dict:
    """Counters shown on the profile page and embedded in JSON exports."""
    now = now or datetime.now(timezone.utc)
    this_month = 0
    for link in links:
        if link.created_at and link.created_at.year == now.year and link.created_at.month == now.month:
            this_month += 1

    categories_used = []
    for link in links:
        if link.category.value not in categories_used:
            categories_used.append(link.category.value)

    return {
        "totalLinks": len(links),
        "totalCollections": len(collections),
        "totalFavorites": sum(1 for link in links if link.is_favorite),
        "linksThisMonth": this_month,
        "categoriesUsed": categories_used,
    }
