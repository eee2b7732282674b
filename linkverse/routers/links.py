"""Link routes: list/search, create, analyze and draft, edit, favorite, delete."""

import asyncio
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from linkverse.constants import CATEGORY_LABELS, CATEGORY_TAGS
from linkverse.core.container import container
from linkverse.core.logging import get_logger
from linkverse.models.entities import Category, EntityKind, LinkCreate, LinkQuery, LinkUpdate
from linkverse.services.add_link import AddLinkForm
from linkverse.services.links import LinkService
from linkverse.services.urls import require_valid_url

logger = get_logger(__name__)
router = APIRouter(prefix="/api/links", tags=["links"])


class AnalyzeRequest(BaseModel):
    url: str
    collection_id: Optional[str] = None


class DraftEdits(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[Category] = None
    tags: Optional[List[str]] = None
    collection_id: Optional[str] = None
    notes: Optional[str] = None
    is_favorite: Optional[bool] = None


def get_link_service() -> LinkService:
    return container.link_service()


def get_add_link_form() -> AddLinkForm:
    return container.add_link_form()


def _draft_payload(form: AddLinkForm) -> dict:
    suggestion = form.suggested_collection
    return {
        "draft": form.draft.model_dump(mode="json"),
        "metadata": form.preview.model_dump(mode="json") if form.preview else None,
        "suggested_collection": suggestion.model_dump(mode="json") if suggestion else None,
        "error": form.analysis_error,
    }


@router.get("")
async def list_links(
    q: Optional[str] = None,
    category: Optional[Category] = None,
    collection_id: Optional[str] = None,
    favorites: bool = False,
    date_range: str = Query(default="all", pattern="^(all|today|last7days|last30days)$"),
    sort: str = "-created_at",
    limit: Optional[int] = Query(default=None, ge=1, le=1000),
    links: LinkService = Depends(get_link_service)
):
    """Links from the shared cache, filtered in memory."""
    query = LinkQuery(
        search=q, category=category, collection_id=collection_id,
        favorites_only=favorites, date_range=date_range, sort=sort, limit=limit,
    )
    results = await links.list_links(query)
    entry = links.cache.peek(EntityKind.LINKS)
    return {
        "success": True,
        "links": [link.model_dump(mode="json") for link in results],
        "loaded": entry.populated,
        "stale": entry.stale,
    }


@router.post("")
async def create_link(
    request: LinkCreate,
    links: LinkService = Depends(get_link_service)
):
    link = await links.create_link(request)
    return {"success": True, "link": link.model_dump(mode="json")}


@router.post("/analyze")
async def analyze_link(
    request: AnalyzeRequest,
    form: AddLinkForm = Depends(get_add_link_form)
):
    """Analyze a URL into the Add-Link draft and suggest a collection.

    A newer request for the draft supersedes this one while it is still
    debouncing or waiting on the model; the superseded request answers with
    ``superseded: true`` and leaves the draft alone. Enrichment failures are
    reported in ``error`` with a domain-based category fallback.
    """
    require_valid_url(request.url)
    await form.load()
    if request.collection_id:
        form.select_collection(request.collection_id)

    task = form.set_url(request.url)
    token = form.analyzer.token
    if task is not None:
        # wait() rather than await: a superseded task may be cancelled
        await asyncio.wait({task})

    superseded = not form.analyzer.is_current(token)
    if superseded:
        logger.debug("Analyze request superseded", url=request.url)
    return {"success": True, "superseded": superseded, **_draft_payload(form)}


@router.get("/draft")
async def get_draft(form: AddLinkForm = Depends(get_add_link_form)):
    return {"success": True, **_draft_payload(form)}


@router.post("/draft/submit")
async def submit_draft(
    request: DraftEdits,
    form: AddLinkForm = Depends(get_add_link_form)
):
    """Apply final edits to the draft and save it as a link."""
    edits = request.model_dump(exclude_unset=True)
    if "category" in edits:
        form.set_category(edits.pop("category"))
    if "collection_id" in edits:
        form.select_collection(edits.pop("collection_id"))
    form.update(**edits)
    link = await form.submit()
    return {"success": True, "link": link.model_dump(mode="json")}


@router.delete("/draft")
async def discard_draft(form: AddLinkForm = Depends(get_add_link_form)):
    form.reset()
    return {"success": True}


@router.get("/categories")
async def list_categories():
    """Category taxonomy with display labels."""
    return {
        "success": True,
        "categories": [{"value": tag, "label": CATEGORY_LABELS[tag]} for tag in CATEGORY_TAGS],
    }


@router.get("/{link_id}")
async def get_link(link_id: str, links: LinkService = Depends(get_link_service)):
    link = await links.get_link(link_id)
    return {"success": True, "link": link.model_dump(mode="json")}


@router.patch("/{link_id}")
async def update_link(
    link_id: str,
    request: LinkUpdate,
    links: LinkService = Depends(get_link_service)
):
    link = await links.update_link(link_id, request)
    return {"success": True, "link": link.model_dump(mode="json")}


@router.post("/{link_id}/favorite")
async def toggle_favorite(link_id: str, links: LinkService = Depends(get_link_service)):
    link = await links.toggle_favorite(link_id)
    return {"success": True, "link": link.model_dump(mode="json")}


@router.post("/{link_id}/visit")
async def mark_visited(link_id: str, links: LinkService = Depends(get_link_service)):
    link = await links.mark_accessed(link_id)
    return {"success": True, "link": link.model_dump(mode="json")}


@router.delete("/{link_id}")
async def delete_link(link_id: str, links: LinkService = Depends(get_link_service)):
    await links.delete_link(link_id)
    return {"success": True, "link_id": link_id}
