"""Collection routes."""

from fastapi import APIRouter, Depends

from linkverse.core.container import container
from linkverse.models.entities import CollectionCreate, CollectionUpdate
from linkverse.services.links import LinkService

router = APIRouter(prefix="/api/collections", tags=["collections"])


def get_link_service() -> LinkService:
    return container.link_service()


@router.get("")
async def list_collections(links: LinkService = Depends(get_link_service)):
    """Collections with link counts, from the shared cache."""
    collections = await links.list_collections()
    return {
        "success": True,
        "collections": [c.model_dump(mode="json") for c in collections],
    }


@router.post("")
async def create_collection(
    request: CollectionCreate,
    links: LinkService = Depends(get_link_service)
):
    collection = await links.create_collection(request)
    return {"success": True, "collection": collection.model_dump(mode="json")}


@router.patch("/{collection_id}")
async def update_collection(
    collection_id: str,
    request: CollectionUpdate,
    links: LinkService = Depends(get_link_service)
):
    collection = await links.update_collection(collection_id, request)
    return {"success": True, "collection": collection.model_dump(mode="json")}


@router.delete("/{collection_id}")
async def delete_collection(
    collection_id: str,
    confirm: bool = False,
    links: LinkService = Depends(get_link_service)
):
    """Delete a collection; requires ``?confirm=true``."""
    await links.delete_collection(collection_id, confirmed=confirm)
    return {"success": True, "collection_id": collection_id}
