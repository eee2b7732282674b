"""Profile, stats, export and data-wipe routes."""

from typing import Literal

from fastapi import APIRouter, Depends, Response

from linkverse.core.container import container
from linkverse.core.logging import get_logger
from linkverse.models.entities import ProfileUpdate
from linkverse.services.account import AccountService
from linkverse.services.export import ExportService

logger = get_logger(__name__)
router = APIRouter(prefix="/api", tags=["account"])

MEDIA_TYPES = {
    "json": "application/json",
    "csv": "text/csv",
}


def get_account_service() -> AccountService:
    return container.account_service()


def get_export_service() -> ExportService:
    return container.export_service()


@router.get("/profile")
async def get_profile(account: AccountService = Depends(get_account_service)):
    profile = await account.get_profile()
    return {"success": True, "profile": profile.model_dump(mode="json")}


@router.patch("/profile")
async def update_profile(
    request: ProfileUpdate,
    account: AccountService = Depends(get_account_service)
):
    profile = await account.update_profile(request)
    return {"success": True, "profile": profile.model_dump(mode="json")}


@router.get("/stats")
async def get_stats(account: AccountService = Depends(get_account_service)):
    return {"success": True, "stats": await account.stats()}


@router.get("/export")
async def export_data(
    format: Literal["json", "csv"] = "json",
    exporter: ExportService = Depends(get_export_service)
):
    """Download all links (and collections, for JSON) as an attachment."""
    if format == "csv":
        filename, content = await exporter.export_csv()
    else:
        filename, content = await exporter.export_json()
    return Response(
        content=content,
        media_type=MEDIA_TYPES[format],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.delete("/data")
async def delete_all_data(
    confirm: bool = False,
    exporter: ExportService = Depends(get_export_service)
):
    """Delete every link and collection; requires ``?confirm=true``.

    Partial failures are reported with counts, never as a blanket success.
    """
    report = await exporter.wipe_all_data(confirmed=confirm)
    return {"success": report.complete, "report": report.model_dump(mode="json")}
