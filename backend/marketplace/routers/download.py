"""Encrypted dataset download endpoint."""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.config import settings
from marketplace.database import get_db
from marketplace.models.user import User
from marketplace.auth.dependencies import get_current_active_user
from marketplace.rate_limit import limiter
from marketplace.services.catalog import DatasetCatalog
from marketplace.services.download import DownloadPipeline
from marketplace.services.ledger import PurchaseLedger
from marketplace.services.packager import Packager, SevenZipPackager
from marketplace.services.streamer import stream_and_cleanup

router = APIRouter()


def get_packager() -> Packager:
    return SevenZipPackager(
        binary=settings.SEVEN_ZIP_BINARY,
        timeout=settings.PACKAGING_TIMEOUT_SECONDS,
    )


async def get_download_pipeline(
    db: AsyncSession = Depends(get_db),
    packager: Packager = Depends(get_packager),
) -> DownloadPipeline:
    return DownloadPipeline(
        ledger=PurchaseLedger(db),
        catalog=DatasetCatalog(db),
        packager=packager,
        temp_dir=settings.ARCHIVE_TEMP_DIR,
        storage_root=settings.DATASET_STORAGE_ROOT,
    )


@router.get("/api/download/{dataset_id}")
@limiter.limit(settings.DOWNLOAD_RATE_LIMIT)
async def download_dataset(
    request: Request,
    dataset_id: str,
    current_user: User = Depends(get_current_active_user),
    pipeline: DownloadPipeline = Depends(get_download_pipeline),
):
    """
    Download a purchased dataset as an AES-256 encrypted ZIP.

    - Requires a completed purchase (403 otherwise)
    - Archive password is the purchase's encryption key
    - The archive is rebuilt for every request and deleted once streamed
    """
    archive = await pipeline.prepare_download(current_user, dataset_id)
    return stream_and_cleanup(archive, chunk_size=settings.DOWNLOAD_CHUNK_SIZE)
