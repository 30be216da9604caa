"""Purchase-to-encrypted-delivery pipeline.

authorize → resolve source file → package into a fresh temp archive → hand the
archive to the streamer. Storage and packaging are injected so the pipeline can
run against in-memory fakes.
"""
import logging
import os
from pathlib import Path
from typing import Optional, Union

from marketplace.errors import AccessDenied, DatasetNotFound, NotAuthenticated, SourceMissing
from marketplace.models.dataset import Dataset
from marketplace.models.purchase import Purchase
from marketplace.models.user import User
from marketplace.services.catalog import DatasetCatalog
from marketplace.services.ledger import PurchaseLedger
from marketplace.services.packager import Packager
from marketplace.services.streamer import EphemeralArchive

logger = logging.getLogger(__name__)


class AccessGuard:
    """Fails closed: no user or no completed purchase means no download."""

    def __init__(self, ledger: PurchaseLedger):
        self.ledger = ledger

    async def authorize_download(self, user: Optional[User], dataset_id: str) -> Purchase:
        if user is None:
            raise NotAuthenticated()

        purchase = await self.ledger.get_purchase(user.uuid, dataset_id)
        if purchase is None:
            logger.info(f"Download denied: user {user.uuid} has no completed purchase of dataset {dataset_id}")
            raise AccessDenied()

        return purchase


class DownloadPipeline:
    """Builds the encrypted archive for one authorized download request."""

    def __init__(
        self,
        ledger: PurchaseLedger,
        catalog: DatasetCatalog,
        packager: Packager,
        temp_dir: Union[str, os.PathLike],
        storage_root: Union[str, os.PathLike],
    ):
        self.guard = AccessGuard(ledger)
        self.catalog = catalog
        self.packager = packager
        self.temp_dir = Path(temp_dir)
        self.storage_root = Path(storage_root)

    def resolve_source(self, dataset: Dataset) -> Path:
        """
        Map ``dataset.file_path`` onto the storage root.

        Paths that escape the root or point at nothing are reported as a
        missing source, never as a client error.
        """
        if not dataset.file_path:
            raise SourceMissing(diagnostics=f"Dataset {dataset.uuid} has no file_path")

        root = self.storage_root.resolve()
        candidate = (root / dataset.file_path.lstrip("/\\")).resolve()

        if root != candidate and root not in candidate.parents:
            raise SourceMissing(diagnostics=f"Dataset {dataset.uuid} file_path escapes the storage root")

        if not candidate.is_file():
            raise SourceMissing(diagnostics=f"Source file for dataset {dataset.uuid} not found: {candidate}")

        return candidate

    async def prepare_download(self, user: Optional[User], dataset_id: str) -> EphemeralArchive:
        """
        Authorize ``user`` and package a fresh archive for ``dataset_id``.

        The returned archive is owned by the caller, which must stream and
        discard it. On any failure here the temp path is already removed.
        """
        purchase = await self.guard.authorize_download(user, dataset_id)

        dataset = await self.catalog.dataset_by_id(dataset_id)
        if dataset is None:
            raise DatasetNotFound()

        source = self.resolve_source(dataset)
        archive = EphemeralArchive.allocate(self.temp_dir, dataset.slug)

        try:
            await self.packager.package_encrypted(source, purchase.encryption_key, archive.path)
        except BaseException:
            archive.discard()
            raise

        logger.info(f"Prepared archive {archive.filename} for user {user.uuid}, purchase {purchase.uuid}")
        return archive
