"""Admin endpoints for datasets and purchases."""
import re
from typing import Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete

from marketplace.database import get_db
from marketplace.errors import Conflict, DatasetNotFound, PurchaseNotFound
from marketplace.models.cart_item import CartItem
from marketplace.models.category import Category
from marketplace.models.dataset import Dataset
from marketplace.models.user import User
from marketplace.schemas.catalog import AdminDatasetResponse, CategorySummary, DatasetCreate, DatasetUpdate
from marketplace.schemas.purchases import AdminPurchaseResponse
from marketplace.services.catalog import DatasetCatalog
from marketplace.services.ledger import PurchaseLedger
from marketplace.auth.dependencies import admin_required

router = APIRouter()

# Explicit nulls for these are ignored on update
_REQUIRED_FIELDS = ("title", "slug", "description", "price")


def slugify(title: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")


@router.get("/purchases", response_model=list[AdminPurchaseResponse])
async def list_all_purchases(
    admin_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db),
):
    """All purchases, newest first. Keys are not included."""
    return await PurchaseLedger(db).list_all_purchases()


@router.post("/purchases/{purchase_id}/refund", response_model=AdminPurchaseResponse)
async def refund_purchase(
    purchase_id: str,
    admin_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db),
):
    """Refund a purchase; the buyer loses download access immediately."""
    purchase = await PurchaseLedger(db).refund(purchase_id)
    if purchase is None:
        raise PurchaseNotFound()
    return purchase


async def _ensure_slug_free(db: AsyncSession, slug: str, dataset_id: Optional[str] = None) -> None:
    query = select(Dataset).where(Dataset.slug == slug)
    if dataset_id:
        query = query.where(Dataset.uuid != dataset_id)
    existing = await db.execute(query)
    if existing.scalar_one_or_none():
        raise Conflict(f"A dataset with slug '{slug}' already exists")


async def _load_category(db: AsyncSession, category_id: Optional[str]) -> Optional[Category]:
    if not category_id:
        return None
    result = await db.execute(select(Category).where(Category.uuid == category_id))
    category = result.scalar_one_or_none()
    if category is None:
        raise Conflict("Category does not exist")
    return category


def _admin_dataset_response(dataset: Dataset, category: Optional[Category]) -> AdminDatasetResponse:
    return AdminDatasetResponse(
        uuid=dataset.uuid,
        title=dataset.title,
        slug=dataset.slug,
        description=dataset.description,
        price=dataset.price,
        record_count=dataset.record_count,
        data_format=dataset.data_format,
        update_frequency=dataset.update_frequency,
        category=CategorySummary.model_validate(category) if category else None,
        file_path=dataset.file_path,
        created_at=dataset.created_at,
        updated_at=dataset.updated_at,
    )


@router.get("/datasets", response_model=list[AdminDatasetResponse])
async def list_datasets(
    admin_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db),
):
    """All datasets including their storage paths, newest first."""
    rows = await DatasetCatalog(db).list_datasets()
    return [_admin_dataset_response(dataset, category) for dataset, category in rows]


@router.post("/datasets", response_model=AdminDatasetResponse, status_code=status.HTTP_201_CREATED)
async def create_dataset(
    dataset_data: DatasetCreate,
    admin_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db),
):
    slug = dataset_data.slug or slugify(dataset_data.title)
    await _ensure_slug_free(db, slug)
    category = await _load_category(db, dataset_data.category_id)

    dataset = Dataset(**dataset_data.model_dump(exclude={"slug"}), slug=slug)
    db.add(dataset)
    await db.commit()
    await db.refresh(dataset)

    return _admin_dataset_response(dataset, category)


@router.put("/datasets/{dataset_id}", response_model=AdminDatasetResponse)
async def update_dataset(
    dataset_id: str,
    dataset_data: DatasetUpdate,
    admin_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db),
):
    """
    Update catalog fields of a dataset.

    Existing purchases keep their amount and key; a new ``file_path`` applies
    to every later download.
    """
    dataset = await DatasetCatalog(db).dataset_by_id(dataset_id)
    if dataset is None:
        raise DatasetNotFound()

    changes = {
        field: value
        for field, value in dataset_data.model_dump(exclude_unset=True).items()
        if value is not None or field not in _REQUIRED_FIELDS
    }
    if changes.get("slug"):
        await _ensure_slug_free(db, changes["slug"], dataset_id)
    if "category_id" in changes:
        await _load_category(db, changes["category_id"])

    for field, value in changes.items():
        setattr(dataset, field, value)

    await db.commit()
    await db.refresh(dataset)

    category = await _load_category(db, dataset.category_id)
    return _admin_dataset_response(dataset, category)


@router.delete("/datasets/{dataset_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_dataset(
    dataset_id: str,
    admin_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db),
):
    """Delete a dataset. Refused once anyone has purchased it (purchase history must survive)."""
    dataset = await DatasetCatalog(db).dataset_by_id(dataset_id)
    if dataset is None:
        raise DatasetNotFound()

    purchase_count = await PurchaseLedger(db).count_for_dataset(dataset_id)
    if purchase_count > 0:
        raise Conflict(
            "Cannot delete dataset that has been purchased. This would break user purchase history.",
            detail={"purchase_count": purchase_count},
        )

    await db.execute(delete(CartItem).where(CartItem.dataset_id == dataset_id))
    await db.delete(dataset)
    await db.commit()
