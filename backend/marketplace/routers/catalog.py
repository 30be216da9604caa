"""Public catalog endpoints: categories and datasets."""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database import get_db
from marketplace.errors import DatasetNotFound
from marketplace.schemas.catalog import CategoryResponse, CategorySummary, DatasetResponse
from marketplace.services.catalog import DatasetCatalog

router = APIRouter()


def to_dataset_response(dataset, category) -> DatasetResponse:
    return DatasetResponse(
        uuid=dataset.uuid,
        title=dataset.title,
        slug=dataset.slug,
        description=dataset.description,
        price=dataset.price,
        record_count=dataset.record_count,
        data_format=dataset.data_format,
        update_frequency=dataset.update_frequency,
        category=CategorySummary.model_validate(category) if category else None,
        created_at=dataset.created_at,
        updated_at=dataset.updated_at,
    )


@router.get("/api/categories", response_model=list[CategoryResponse])
async def list_categories(db: AsyncSession = Depends(get_db)):
    """List all categories (public, no auth required)."""
    return await DatasetCatalog(db).list_categories()


@router.get("/api/datasets", response_model=list[DatasetResponse])
async def list_datasets(
    category: Optional[str] = Query(None, description="Category slug"),
    db: AsyncSession = Depends(get_db),
):
    """List datasets with their category, newest first."""
    rows = await DatasetCatalog(db).list_datasets(category_slug=category)
    return [to_dataset_response(dataset, cat) for dataset, cat in rows]


@router.get("/api/datasets/{dataset_id}", response_model=DatasetResponse)
async def get_dataset(dataset_id: str, db: AsyncSession = Depends(get_db)):
    row = await DatasetCatalog(db).dataset_with_category(dataset_id)
    if row is None:
        raise DatasetNotFound()
    return to_dataset_response(*row)
