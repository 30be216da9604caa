"""Read access to the dataset catalog."""
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from marketplace.models.category import Category
from marketplace.models.dataset import Dataset


class DatasetCatalog:
    """Catalog queries used by the storefront endpoints and the download pipeline."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def dataset_by_id(self, dataset_id: str) -> Optional[Dataset]:
        result = await self.db.execute(select(Dataset).where(Dataset.uuid == dataset_id))
        return result.scalar_one_or_none()

    async def dataset_with_category(self, dataset_id: str) -> Optional[tuple[Dataset, Optional[Category]]]:
        result = await self.db.execute(
            select(Dataset, Category)
            .outerjoin(Category, Dataset.category_id == Category.uuid)
            .where(Dataset.uuid == dataset_id)
        )
        row = result.first()
        return (row[0], row[1]) if row else None

    async def list_datasets(self, category_slug: Optional[str] = None) -> list[tuple[Dataset, Optional[Category]]]:
        query = (
            select(Dataset, Category)
            .outerjoin(Category, Dataset.category_id == Category.uuid)
            .order_by(Dataset.created_at.desc())
        )
        if category_slug:
            query = query.where(Category.slug == category_slug)
        result = await self.db.execute(query)
        return [(dataset, category) for dataset, category in result.all()]

    async def list_categories(self) -> list[Category]:
        result = await self.db.execute(select(Category).order_by(Category.name))
        return list(result.scalars().all())
