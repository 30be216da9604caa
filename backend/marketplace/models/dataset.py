"""Dataset model: a catalog entry backed by a canonical file in dataset storage."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, Text, Integer, Float, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column
from marketplace.database import Base


class Dataset(Base):
    """Dataset listed in the catalog."""

    __tablename__ = "datasets"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False)

    record_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    data_format: Mapped[str | None] = mapped_column(String(100), nullable=True)  # "CSV, JSON"
    update_frequency: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Relative to settings.DATASET_STORAGE_ROOT
    file_path: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    category_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("categories.uuid"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_dataset_category_id", "category_id"),
    )

    def __repr__(self) -> str:
        return f"<Dataset(uuid={self.uuid}, slug={self.slug})>"
