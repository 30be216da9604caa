"""Schemas for catalog (category and dataset) endpoints."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class CategoryResponse(BaseModel):
    uuid: str
    name: str
    slug: str
    description: Optional[str] = None

    class Config:
        from_attributes = True


class CategorySummary(BaseModel):
    uuid: str
    name: str
    slug: str

    class Config:
        from_attributes = True


class DatasetResponse(BaseModel):
    """Public dataset listing; the storage path is never exposed here."""

    uuid: str
    title: str
    slug: str
    description: str
    price: float
    record_count: Optional[int] = None
    data_format: Optional[str] = None
    update_frequency: Optional[str] = None
    category: Optional[CategorySummary] = None
    created_at: datetime
    updated_at: datetime


class DatasetCreate(BaseModel):
    """Admin payload for adding a dataset; slug is derived from the title when omitted."""

    title: str = Field(..., min_length=1, max_length=255)
    slug: Optional[str] = Field(None, max_length=255, pattern="^[a-z0-9]+(?:-[a-z0-9]+)*$")
    description: str = Field(..., min_length=1)
    price: float = Field(..., gt=0)
    record_count: Optional[int] = Field(None, ge=0)
    data_format: Optional[str] = Field(None, max_length=100)
    update_frequency: Optional[str] = Field(None, max_length=100)
    file_path: Optional[str] = Field(None, max_length=1024)
    category_id: Optional[str] = None


class AdminDatasetResponse(DatasetResponse):
    file_path: Optional[str] = None


class DatasetUpdate(BaseModel):
    """Partial update; only the fields sent are changed."""

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    slug: Optional[str] = Field(None, max_length=255, pattern="^[a-z0-9]+(?:-[a-z0-9]+)*$")
    description: Optional[str] = Field(None, min_length=1)
    price: Optional[float] = Field(None, gt=0)
    record_count: Optional[int] = Field(None, ge=0)
    data_format: Optional[str] = Field(None, max_length=100)
    update_frequency: Optional[str] = Field(None, max_length=100)
    file_path: Optional[str] = Field(None, max_length=1024)
    category_id: Optional[str] = None
