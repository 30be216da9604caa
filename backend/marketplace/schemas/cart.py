"""Schemas for cart endpoints."""
from datetime import datetime
from pydantic import BaseModel, Field


class CartAddRequest(BaseModel):
    dataset_id: str = Field(..., min_length=1)


class CartItemResponse(BaseModel):
    uuid: str
    dataset_id: str
    title: str
    slug: str
    price: float
    added_at: datetime


class CartResponse(BaseModel):
    items: list[CartItemResponse]
    total: float
