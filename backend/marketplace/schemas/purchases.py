"""Schemas for checkout and purchase endpoints."""
from datetime import datetime
from pydantic import BaseModel


class PurchasedItem(BaseModel):
    """One line of a completed checkout, including the archive key."""

    purchase_id: str
    dataset_id: str
    title: str
    price: float
    encryption_key: str


class CheckoutResponse(BaseModel):
    success: bool = True
    message: str
    purchases: list[PurchasedItem]


class PurchaseSummary(BaseModel):
    """Purchase history entry (the key is deliberately omitted)."""

    uuid: str
    dataset_id: str
    title: str
    amount: float
    status: str
    purchase_date: datetime


class PurchaseDetail(BaseModel):
    """Full purchase record for its owner, including the archive key."""

    uuid: str
    user_id: str
    dataset_id: str
    amount: float
    encryption_key: str
    status: str
    purchase_date: datetime

    class Config:
        from_attributes = True


class PurchaseWithDataset(BaseModel):
    purchase: PurchaseDetail
    dataset_title: str
    dataset_slug: str


class AdminPurchaseResponse(BaseModel):
    uuid: str
    user_id: str
    dataset_id: str
    amount: float
    status: str
    purchase_date: datetime

    class Config:
        from_attributes = True
