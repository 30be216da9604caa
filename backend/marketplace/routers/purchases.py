"""Checkout and purchase history endpoints."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database import get_db
from marketplace.errors import DatasetNotFound, PurchaseNotFound
from marketplace.models.user import User
from marketplace.schemas.purchases import (
    CheckoutResponse, PurchasedItem, PurchaseSummary, PurchaseDetail, PurchaseWithDataset
)
from marketplace.services.catalog import DatasetCatalog
from marketplace.services.ledger import PurchaseLedger
from marketplace.auth.dependencies import get_current_active_user

router = APIRouter()


@router.post("/api/purchase", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
async def checkout(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Check out the current cart.

    Payment is simulated as successful. Each cart line becomes a completed
    purchase with its own freshly generated archive key, all in one transaction.
    """
    completed = await PurchaseLedger(db).checkout(current_user.uuid)

    return CheckoutResponse(
        message="Purchase completed successfully",
        purchases=[
            PurchasedItem(
                purchase_id=purchase.uuid,
                dataset_id=dataset.uuid,
                title=dataset.title,
                price=purchase.amount,
                encryption_key=purchase.encryption_key,
            )
            for purchase, dataset in completed
        ],
    )


@router.get("/api/purchases", response_model=list[PurchaseSummary])
async def list_purchases(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Purchase history without archive keys."""
    rows = await PurchaseLedger(db).list_user_purchases(current_user.uuid)
    return [
        PurchaseSummary(
            uuid=purchase.uuid,
            dataset_id=dataset.uuid,
            title=dataset.title,
            amount=purchase.amount,
            status=purchase.status,
            purchase_date=purchase.purchase_date,
        )
        for purchase, dataset in rows
    ]


@router.get("/api/purchases/{dataset_id}", response_model=PurchaseWithDataset)
async def get_purchase(
    dataset_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Return the caller's completed purchase of a dataset, including the archive key."""
    purchase = await PurchaseLedger(db).get_purchase(current_user.uuid, dataset_id)
    if purchase is None:
        raise PurchaseNotFound()

    dataset = await DatasetCatalog(db).dataset_by_id(dataset_id)
    if dataset is None:
        raise DatasetNotFound()

    return PurchaseWithDataset(
        purchase=PurchaseDetail.model_validate(purchase),
        dataset_title=dataset.title,
        dataset_slug=dataset.slug,
    )
