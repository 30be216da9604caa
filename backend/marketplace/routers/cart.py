"""Cart endpoints (authenticated)."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete

from marketplace.database import get_db
from marketplace.errors import Conflict, DatasetNotFound
from marketplace.models.user import User
from marketplace.models.cart_item import CartItem
from marketplace.models.dataset import Dataset
from marketplace.schemas.cart import CartAddRequest, CartItemResponse, CartResponse
from marketplace.services.catalog import DatasetCatalog
from marketplace.services.ledger import PurchaseLedger
from marketplace.auth.dependencies import get_current_active_user

router = APIRouter()


async def _load_cart(db: AsyncSession, user_id: str) -> CartResponse:
    result = await db.execute(
        select(CartItem, Dataset)
        .join(Dataset, CartItem.dataset_id == Dataset.uuid)
        .where(CartItem.user_id == user_id)
        .order_by(CartItem.added_at)
    )
    items = [
        CartItemResponse(
            uuid=item.uuid,
            dataset_id=dataset.uuid,
            title=dataset.title,
            slug=dataset.slug,
            price=dataset.price,
            added_at=item.added_at,
        )
        for item, dataset in result.all()
    ]
    return CartResponse(items=items, total=round(sum(i.price for i in items), 2))


@router.get("/api/cart", response_model=CartResponse)
async def get_cart(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    return await _load_cart(db, current_user.uuid)


@router.post("/api/cart", response_model=CartResponse, status_code=status.HTTP_201_CREATED)
async def add_to_cart(
    request: CartAddRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Add a dataset to the cart.

    - 404 if the dataset does not exist
    - 409 if the user already owns it
    - Adding an item already in the cart is a no-op
    """
    dataset = await DatasetCatalog(db).dataset_by_id(request.dataset_id)
    if dataset is None:
        raise DatasetNotFound()

    if await PurchaseLedger(db).get_purchase(current_user.uuid, dataset.uuid) is not None:
        raise Conflict("You already own this dataset")

    result = await db.execute(
        select(CartItem).where(CartItem.user_id == current_user.uuid, CartItem.dataset_id == dataset.uuid)
    )
    if result.scalar_one_or_none() is None:
        db.add(CartItem(user_id=current_user.uuid, dataset_id=dataset.uuid))
        await db.commit()

    return await _load_cart(db, current_user.uuid)


@router.delete("/api/cart/{dataset_id}", response_model=CartResponse)
async def remove_from_cart(
    dataset_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    await db.execute(
        delete(CartItem).where(CartItem.user_id == current_user.uuid, CartItem.dataset_id == dataset_id)
    )
    await db.commit()
    return await _load_cart(db, current_user.uuid)
