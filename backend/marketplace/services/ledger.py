"""Purchase ledger: records purchases and answers "does this user own this dataset?"."""
import logging
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func
from marketplace.errors import EmptyCart
from marketplace.models.cart_item import CartItem
from marketplace.models.dataset import Dataset
from marketplace.models.purchase import Purchase, PURCHASE_COMPLETED, PURCHASE_REFUNDED
from marketplace.services.keys import generate_key

logger = logging.getLogger(__name__)


class PurchaseLedger:
    """Persistent purchase records backed by an async SQLAlchemy session.

    ``create_purchase`` only flushes; the caller owns the transaction so a
    whole cart commits (or rolls back) together.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_purchase(
        self,
        user_id: str,
        dataset_id: str,
        amount: float,
        encryption_key: str,
    ) -> Purchase:
        purchase = Purchase(
            user_id=user_id,
            dataset_id=dataset_id,
            amount=amount,
            encryption_key=encryption_key,
            status=PURCHASE_COMPLETED,
        )
        self.db.add(purchase)
        await self.db.flush()
        return purchase

    async def get_purchase(self, user_id: str, dataset_id: str) -> Optional[Purchase]:
        """
        Return the user's completed purchase of a dataset, or None.

        The partial unique index allows at most one completed row per pair; the
        newest-first ordering keeps the answer deterministic regardless.
        """
        result = await self.db.execute(
            select(Purchase)
            .where(
                Purchase.user_id == user_id,
                Purchase.dataset_id == dataset_id,
                Purchase.status == PURCHASE_COMPLETED,
            )
            .order_by(Purchase.purchase_date.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_user_purchases(self, user_id: str) -> list[tuple[Purchase, Dataset]]:
        result = await self.db.execute(
            select(Purchase, Dataset)
            .join(Dataset, Purchase.dataset_id == Dataset.uuid)
            .where(Purchase.user_id == user_id)
            .order_by(Purchase.purchase_date.desc())
        )
        return [(purchase, dataset) for purchase, dataset in result.all()]

    async def list_all_purchases(self) -> list[Purchase]:
        result = await self.db.execute(select(Purchase).order_by(Purchase.purchase_date.desc()))
        return list(result.scalars().all())

    async def count_for_dataset(self, dataset_id: str) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(Purchase).where(Purchase.dataset_id == dataset_id)
        )
        return result.scalar_one()

    async def checkout(self, user_id: str) -> list[tuple[Purchase, Dataset]]:
        """
        Convert every cart line into a completed purchase with a fresh key.

        - Datasets the user already owns are skipped (not charged twice)
        - The cart is cleared
        - Everything commits in one transaction; any failure rolls it all back
        """
        result = await self.db.execute(
            select(CartItem, Dataset)
            .join(Dataset, CartItem.dataset_id == Dataset.uuid)
            .where(CartItem.user_id == user_id)
            .order_by(CartItem.added_at)
        )
        lines = result.all()

        if not lines:
            raise EmptyCart()

        completed: list[tuple[Purchase, Dataset]] = []
        try:
            for _, dataset in lines:
                if await self.get_purchase(user_id, dataset.uuid) is not None:
                    logger.info(f"User {user_id} already owns dataset {dataset.uuid}, skipping")
                    continue
                purchase = await self.create_purchase(
                    user_id,
                    dataset.uuid,
                    dataset.price,
                    generate_key(),
                )
                completed.append((purchase, dataset))

            await self.db.execute(delete(CartItem).where(CartItem.user_id == user_id))
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            logger.error(f"Checkout failed for user {user_id}; rolled back")
            raise

        logger.info(f"Checkout completed for user {user_id}: {len(completed)} purchase(s)")
        return completed

    async def refund(self, purchase_id: str) -> Optional[Purchase]:
        """Mark a purchase refunded, which revokes download access."""
        result = await self.db.execute(select(Purchase).where(Purchase.uuid == purchase_id))
        purchase = result.scalar_one_or_none()
        if purchase is None:
            return None
        purchase.status = PURCHASE_REFUNDED
        await self.db.commit()
        await self.db.refresh(purchase)
        logger.info(f"Purchase {purchase_id} refunded")
        return purchase
