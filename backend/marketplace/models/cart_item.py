"""Cart line items awaiting checkout."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from marketplace.database import Base


class CartItem(Base):
    __tablename__ = "cart_items"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid"), nullable=False)
    dataset_id: Mapped[str] = mapped_column(String(36), ForeignKey("datasets.uuid"), nullable=False)
    added_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "dataset_id", name="uq_cart_user_dataset"),
    )

    def __repr__(self) -> str:
        return f"<CartItem(user_id={self.user_id}, dataset_id={self.dataset_id})>"
