"""Purchase model: the ledger entry that grants access to a dataset."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, Float, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import Mapped, mapped_column
from marketplace.database import Base

PURCHASE_PENDING = "pending"
PURCHASE_COMPLETED = "completed"
PURCHASE_REFUNDED = "refunded"


class Purchase(Base):
    """A completed transaction for one dataset.

    ``encryption_key`` is minted once at checkout and never regenerated; it is
    the password of every archive delivered for this purchase. Only a
    ``completed`` purchase grants access.
    """

    __tablename__ = "purchases"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))

    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid"), nullable=False)
    dataset_id: Mapped[str] = mapped_column(String(36), ForeignKey("datasets.uuid"), nullable=False)

    amount: Mapped[float] = mapped_column(Float, nullable=False)
    encryption_key: Mapped[str] = mapped_column(String(128), nullable=False)
    status: Mapped[str] = mapped_column(String(50), default=PURCHASE_COMPLETED, nullable=False)  # "pending", "completed", "refunded"

    purchase_date: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_purchase_user_id", "user_id"),
        Index("idx_purchase_dataset_id", "dataset_id"),
        # At most one completed purchase per (user, dataset)
        Index(
            "uq_purchase_completed_user_dataset",
            "user_id",
            "dataset_id",
            unique=True,
            postgresql_where=text("status = 'completed'"),
            sqlite_where=text("status = 'completed'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Purchase(uuid={self.uuid}, user_id={self.user_id}, dataset_id={self.dataset_id}, status={self.status})>"
