import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, String, Uuid, func
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.models.types import JSONDocument, Money


class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
        CheckConstraint("type IN ('DEPOSIT', 'REPAYMENT')", name="ck_transactions_type"),
        CheckConstraint(
            "status IN ('PENDING', 'SUCCESS', 'FAILED')",
            name="ck_transactions_status",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(20), nullable=False)
    amount = Column(Money, nullable=False)
    reference = Column(String(100), nullable=False, unique=True)
    status = Column(String(20), nullable=False, default="PENDING", index=True)
    provider_payload = Column(JSONDocument, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    user = relationship("User", back_populates="transactions")
