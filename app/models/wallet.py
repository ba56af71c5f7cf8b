import uuid
from decimal import Decimal

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, String, Uuid, func
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.models.types import Money


class Wallet(Base):
    __tablename__ = "wallets"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_wallets_balance_nonneg"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    balance = Column(Money, nullable=False, default=Decimal("0"))
    account_number = Column(String(20), nullable=True, unique=True)
    account_name = Column(String(255), nullable=True)
    bank_name = Column(String(255), nullable=True)
    account_reference = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    user = relationship("User", back_populates="wallet")

    @property
    def has_virtual_account(self) -> bool:
        return bool(self.account_number)
