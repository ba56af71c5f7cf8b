import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, String, Uuid, func
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.models.types import Money


class Repayment(Base):
    __tablename__ = "repayments"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_repayments_amount_positive"),
        CheckConstraint(
            "status IN ('PENDING', 'COMPLETED', 'FAILED')",
            name="ck_repayments_status",
        ),
        Index("ix_repayments_loan_status", "loan_id", "status"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    loan_id = Column(Uuid, ForeignKey("loans.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Money, nullable=False)
    transaction_ref = Column(String(100), nullable=False, unique=True)
    status = Column(String(20), nullable=False, default="PENDING")
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    loan = relationship("Loan", back_populates="repayments")
