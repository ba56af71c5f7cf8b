import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Numeric, String, Uuid, func
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.models.types import Money


class Loan(Base):
    __tablename__ = "loans"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_loans_amount_positive"),
        CheckConstraint("interest_rate >= 0", name="ck_loans_interest_rate_nonneg"),
        CheckConstraint("total_repayment >= amount", name="ck_loans_total_repayment"),
        CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'REJECTED', 'REPAID')",
            name="ck_loans_status",
        ),
        Index("ix_loans_user_created", "user_id", "created_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Money, nullable=False)
    interest_rate = Column(Numeric(6, 2), nullable=False)
    total_repayment = Column(Money, nullable=False)
    status = Column(String(20), nullable=False, default="PENDING", index=True)
    application_date = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    approval_date = Column(DateTime(timezone=True), nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    user = relationship("User", back_populates="loans")
    repayments = relationship(
        "Repayment",
        back_populates="loan",
        cascade="all, delete-orphan",
        order_by="Repayment.created_at.desc()",
    )
    identity_verification = relationship(
        "IdentityVerification", back_populates="loan", uselist=False, cascade="all, delete-orphan"
    )
    guarantor = relationship("Guarantor", back_populates="loan", uselist=False, cascade="all, delete-orphan")
    bank_details = relationship("BankDetails", back_populates="loan", uselist=False, cascade="all, delete-orphan")
