import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Uuid, func
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.models.types import EncryptedString


class BankDetails(Base):
    __tablename__ = "bank_details"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    loan_id = Column(Uuid, ForeignKey("loans.id", ondelete="CASCADE"), nullable=False, unique=True)
    bank_name = Column(String(255), nullable=False)
    account_number = Column(EncryptedString(length=255), nullable=False)
    account_name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    loan = relationship("Loan", back_populates="bank_details")
