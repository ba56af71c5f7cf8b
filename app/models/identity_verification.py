import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Uuid, func
from sqlalchemy.orm import relationship

from app.db.base import Base
from app.models.types import EncryptedString


class IdentityVerification(Base):
    __tablename__ = "identity_verifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    loan_id = Column(Uuid, ForeignKey("loans.id", ondelete="CASCADE"), nullable=False, unique=True)
    bvn = Column(EncryptedString(length=255), nullable=False)
    nin = Column(EncryptedString(length=255), nullable=False)
    face_photo_url = Column(String(1024), nullable=True)
    passport_url = Column(String(1024), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    loan = relationship("Loan", back_populates="identity_verification")
