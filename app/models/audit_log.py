import uuid

from sqlalchemy import Column, DateTime, Index, String, Uuid, func

from app.db.base import Base
from app.models.types import JSONDocument


class AuditLog(Base):
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_resource", "resource_type", "resource_id"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    actor_id = Column(Uuid, nullable=True)
    action = Column(String(255), nullable=False)
    resource_type = Column(String(255), nullable=False)
    resource_id = Column(String(255), nullable=False)
    old_value = Column(JSONDocument, nullable=True)
    new_value = Column(JSONDocument, nullable=True)
    changes = Column(JSONDocument, nullable=True)
    summary = Column(String(512), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
