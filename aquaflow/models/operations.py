"""Operations models: audit log and side-effect keys."""

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, JSON, UniqueConstraint

from aquaflow.db.base import Base


# ===================== AUDIT =====================

class AuditLogEntry(Base):
    """Audit log entry."""
    __tablename__ = "audit_log_entries"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=True, index=True)
    user_name = Column(String(200), nullable=True)
    action = Column(String(50), nullable=False, index=True)
    entity_type = Column(String(50), nullable=True, index=True)
    entity_id = Column(String(50), nullable=True)
    details = Column(JSON, nullable=True)
    ip_address = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), index=True)


# ===================== SIDE EFFECTS =====================

class SideEffectKey(Base):
    """Marks a side effect as done for one entity.

    A row per (entity_type, entity_id, effect) means the effect already ran;
    the unique constraint turns a concurrent second attempt into an
    IntegrityError instead of a duplicate effect.
    """
    __tablename__ = "side_effect_keys"
    __table_args__ = (
        UniqueConstraint("entity_type", "entity_id", "effect", name="uq_side_effect_key"),
    )

    id = Column(Integer, primary_key=True, index=True)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(50), nullable=False)
    effect = Column(String(50), nullable=False)
    result_ref = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
