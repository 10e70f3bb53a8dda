"""
Database model for alerts raised by the opportunity pipeline.

Alerts are immutable apart from the read flag.
"""
from datetime import datetime
from typing import Optional, Any

from sqlalchemy import Integer, String, Boolean, DateTime, ForeignKey, Text, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database import Base
from src.core.utils import utcnow


class AlertModel(Base):
    """
    One notification tied to a complex (and optionally one of its listings).
    """
    __tablename__ = "alerts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    complex_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("complexes.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )
    listing_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("listings.id", ondelete="SET NULL"),
        nullable=True
    )

    alert_type: Mapped[str] = mapped_column(String(50), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), default="info", index=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    data: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)

    # Permanent idempotency key, e.g. "committee_approval:42:local"
    dedup_key: Mapped[Optional[str]] = mapped_column(String(200), nullable=True, unique=True)

    is_read: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)

    __table_args__ = (
        Index('idx_alerts_complex_type_created', 'complex_id', 'alert_type', 'created_at'),
        Index('idx_alerts_unread', 'is_read', 'created_at'),
    )

    def __repr__(self):
        return f"<Alert(type='{self.alert_type}', complex_id={self.complex_id}, title='{self.title}')>"
