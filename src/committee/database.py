"""
Database model for upcoming planning-committee hearings.
"""
from datetime import date, datetime
from typing import Optional

from sqlalchemy import Integer, String, Date, DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database import Base
from src.core.utils import utcnow


class CommitteeHearingModel(Base):
    """
    A scheduled committee discussion of a complex's plan.
    Informational only: recording a hearing never changes complex state.
    """
    __tablename__ = "committee_hearings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    complex_id: Mapped[int] = mapped_column(
        ForeignKey("complexes.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    committee: Mapped[str] = mapped_column(String(20), nullable=False)  # local | district | national
    hearing_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    agenda_item: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint('complex_id', 'committee', 'hearing_date', name='uq_hearing_complex_committee_date'),
    )

    def __repr__(self):
        return f"<CommitteeHearing(complex_id={self.complex_id}, committee='{self.committee}', date={self.hearing_date})>"
