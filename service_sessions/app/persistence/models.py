"""ISPyB table models.

Generated by scripts/reflect_models.py from a live ISPyB schema, restricted
to the columns the service exposes. Regenerate rather than edit by hand.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class Proposal(Base):
    __tablename__ = "Proposal"

    proposal_id: Mapped[int] = mapped_column("proposalId", Integer, primary_key=True)
    proposal_code: Mapped[Optional[str]] = mapped_column("proposalCode", String(45), nullable=True)
    proposal_number: Mapped[Optional[str]] = mapped_column("proposalNumber", String(45), nullable=True)

    sessions: Mapped[List["BLSession"]] = relationship(back_populates="proposal")


class BLSession(Base):
    __tablename__ = "BLSession"

    session_id: Mapped[int] = mapped_column("sessionId", Integer, primary_key=True)
    proposal_id: Mapped[Optional[int]] = mapped_column("proposalId", Integer, ForeignKey("Proposal.proposalId"), nullable=True)
    start_date: Mapped[Optional[datetime]] = mapped_column("startDate", DateTime, nullable=True)
    end_date: Mapped[Optional[datetime]] = mapped_column("endDate", DateTime, nullable=True)
    visit_number: Mapped[Optional[int]] = mapped_column("visit_number", Integer, nullable=True)

    proposal: Mapped[Optional["Proposal"]] = relationship(back_populates="sessions")
