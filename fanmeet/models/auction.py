from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from fanmeet.db.base import Base
from fanmeet.models.common import TimestampMixin, new_uuid


class Event(TimestampMixin, Base):
    __tablename__ = "events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    creator_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    # Plain column: bids reference events, so a second FK would make the pair cyclic.
    winning_bid_id: Mapped[str | None] = mapped_column(String(36), nullable=True)


class Bid(TimestampMixin, Base):
    __tablename__ = "bids"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_bid_amount_non_negative"),
        Index("ix_bids_event_status_amount", "event_id", "status", "amount"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    event_id: Mapped[str] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), index=True)
    fan_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)
    refund_amount: Mapped[int | None] = mapped_column(Integer, nullable=True)
    refund_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    refunded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
