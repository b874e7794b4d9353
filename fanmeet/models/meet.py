from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from fanmeet.db.base import Base
from fanmeet.models.common import TimestampMixin, new_uuid, utcnow

STATUS_SCHEDULED = "scheduled"
STATUS_LIVE = "live"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED_NO_SHOW = "cancelled_no_show_creator"
STATUS_CANCELLED = "cancelled"
TERMINAL_STATUSES = frozenset({STATUS_COMPLETED, STATUS_CANCELLED_NO_SHOW, STATUS_CANCELLED})


class Meet(TimestampMixin, Base):
    __tablename__ = "meets"
    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="ck_meet_duration_positive"),
        CheckConstraint(
            "status in ('scheduled','live','completed','cancelled_no_show_creator','cancelled')",
            name="ck_meet_status",
        ),
        Index("ix_meets_status_scheduled_at", "status", "scheduled_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    event_id: Mapped[str] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), index=True)
    status: Mapped[str] = mapped_column(String(32), default="scheduled", nullable=False)
    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=10, nullable=False)
    creator_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    fan_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    meeting_link: Mapped[str | None] = mapped_column(String(1200), nullable=True)
    creator_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    creator_joined_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    fan_joined_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    recording_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    recording_stopped_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(String(64), nullable=True)
    refund_id: Mapped[str | None] = mapped_column(String(120), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class MeetingEventLog(Base):
    __tablename__ = "meeting_event_logs"
    __table_args__ = (Index("ix_meeting_event_logs_meet_timestamp", "meet_id", "timestamp"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    meet_id: Mapped[str] = mapped_column(ForeignKey("meets.id", ondelete="CASCADE"), nullable=False)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    # "metadata" is reserved on declarative classes.
    details: Mapped[dict] = mapped_column("metadata", JSONB, default=dict, nullable=False)
