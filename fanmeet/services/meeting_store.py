"""Data access for the meeting lifecycle.

Everything the lifecycle code reads or writes goes through ``MeetingStore``.
``SqlMeetingStore`` is the PostgreSQL implementation; tests provide an
in-memory one with the same contract.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Protocol

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from fanmeet.models.auction import Bid, Event
from fanmeet.models.common import new_uuid, utcnow
from fanmeet.models.meet import Meet, MeetingEventLog
from fanmeet.models.wallet import Wallet, WalletTransaction
from fanmeet.services.notifications import create_notification

MEET_MUTABLE_FIELDS = frozenset(
    {
        "creator_started_at",
        "creator_joined_at",
        "fan_joined_at",
        "recording_started_at",
        "recording_stopped_at",
        "cancelled_at",
        "cancellation_reason",
        "refund_id",
        "completed_at",
    }
)


class MeetingStoreError(RuntimeError):
    pass


@dataclass(frozen=True)
class MeetRecord:
    id: str
    event_id: str
    status: str
    scheduled_at: datetime
    duration_minutes: int
    creator_id: str
    fan_id: str
    creator_started_at: datetime | None = None
    creator_joined_at: datetime | None = None
    fan_joined_at: datetime | None = None
    recording_started_at: datetime | None = None
    recording_stopped_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    refund_id: str | None = None
    completed_at: datetime | None = None

    @property
    def scheduled_end(self) -> datetime:
        return self.scheduled_at + timedelta(minutes=int(self.duration_minutes))

    @classmethod
    def from_row(cls, row: Meet) -> MeetRecord:
        return cls(
            id=row.id,
            event_id=row.event_id,
            status=row.status,
            scheduled_at=row.scheduled_at,
            duration_minutes=row.duration_minutes,
            creator_id=row.creator_id,
            fan_id=row.fan_id,
            creator_started_at=row.creator_started_at,
            creator_joined_at=row.creator_joined_at,
            fan_joined_at=row.fan_joined_at,
            recording_started_at=row.recording_started_at,
            recording_stopped_at=row.recording_stopped_at,
            cancelled_at=row.cancelled_at,
            cancellation_reason=row.cancellation_reason,
            refund_id=row.refund_id,
            completed_at=row.completed_at,
        )


@dataclass(frozen=True)
class EventRecord:
    id: str
    title: str
    winning_bid_id: str | None = None


@dataclass(frozen=True)
class BidRecord:
    id: str
    event_id: str
    fan_id: str
    amount: int
    status: str = "won"


@dataclass(frozen=True)
class LedgerEntry:
    type: str
    direction: str
    amount: int
    reference_table: str
    reference_id: str
    commission_amount: int = 0
    commission_type: str | None = None
    description: str | None = None
    available_for_withdrawal_at: datetime | None = None


@dataclass(frozen=True)
class WalletCredit:
    wallet_id: str
    balance: int
    # False when a ledger entry for the same reference already existed.
    applied: bool


@dataclass(frozen=True)
class EventLogRecord:
    meet_id: str
    event_type: str
    timestamp: datetime
    metadata: dict[str, Any] = field(default_factory=dict)


class MeetingStore(Protocol):
    async def list_meets(self, *, status: str, scheduled_before: datetime | None = None) -> list[MeetRecord]: ...

    async def get_meet(self, meet_id: str) -> MeetRecord | None: ...

    async def transition_meet(self, meet_id: str, *, from_status: str, to_status: str, **fields: Any) -> bool: ...

    async def update_meet(self, meet_id: str, **fields: Any) -> None: ...

    async def get_event(self, event_id: str) -> EventRecord | None: ...

    async def get_bid(self, bid_id: str) -> BidRecord | None: ...

    async def find_top_won_bid(self, event_id: str) -> BidRecord | None: ...

    async def credit_wallet(self, user_id: str, entry: LedgerEntry) -> WalletCredit: ...

    async def mark_bid_refunded(self, bid_id: str, *, amount: int, refunded_at: datetime) -> None: ...

    async def append_event_log(
        self,
        meet_id: str,
        event_type: str,
        metadata: dict[str, Any],
        *,
        timestamp: datetime,
    ) -> None: ...

    async def list_event_logs(self, meet_id: str) -> list[EventLogRecord]: ...

    async def create_notification(
        self,
        *,
        user_id: str,
        kind: str,
        title: str,
        body: str,
        event_id: str | None = None,
        payload: dict | None = None,
    ) -> None: ...


def as_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def check_meet_fields(fields: dict[str, Any]) -> None:
    unknown = set(fields) - MEET_MUTABLE_FIELDS
    if unknown:
        raise MeetingStoreError(f"Unsupported meet fields: {', '.join(sorted(unknown))}")


class SqlMeetingStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @asynccontextmanager
    async def _write(self) -> AsyncIterator[None]:
        # One commit per logical write; a failure leaves the session usable for the next meet.
        try:
            yield
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

    async def list_meets(self, *, status: str, scheduled_before: datetime | None = None) -> list[MeetRecord]:
        # Status writes bypass the identity map, so rows are always re-read from the database.
        stmt = select(Meet).where(Meet.status == status).execution_options(populate_existing=True)
        if scheduled_before is not None:
            stmt = stmt.where(Meet.scheduled_at <= scheduled_before)
        rows = (await self.db.execute(stmt.order_by(Meet.scheduled_at.asc()))).scalars().all()
        return [MeetRecord.from_row(row) for row in rows]

    async def get_meet(self, meet_id: str) -> MeetRecord | None:
        stmt = select(Meet).where(Meet.id == meet_id).execution_options(populate_existing=True)
        row = (await self.db.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return MeetRecord.from_row(row)

    async def transition_meet(self, meet_id: str, *, from_status: str, to_status: str, **fields: Any) -> bool:
        check_meet_fields(fields)
        stmt = (
            update(Meet)
            .where(Meet.id == meet_id, Meet.status == from_status)
            .values(status=to_status, updated_at=utcnow(), **fields)
            .execution_options(synchronize_session=False)
        )
        async with self._write():
            result = await self.db.execute(stmt)
        return int(result.rowcount or 0) == 1

    async def update_meet(self, meet_id: str, **fields: Any) -> None:
        check_meet_fields(fields)
        if not fields:
            return
        stmt = (
            update(Meet)
            .where(Meet.id == meet_id)
            .values(updated_at=utcnow(), **fields)
            .execution_options(synchronize_session=False)
        )
        async with self._write():
            await self.db.execute(stmt)

    async def get_event(self, event_id: str) -> EventRecord | None:
        row = (await self.db.execute(select(Event).where(Event.id == event_id))).scalar_one_or_none()
        if row is None:
            return None
        return EventRecord(id=row.id, title=row.title, winning_bid_id=row.winning_bid_id)

    async def get_bid(self, bid_id: str) -> BidRecord | None:
        row = (await self.db.execute(select(Bid).where(Bid.id == bid_id))).scalar_one_or_none()
        if row is None:
            return None
        return BidRecord(id=row.id, event_id=row.event_id, fan_id=row.fan_id, amount=row.amount, status=row.status)

    async def find_top_won_bid(self, event_id: str) -> BidRecord | None:
        row = (
            await self.db.execute(
                select(Bid)
                .where(Bid.event_id == event_id, Bid.status == "won")
                .order_by(Bid.amount.desc())
                .limit(1)
            )
        ).scalar_one_or_none()
        if row is None:
            return None
        return BidRecord(id=row.id, event_id=row.event_id, fan_id=row.fan_id, amount=row.amount, status=row.status)

    async def credit_wallet(self, user_id: str, entry: LedgerEntry) -> WalletCredit:
        now = utcnow()
        async with self._write():
            # Upsert also row-locks the wallet until commit, serialising concurrent credits.
            wallet_id = (
                await self.db.execute(
                    pg_insert(Wallet)
                    .values(id=new_uuid(), user_id=user_id, balance=0, created_at=now, updated_at=now)
                    .on_conflict_do_update(index_elements=[Wallet.user_id], set_={"updated_at": now})
                    .returning(Wallet.id)
                )
            ).scalar_one()

            inserted = (
                await self.db.execute(
                    pg_insert(WalletTransaction)
                    .values(
                        wallet_id=wallet_id,
                        type=entry.type,
                        direction=entry.direction,
                        amount=entry.amount,
                        commission_amount=entry.commission_amount,
                        commission_type=entry.commission_type,
                        description=entry.description,
                        reference_table=entry.reference_table,
                        reference_id=entry.reference_id,
                        available_for_withdrawal_at=entry.available_for_withdrawal_at,
                        created_at=now,
                    )
                    .on_conflict_do_nothing(constraint="uq_wallet_transaction_reference")
                    .returning(WalletTransaction.id)
                )
            ).scalar_one_or_none()

            if inserted is None:
                balance = (await self.db.execute(select(Wallet.balance).where(Wallet.id == wallet_id))).scalar_one()
                applied = False
            else:
                delta = entry.amount if entry.direction == "credit" else -entry.amount
                balance = (
                    await self.db.execute(
                        update(Wallet)
                        .where(Wallet.id == wallet_id)
                        .values(balance=Wallet.balance + delta, updated_at=now)
                        .returning(Wallet.balance)
                        .execution_options(synchronize_session=False)
                    )
                ).scalar_one()
                applied = True
        return WalletCredit(wallet_id=wallet_id, balance=int(balance), applied=applied)

    async def mark_bid_refunded(self, bid_id: str, *, amount: int, refunded_at: datetime) -> None:
        stmt = (
            update(Bid)
            .where(Bid.id == bid_id)
            .values(refund_amount=amount, refund_status="refunded", refunded_at=refunded_at, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        async with self._write():
            await self.db.execute(stmt)

    async def append_event_log(
        self,
        meet_id: str,
        event_type: str,
        metadata: dict[str, Any],
        *,
        timestamp: datetime,
    ) -> None:
        async with self._write():
            self.db.add(MeetingEventLog(meet_id=meet_id, event_type=event_type, timestamp=timestamp, details=metadata))

    async def list_event_logs(self, meet_id: str) -> list[EventLogRecord]:
        rows = (
            await self.db.execute(
                select(MeetingEventLog)
                .where(MeetingEventLog.meet_id == meet_id)
                .order_by(MeetingEventLog.timestamp.asc(), MeetingEventLog.id.asc())
            )
        ).scalars().all()
        return [
            EventLogRecord(meet_id=row.meet_id, event_type=row.event_type, timestamp=row.timestamp, metadata=row.details or {})
            for row in rows
        ]

    async def create_notification(
        self,
        *,
        user_id: str,
        kind: str,
        title: str,
        body: str,
        event_id: str | None = None,
        payload: dict | None = None,
    ) -> None:
        try:
            await create_notification(
                self.db,
                user_id=user_id,
                kind=kind,
                title=title,
                body=body,
                event_id=event_id,
                payload=payload,
            )
        except Exception:
            await self.db.rollback()
            raise
