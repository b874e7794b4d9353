from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

import pytest

from fanmeet.services.meeting_store import (
    BidRecord,
    EventLogRecord,
    EventRecord,
    LedgerEntry,
    MeetRecord,
    WalletCredit,
    check_meet_fields,
)

T0 = datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)


class StoreFailure(RuntimeError):
    pass


class FakeMeetingStore:
    """In-memory ``MeetingStore`` with switches for injecting failures."""

    def __init__(self) -> None:
        self.meets: dict[str, MeetRecord] = {}
        self.events: dict[str, EventRecord] = {}
        self.bids: dict[str, BidRecord] = {}
        self.bid_refunds: dict[str, dict[str, Any]] = {}
        self.wallets: dict[str, dict[str, Any]] = {}
        self.ledger: list[tuple[str, LedgerEntry]] = []
        self.logs: list[EventLogRecord] = []
        self.notifications: list[dict[str, Any]] = []

        self.fail_list_status: set[str] = set()
        self.fail_event_ids: set[str] = set()
        self.fail_credit_users: set[str] = set()
        self.fail_notifications = False
        self.fail_log_types: set[str] = set()
        self.fail_mark_bids = False

    # seeding helpers

    def add_event(self, *, title: str = "Coffee chat", winning_bid_id: str | None = None) -> EventRecord:
        event = EventRecord(id=str(uuid.uuid4()), title=title, winning_bid_id=winning_bid_id)
        self.events[event.id] = event
        return event

    def add_bid(self, event_id: str, *, amount: int, fan_id: str = "fan-1", status: str = "won") -> BidRecord:
        bid = BidRecord(id=str(uuid.uuid4()), event_id=event_id, fan_id=fan_id, amount=amount, status=status)
        self.bids[bid.id] = bid
        return bid

    def add_auctioned_meet(
        self,
        *,
        amount: int | None = 300,
        status: str = "scheduled",
        scheduled_at: datetime = T0,
        duration_minutes: int = 10,
        creator_id: str = "creator-1",
        fan_id: str = "fan-1",
        link_winning_bid: bool = True,
        **fields: Any,
    ) -> MeetRecord:
        event = self.add_event()
        if amount is not None:
            bid = self.add_bid(event.id, amount=amount, fan_id=fan_id)
            if link_winning_bid:
                event = replace(event, winning_bid_id=bid.id)
                self.events[event.id] = event
        meet = MeetRecord(
            id=str(uuid.uuid4()),
            event_id=event.id,
            status=status,
            scheduled_at=scheduled_at,
            duration_minutes=duration_minutes,
            creator_id=creator_id,
            fan_id=fan_id,
            **fields,
        )
        self.meets[meet.id] = meet
        return meet

    # inspection helpers

    def balance(self, user_id: str) -> int:
        wallet = self.wallets.get(user_id)
        return 0 if wallet is None else wallet["balance"]

    def ledger_for(self, meet_id: str) -> list[LedgerEntry]:
        return [entry for _, entry in self.ledger if entry.reference_id == meet_id]

    def log_types(self, meet_id: str) -> list[str]:
        return [row.event_type for row in self.logs if row.meet_id == meet_id]

    def log_entry(self, meet_id: str, event_type: str) -> EventLogRecord:
        matches = [row for row in self.logs if row.meet_id == meet_id and row.event_type == event_type]
        assert len(matches) == 1, f"expected one {event_type} entry, got {len(matches)}"
        return matches[0]

    # MeetingStore

    async def list_meets(self, *, status: str, scheduled_before: datetime | None = None) -> list[MeetRecord]:
        if status in self.fail_list_status:
            raise StoreFailure(f"cannot list {status} meets")
        rows = [m for m in self.meets.values() if m.status == status]
        if scheduled_before is not None:
            rows = [m for m in rows if m.scheduled_at <= scheduled_before]
        return sorted(rows, key=lambda m: m.scheduled_at)

    async def get_meet(self, meet_id: str) -> MeetRecord | None:
        return self.meets.get(meet_id)

    async def transition_meet(self, meet_id: str, *, from_status: str, to_status: str, **fields: Any) -> bool:
        check_meet_fields(fields)
        meet = self.meets.get(meet_id)
        if meet is None or meet.status != from_status:
            return False
        self.meets[meet_id] = replace(meet, status=to_status, **fields)
        return True

    async def update_meet(self, meet_id: str, **fields: Any) -> None:
        check_meet_fields(fields)
        meet = self.meets.get(meet_id)
        if meet is not None:
            self.meets[meet_id] = replace(meet, **fields)

    async def get_event(self, event_id: str) -> EventRecord | None:
        if event_id in self.fail_event_ids:
            raise StoreFailure(f"cannot read event {event_id}")
        return self.events.get(event_id)

    async def get_bid(self, bid_id: str) -> BidRecord | None:
        return self.bids.get(bid_id)

    async def find_top_won_bid(self, event_id: str) -> BidRecord | None:
        won = [b for b in self.bids.values() if b.event_id == event_id and b.status == "won"]
        if not won:
            return None
        return max(won, key=lambda b: b.amount)

    async def credit_wallet(self, user_id: str, entry: LedgerEntry) -> WalletCredit:
        if user_id in self.fail_credit_users:
            raise StoreFailure(f"cannot credit wallet of {user_id}")
        wallet = self.wallets.setdefault(user_id, {"id": f"wallet-{user_id}", "balance": 0})
        for wallet_id, existing in self.ledger:
            if (
                wallet_id == wallet["id"]
                and existing.type == entry.type
                and existing.reference_table == entry.reference_table
                and existing.reference_id == entry.reference_id
            ):
                return WalletCredit(wallet_id=wallet["id"], balance=wallet["balance"], applied=False)
        delta = entry.amount if entry.direction == "credit" else -entry.amount
        wallet["balance"] += delta
        self.ledger.append((wallet["id"], entry))
        return WalletCredit(wallet_id=wallet["id"], balance=wallet["balance"], applied=True)

    async def mark_bid_refunded(self, bid_id: str, *, amount: int, refunded_at: datetime) -> None:
        if self.fail_mark_bids:
            raise StoreFailure("bids table locked")
        self.bid_refunds[bid_id] = {"refund_amount": amount, "refund_status": "refunded", "refunded_at": refunded_at}

    async def append_event_log(
        self,
        meet_id: str,
        event_type: str,
        metadata: dict[str, Any],
        *,
        timestamp: datetime,
    ) -> None:
        if event_type in self.fail_log_types:
            raise StoreFailure(f"cannot append {event_type}")
        self.logs.append(EventLogRecord(meet_id=meet_id, event_type=event_type, timestamp=timestamp, metadata=metadata))

    async def list_event_logs(self, meet_id: str) -> list[EventLogRecord]:
        return sorted((row for row in self.logs if row.meet_id == meet_id), key=lambda row: row.timestamp)

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
        if self.fail_notifications:
            raise StoreFailure("notifications table unavailable")
        self.notifications.append(
            {"user_id": user_id, "kind": kind, "title": title, "body": body, "event_id": event_id, "payload": payload or {}}
        )


@pytest.fixture
def store() -> FakeMeetingStore:
    return FakeMeetingStore()
