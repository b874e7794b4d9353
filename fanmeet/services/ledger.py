"""Refund and payout primitives shared by the lifecycle sweeps.

Both helpers only move money between ledger rows. Actual settlement to a bank
or card is the payout system's job.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from fanmeet.core.config import settings
from fanmeet.services.meeting_store import BidRecord, EventRecord, LedgerEntry, MeetingStore, MeetRecord

logger = logging.getLogger(__name__)

REFUND_LEDGER_TYPE = "creator_no_show_refund"
EARNING_LEDGER_TYPE = "meeting_earning"
MEETS_REFERENCE = "meets"


@dataclass(frozen=True)
class RefundResult:
    success: bool
    refund_id: str
    amount: int
    error: str | None = None
    # False when the wallet was credited but the bid row could not be marked refunded.
    bid_marked: bool = True


def build_refund_id(meet_id: str, now: datetime) -> str:
    return f"refund_{int(now.timestamp() * 1000)}_{meet_id}"


def compute_host_share(amount: int, fee_percent: int) -> tuple[int, int]:
    """Return ``(creator_share, platform_fee)`` for a winning bid amount.

    The creator share is rounded down, so any fraction stays with the platform.
    """
    if not 0 <= fee_percent <= 100:
        raise ValueError("fee_percent must be between 0 and 100")
    amount = max(int(amount), 0)
    share = amount * (100 - fee_percent) // 100
    return share, amount - share


def _event_title(event: EventRecord | None) -> str:
    if event is None or not event.title:
        return "Event"
    return event.title


async def resolve_winning_bid(store: MeetingStore, event_id: str) -> tuple[EventRecord | None, BidRecord | None]:
    event = await store.get_event(event_id)
    if event is None:
        return None, None
    if event.winning_bid_id:
        return event, await store.get_bid(event.winning_bid_id)
    return event, await store.find_top_won_bid(event_id)


async def _notify(
    store: MeetingStore,
    *,
    user_id: str,
    kind: str,
    title: str,
    body: str,
    event_id: str | None = None,
    payload: dict | None = None,
) -> None:
    # The ledger row is already committed; a lost notification must not read as a failed payment.
    try:
        await store.create_notification(
            user_id=user_id,
            kind=kind,
            title=title,
            body=body,
            event_id=event_id,
            payload=payload,
        )
    except Exception:
        logger.exception("Notification %s for user id=%s failed", kind, user_id)


async def refund_full(
    store: MeetingStore,
    meet: MeetRecord,
    event: EventRecord | None,
    bid: BidRecord | None,
    *,
    now: datetime,
) -> RefundResult:
    refund_id = build_refund_id(meet.id, now)
    if event is None:
        return RefundResult(success=False, refund_id=refund_id, amount=0, error="Event not found")

    amount = int(bid.amount) if bid is not None else 0
    if amount <= 0:
        logger.info("No bid amount to refund for meet id=%s", meet.id)
        return RefundResult(success=True, refund_id=refund_id, amount=0)

    title = _event_title(event)
    currency = settings.currency_label
    try:
        credit = await store.credit_wallet(
            meet.fan_id,
            LedgerEntry(
                type=REFUND_LEDGER_TYPE,
                direction="credit",
                amount=amount,
                commission_amount=0,
                commission_type="no_fee",
                description=f'Full refund for "{title}" - Creator no-show',
                reference_table=MEETS_REFERENCE,
                reference_id=meet.id,
            ),
        )
    except Exception as exc:
        logger.exception("Refund failed for meet id=%s", meet.id)
        return RefundResult(success=False, refund_id=refund_id, amount=0, error=str(exc))

    if not credit.applied:
        logger.warning("Refund for meet id=%s already on the ledger of wallet id=%s", meet.id, credit.wallet_id)
        return RefundResult(success=True, refund_id=refund_id, amount=amount)

    # From here on the money has moved; failures are reported next to the credited amount.
    bid_marked = True
    error = None
    try:
        await store.mark_bid_refunded(bid.id, amount=amount, refunded_at=now)
    except Exception as exc:
        logger.exception("Fan credited but bid id=%s not marked refunded for meet id=%s", bid.id, meet.id)
        bid_marked = False
        error = str(exc)

    await _notify(
        store,
        user_id=meet.fan_id,
        kind=REFUND_LEDGER_TYPE,
        title="Full Refund - Creator No-Show",
        body=(
            f'The creator did not join your scheduled meeting for "{title}". '
            f"A full refund of {currency}{amount} has been credited to your wallet."
        ),
        event_id=meet.event_id,
        payload={"meet_id": meet.id, "amount": amount, "refund_id": refund_id},
    )
    logger.info("Refunded %s%s to fan id=%s for meet id=%s", currency, amount, meet.fan_id, meet.id)
    return RefundResult(success=True, refund_id=refund_id, amount=amount, error=error, bid_marked=bid_marked)


async def credit_host_share(
    store: MeetingStore,
    meet: MeetRecord,
    event: EventRecord | None,
    bid: BidRecord,
    *,
    fee_percent: int,
    hold: timedelta,
    now: datetime,
) -> bool:
    share, fee = compute_host_share(bid.amount, fee_percent)
    title = _event_title(event)
    currency = settings.currency_label
    try:
        credit = await store.credit_wallet(
            meet.creator_id,
            LedgerEntry(
                type=EARNING_LEDGER_TYPE,
                direction="credit",
                amount=share,
                commission_amount=fee,
                commission_type="platform_fee",
                description=(
                    f'Earnings from completed meeting for "{title}" '
                    f"({100 - fee_percent}% of {currency}{bid.amount})"
                ),
                reference_table=MEETS_REFERENCE,
                reference_id=meet.id,
                available_for_withdrawal_at=now + hold,
            ),
        )
    except Exception:
        logger.exception("Crediting creator id=%s failed for meet id=%s", meet.creator_id, meet.id)
        return False

    if not credit.applied:
        logger.warning("Earning for meet id=%s already on the ledger of wallet id=%s", meet.id, credit.wallet_id)
        return True

    await _notify(
        store,
        user_id=meet.creator_id,
        kind=EARNING_LEDGER_TYPE,
        title="Meeting Completed - Earnings Credited!",
        body=(
            f'Your meeting for "{title}" completed successfully. '
            f"{currency}{share} ({100 - fee_percent}%) has been credited to your wallet."
        ),
        event_id=meet.event_id,
        payload={"meet_id": meet.id, "amount": share, "commission_amount": fee},
    )
    logger.info("Creator id=%s credited %s%s for meet id=%s", meet.creator_id, currency, share, meet.id)
    return True
