from fanmeet.models.auction import Bid, Event
from fanmeet.models.meet import Meet, MeetingEventLog
from fanmeet.models.notification import Notification
from fanmeet.models.wallet import Wallet, WalletTransaction

__all__ = [
    "Bid",
    "Event",
    "Meet",
    "MeetingEventLog",
    "Notification",
    "Wallet",
    "WalletTransaction",
]
