"""In-process notification log (local runs and tests)."""

from datetime import timedelta
from threading import Lock

from src.common.dtos.ledger_dtos import AlertNotificationDTO
from src.common.utils.date_utils import Clock, utc_now
from src.monitoring_domain.domain.notifier import IRecentNotificationChecker


class InMemoryNotificationLog(IRecentNotificationChecker):
    def __init__(self, clock: Clock = utc_now) -> None:
        self.clock = clock
        self.sent: list[AlertNotificationDTO] = []
        self._lock = Lock()

    def has_recent_notification(self, vendor_id: str, alert_type: str, ledger_id: str, hours_ago: int) -> bool:
        cutoff = self.clock() - timedelta(hours=hours_ago)
        with self._lock:
            return any(
                n.vendor_id == vendor_id
                and n.alert_type == alert_type
                and n.ledger_id == ledger_id
                and n.created_at is not None
                and n.created_at >= cutoff
                for n in self.sent
            )

    def record_notification(self, notification: AlertNotificationDTO) -> None:
        if notification.created_at is None:
            notification.created_at = self.clock()
        with self._lock:
            self.sent.append(notification)
