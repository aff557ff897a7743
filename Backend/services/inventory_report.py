import logging
from dataclasses import dataclass

from langfuse import observe
from sqlalchemy.orm import Session

from config import APP_NAME
from models.medication import Medication
from services.alerts import calculate_days_left
from services.notifications import DispatchResult, NotificationDispatcher
from services.push import WebPushTransport
from services.record_store import RecordStore

logger = logging.getLogger("medilog.inventory")

REPORT_HEADER = "Sonntags-Check 📋\n\nHier ist dein aktueller Vorrat:\n\n"


@dataclass
class InventoryReportSummary:
    success: bool = True
    users_notified: int = 0
    sent: int = 0
    failed: int = 0

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "usersNotified": self.users_notified,
            "sent": self.sent,
            "failed": self.failed,
        }


def inventory_lines(medications: list[Medication]) -> list[str]:
    lines = []
    for med in medications:
        days_left = calculate_days_left(med)
        if days_left is None:
            continue
        lines.append(f"{med.name}: {med.current_stock} Stk ({days_left} Tage)")
    return lines


@observe(name="weekly_inventory_report", capture_input=False)
def send_weekly_inventory_report(db: Session, transport: WebPushTransport | None = None) -> InventoryReportSummary:
    """Push every subscribed user a digest of their current stock."""
    store = RecordStore(db)
    dispatcher = NotificationDispatcher(store, transport or WebPushTransport())
    totals = DispatchResult()
    users_notified = 0

    for user_id in store.list_subscribed_user_ids():
        lines = inventory_lines(store.list_medications_for_user(user_id))
        if not lines:
            continue
        body = REPORT_HEADER + "\n".join(lines)
        totals.add(dispatcher.dispatch(user_id, f"{APP_NAME} Vorrat", body))
        users_notified += 1

    logger.info(
        "Inventory report done: users=%d sent=%d failed=%d",
        users_notified,
        totals.sent,
        totals.failed,
    )
    return InventoryReportSummary(
        users_notified=users_notified,
        sent=totals.sent,
        failed=totals.failed,
    )
