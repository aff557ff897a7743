"""Silence windows for alert conditions that are not acutely urgent.

The notification job may run several times a day. Stock warnings and
checkup reminders would otherwise repeat on every run, so they only fire
again once their silence window has elapsed. Critical stock and expired
packs are never silenced.
"""

from datetime import datetime

from services.alert_types import AlertThresholds, Severity
from services.timeutils import elapsed_days


def allow_stock_alert(
    severity: Severity,
    last_modified: datetime | None,
    now: datetime,
    thresholds: AlertThresholds,
) -> bool:
    if severity in (Severity.critical, Severity.expired):
        return True
    if last_modified is None:
        return True
    # A recent edit means the user just restocked or looked at it.
    return elapsed_days(last_modified, now) > thresholds.stock_silence_days


def allow_checkup_alert(
    last_notified_at: datetime | None,
    now: datetime,
    thresholds: AlertThresholds,
) -> bool:
    if last_notified_at is None:
        return True
    return elapsed_days(last_notified_at, now) >= thresholds.checkup_silence_days
