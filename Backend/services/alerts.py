"""
Alert evaluation for medications and recurring checkups.

Every function here is a pure function of (record, now, thresholds): no
database access and no clock reads, so a run can be replayed and tested
at any instant.

  Medication → stock finding (critical / warning) + expiry finding
               (expired / warning) → at most one combined Alert
  Checkup    → due-date finding inside the lead time → at most one Alert
"""

import math
from datetime import datetime

from models.checkup import RecurringCheckup
from models.medication import Medication
from services.alert_types import (
    Alert,
    AlertKind,
    AlertThresholds,
    Finding,
    Severity,
    highest_severity,
)
from services.debounce import allow_checkup_alert, allow_stock_alert
from services.timeutils import days_until, format_date_de


def calculate_days_left(med: Medication) -> int | None:
    dosage = med.daily_dosage or 0
    if dosage <= 0:
        return None
    return math.floor((med.current_stock or 0) / dosage)


def stock_finding(med: Medication, thresholds: AlertThresholds) -> Finding | None:
    days_left = calculate_days_left(med)
    if days_left is None or days_left >= thresholds.low_days:
        return None
    shown = max(days_left, 0)
    if days_left <= thresholds.critical_days:
        return Finding(AlertKind.stock, Severity.critical, f"DRINGEND: Reicht nur noch {shown} Tage!")
    return Finding(AlertKind.stock, Severity.warning, f"Niedrig: Reicht noch {shown} Tage.")


def expiry_finding(med: Medication, now: datetime, thresholds: AlertThresholds) -> Finding | None:
    if med.expiry_date is None:
        return None
    days_to_expiry = days_until(med.expiry_date, now)
    if days_to_expiry < 0:
        return Finding(AlertKind.expiry, Severity.expired, "ABGELAUFEN!")
    if days_to_expiry <= thresholds.expiry_window_days:
        return Finding(AlertKind.expiry, Severity.warning, f"Läuft bald ab (in {days_to_expiry} Tagen).")
    return None


def evaluate_medication(
    med: Medication,
    now: datetime,
    thresholds: AlertThresholds,
) -> Alert | None:
    """Stock and expiry findings for one medication, debounced and combined."""
    findings: list[Finding] = []

    stock = stock_finding(med, thresholds)
    if stock and allow_stock_alert(stock.severity, med.updated_at, now, thresholds):
        findings.append(stock)

    expiry = expiry_finding(med, now, thresholds)
    if expiry:
        findings.append(expiry)

    if not findings:
        return None

    kind = findings[0].kind if len(findings) == 1 else AlertKind.medication
    reasons = " ".join(f.reason for f in findings)
    return Alert(
        kind=kind,
        severity=highest_severity(f.severity for f in findings),
        owner_id=med.user_id,
        subject_name=med.name,
        message=f"{med.name}: {reasons}",
        record_id=med.id,
    )


def checkup_message(checkup: RecurringCheckup, days_until_due: int) -> str:
    due = format_date_de(checkup.next_due_date)
    if days_until_due < 0:
        return f'Vorsorge "{checkup.title}" WAR FÄLLIG am {due}!'
    return f'Vorsorge "{checkup.title}" fällig am {due} (in {days_until_due} Tagen)!'


def evaluate_checkup(
    checkup: RecurringCheckup,
    now: datetime,
    thresholds: AlertThresholds,
    patient_name: str | None = None,
) -> Alert | None:
    """
    Due-date reminder for one checkup.

    patient_name is set when the checkup belongs to someone the owner cares
    for; the line is then prefixed so the owner knows whose appointment it is.
    """
    if checkup.next_due_date is None:
        return None
    days_until_due = days_until(checkup.next_due_date, now)
    if days_until_due > thresholds.checkup_lead_days:
        return None
    if not allow_checkup_alert(checkup.last_notified_at, now, thresholds):
        return None

    message = checkup_message(checkup, days_until_due)
    if patient_name:
        message = f"{patient_name}: {message}"
    return Alert(
        kind=AlertKind.checkup,
        severity=Severity.warning,
        owner_id=checkup.user_id,
        subject_name=checkup.title,
        message=message,
        record_id=checkup.id,
    )
