"""
One pass of the medication and checkup notification job.

  idle → evaluating → aggregating → dispatching → done
                  ↘ failed (medications could not be read)

Each scheduled invocation starts from idle; nothing about a run is
persisted except the checkups' last_notified_at and the removal of dead
push subscriptions.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime

from langfuse import observe
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from services.aggregation import aggregate_alerts
from services.alert_types import Alert, AlertThresholds
from services.alerts import evaluate_checkup, evaluate_medication
from services.notifications import DispatchResult, NotificationDispatcher
from services.push import WebPushTransport
from services.recipients import resolve_recipients
from services.record_store import RecordStore
from services.timeutils import utcnow

logger = logging.getLogger("medilog.alerts")


class RunState(str, enum.Enum):
    idle = "idle"
    evaluating = "evaluating"
    aggregating = "aggregating"
    dispatching = "dispatching"
    done = "done"
    failed = "failed"


class AlertRunError(Exception):
    """The record store could not be read; the run was aborted."""


@dataclass
class RunSummary:
    success: bool = True
    alerts_generated: int = 0
    sent: int = 0
    failed: int = 0

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "alertsGenerated": self.alerts_generated,
            "sent": self.sent,
            "failed": self.failed,
        }


class AlertRun:
    def __init__(
        self,
        store: RecordStore,
        dispatcher: NotificationDispatcher,
        thresholds: AlertThresholds | None = None,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.thresholds = thresholds or AlertThresholds.from_config()
        self.state = RunState.idle

    def _enter(self, state: RunState) -> None:
        logger.debug("Alert run %s → %s", self.state.value, state.value)
        self.state = state

    def run(self, now: datetime | None = None) -> RunSummary:
        now = now or utcnow()

        self._enter(RunState.evaluating)
        alerts = self.evaluate(now)

        self._enter(RunState.aggregating)
        names = self.store.get_profile_names(alert.owner_id for alert in alerts)
        digests = aggregate_alerts(alerts, names)

        self._enter(RunState.dispatching)
        totals = DispatchResult()
        for digest in digests:
            try:
                recipients = resolve_recipients(self.store, digest.owner_id)
            except SQLAlchemyError:
                logger.exception("Could not resolve recipients for %s", digest.owner_id)
                self.store.db.rollback()
                continue
            for recipient_id in sorted(recipients):
                totals.add(self.dispatcher.dispatch(recipient_id, digest.title, digest.body_for(recipient_id)))

        self._enter(RunState.done)
        logger.info(
            "Alert run done: alerts=%d owners=%d sent=%d failed=%d removed=%d",
            len(alerts),
            len(digests),
            totals.sent,
            totals.failed,
            totals.removed,
        )
        return RunSummary(
            success=True,
            alerts_generated=len(alerts),
            sent=totals.sent,
            failed=totals.failed,
        )

    def evaluate(self, now: datetime) -> list[Alert]:
        try:
            medications = self.store.list_medications()
        except SQLAlchemyError as exc:
            self._enter(RunState.failed)
            raise AlertRunError(f"Could not load medications: {exc}") from exc

        alerts: list[Alert] = []
        for med in medications:
            alert = evaluate_medication(med, now, self.thresholds)
            if alert:
                alerts.append(alert)

        alerts.extend(self._evaluate_checkups(now))
        return alerts

    def _evaluate_checkups(self, now: datetime) -> list[Alert]:
        try:
            checkups = self.store.list_checkups_with_due_date()
        except SQLAlchemyError:
            # Medication alerts still go out.
            logger.exception("Could not load checkups; continuing with medications only")
            self.store.db.rollback()
            return []

        patient_names = self.store.get_profile_names(
            c.patient_id for c in checkups if c.patient_id and c.patient_id != c.user_id
        )
        alerts: list[Alert] = []
        for checkup in checkups:
            patient_name = None
            if checkup.patient_id and checkup.patient_id != checkup.user_id:
                patient_name = patient_names.get(checkup.patient_id)
            alert = evaluate_checkup(checkup, now, self.thresholds, patient_name=patient_name)
            if alert:
                alerts.append(alert)

        # Marked before dispatch: a failed push still counts as notified.
        fired = [alert.record_id for alert in alerts]
        try:
            self.store.mark_checkups_notified(fired, now)
        except SQLAlchemyError:
            logger.exception("Could not mark checkups %s as notified", fired)
            self.store.db.rollback()
        return alerts


@observe(name="notification_check", capture_input=False)
def run_notification_check(
    db: Session,
    transport: WebPushTransport | None = None,
    thresholds: AlertThresholds | None = None,
    now: datetime | None = None,
) -> RunSummary:
    """Evaluate every medication and checkup and push the resulting alerts."""
    store = RecordStore(db)
    dispatcher = NotificationDispatcher(store, transport or WebPushTransport())
    return AlertRun(store, dispatcher, thresholds).run(now)
