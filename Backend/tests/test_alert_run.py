"""End-to-end runs of the notification job against an in-memory database."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from conftest import FakeTransport, add_care, add_checkup, add_medication, add_profile, add_subscription
from models.care_relationship import CareStatus
from models.checkup import RecurringCheckup
from models.push_subscription import PushSubscription
from services.alert_run import AlertRun, AlertRunError, RunState, run_notification_check
from services.alert_types import AlertThresholds
from services.notifications import NotificationDispatcher
from services.push import DeliveryOutcome
from services.record_store import RecordStore
from services.timeutils import as_utc


def _boom(*args, **kwargs):
    raise OperationalError("SELECT 1", {}, Exception("database is unreachable"))


@pytest.fixture
def family(db: Session) -> None:
    add_profile(db, "anna", "Anna")
    add_profile(db, "ben", "Ben")
    add_profile(db, "carla", "Carla")
    add_care(db, "anna", "ben", CareStatus.accepted)
    add_care(db, "anna", "carla", CareStatus.pending)
    add_subscription(db, "anna", "https://push.example/anna-phone")
    add_subscription(db, "anna", "https://push.example/anna-laptop")
    add_subscription(db, "ben", "https://push.example/ben-phone")
    add_subscription(db, "carla", "https://push.example/carla-phone")


class TestRunNotificationCheck:
    def test_critical_stock_reaches_patient_and_accepted_caregiver(
        self, db: Session, family: None, transport: FakeTransport, now: datetime
    ) -> None:
        add_medication(db, "anna", "Ibuprofen", 20, 5, updated_at=now - timedelta(days=3))

        summary = run_notification_check(db, transport, now=now)

        assert summary.to_dict() == {"success": True, "alertsGenerated": 1, "sent": 3, "failed": 0}
        anna_payloads = transport.payloads_for("anna")
        assert len(anna_payloads) == 2
        assert anna_payloads[0].title == "MediLog Status: Anna"
        assert anna_payloads[0].body == "Ibuprofen: DRINGEND: Reicht nur noch 4 Tage!"
        (ben_payload,) = transport.payloads_for("ben")
        assert ben_payload.body == "Anna:\nIbuprofen: DRINGEND: Reicht nur noch 4 Tage!"
        assert transport.payloads_for("carla") == []

    def test_alerts_for_one_owner_share_a_single_push(
        self, db: Session, family: None, transport: FakeTransport, now: datetime
    ) -> None:
        add_medication(db, "anna", "Ibuprofen", 20, 5, updated_at=now - timedelta(days=3))
        add_medication(
            db, "anna", "Vitamin D", 100, 2, updated_at=now, expiry_date=(now + timedelta(days=10)).date()
        )
        add_checkup(db, "anna", "Zahnarzt", (now + timedelta(days=20)).date())

        summary = run_notification_check(db, transport, now=now)

        assert summary.alerts_generated == 3
        (ben_payload,) = transport.payloads_for("ben")
        assert ben_payload.body.count("\n") == 3

    def test_checkup_is_marked_and_then_silenced(
        self, db: Session, family: None, transport: FakeTransport, now: datetime
    ) -> None:
        checkup = add_checkup(
            db, "anna", "Zahnarzt", (now + timedelta(days=20)).date(), last_notified_at=now - timedelta(days=26)
        )
        checkup_id = checkup.id

        first = run_notification_check(db, transport, now=now)
        refreshed = db.get(RecurringCheckup, checkup_id)
        second = run_notification_check(db, transport, now=now + timedelta(days=3))

        assert first.alerts_generated == 1
        assert as_utc(refreshed.last_notified_at) == now
        assert second.alerts_generated == 0

    def test_checkup_is_marked_even_when_delivery_fails(self, db: Session, now: datetime) -> None:
        add_profile(db, "anna", "Anna")
        add_subscription(db, "anna", "https://push.example/down")
        checkup = add_checkup(db, "anna", "Hautarzt", (now + timedelta(days=2)).date())
        transport = FakeTransport({"https://push.example/down": RuntimeError("503")})

        summary = run_notification_check(db, transport, now=now)

        assert summary.failed == 1
        assert db.get(RecurringCheckup, checkup.id).last_notified_at is not None

    def test_checkup_for_cared_for_patient_names_them(
        self, db: Session, family: None, transport: FakeTransport, now: datetime
    ) -> None:
        add_profile(db, "oma", "Oma Erna")
        add_checkup(db, "anna", "Augenarzt", (now + timedelta(days=5)).date(), patient_id="oma")

        run_notification_check(db, transport, now=now)

        assert transport.payloads_for("anna")[0].body.startswith("Oma Erna: Vorsorge \"Augenarzt\"")

    def test_dead_subscription_is_removed_during_run(self, db: Session, family: None, now: datetime) -> None:
        add_medication(db, "anna", "Ibuprofen", 20, 5, updated_at=now)
        transport = FakeTransport({"https://push.example/anna-laptop": DeliveryOutcome.gone})

        summary = run_notification_check(db, transport, now=now)

        assert (summary.sent, summary.failed) == (2, 1)
        endpoints = {s.endpoint for s in db.query(PushSubscription).filter_by(user_id="anna")}
        assert endpoints == {"https://push.example/anna-phone"}

    def test_quiet_run(self, db: Session, family: None, transport: FakeTransport, now: datetime) -> None:
        add_medication(db, "anna", "Metformin", 300, 2, updated_at=now)

        summary = run_notification_check(db, transport, now=now)

        assert summary.to_dict() == {"success": True, "alertsGenerated": 0, "sent": 0, "failed": 0}
        assert transport.sent == []

    def test_custom_thresholds(self, db: Session, family: None, transport: FakeTransport, now: datetime) -> None:
        add_medication(db, "anna", "Metformin", 30, 2, updated_at=now)

        summary = run_notification_check(
            db, transport, thresholds=AlertThresholds(critical_days=20, low_days=30), now=now
        )

        assert summary.alerts_generated == 1


class TestAlertRunStates:
    def test_reaches_done(self, db: Session, transport: FakeTransport, now: datetime) -> None:
        store = RecordStore(db)
        run = AlertRun(store, NotificationDispatcher(store, transport))

        assert run.state == RunState.idle
        run.run(now)
        assert run.state == RunState.done

    def test_medication_read_failure_is_fatal(
        self, db: Session, transport: FakeTransport, now: datetime, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        store = RecordStore(db)
        monkeypatch.setattr(store, "list_medications", _boom)
        run = AlertRun(store, NotificationDispatcher(store, transport))

        with pytest.raises(AlertRunError, match="Could not load medications"):
            run.run(now)
        assert run.state == RunState.failed

    def test_checkup_read_failure_keeps_medication_alerts(
        self,
        db: Session,
        family: None,
        transport: FakeTransport,
        now: datetime,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        add_medication(db, "anna", "Ibuprofen", 20, 5, updated_at=now)
        store = RecordStore(db)
        monkeypatch.setattr(store, "list_checkups_with_due_date", _boom)

        summary = AlertRun(store, NotificationDispatcher(store, transport)).run(now)

        assert summary.alerts_generated == 1
        assert summary.sent == 3


class TestDispatchFailures:
    @pytest.fixture
    def two_patients(self, db: Session, now: datetime) -> None:
        add_profile(db, "anna", "Anna")
        add_profile(db, "zoe", "Zoe")
        add_subscription(db, "anna", "https://push.example/anna-phone")
        add_subscription(db, "zoe", "https://push.example/zoe-phone")
        add_medication(db, "anna", "Ibuprofen", 20, 5, updated_at=now)
        add_medication(db, "zoe", "Aspirin", 2, 1, updated_at=now)

    def test_subscription_read_failure_skips_only_that_recipient(
        self,
        db: Session,
        two_patients: None,
        transport: FakeTransport,
        now: datetime,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        store = RecordStore(db)
        list_subscriptions = store.list_subscriptions

        def flaky(user_id: str):
            if user_id == "anna":
                _boom()
            return list_subscriptions(user_id)

        monkeypatch.setattr(store, "list_subscriptions", flaky)
        run = AlertRun(store, NotificationDispatcher(store, transport))

        summary = run.run(now)

        assert run.state == RunState.done
        assert summary.to_dict() == {"success": True, "alertsGenerated": 2, "sent": 1, "failed": 0}
        assert transport.payloads_for("anna") == []
        assert len(transport.payloads_for("zoe")) == 1

    def test_failed_cleanup_counts_device_as_failed(
        self, db: Session, two_patients: None, now: datetime, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        transport = FakeTransport({"https://push.example/anna-phone": DeliveryOutcome.gone})
        store = RecordStore(db)
        monkeypatch.setattr(store, "delete_subscription", _boom)

        summary = AlertRun(store, NotificationDispatcher(store, transport)).run(now)

        assert (summary.sent, summary.failed) == (1, 1)
        assert len(transport.payloads_for("zoe")) == 1


class TestCheckupMarking:
    def test_fired_checkups_are_marked_in_one_commit(
        self,
        db: Session,
        transport: FakeTransport,
        now: datetime,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        add_profile(db, "anna", "Anna")
        ids = [
            add_checkup(db, "anna", title, (now + timedelta(days=days)).date()).id
            for title, days in [("Zahnarzt", 3), ("Hautarzt", 10), ("Augenarzt", 20), ("Hausarzt", 90)]
        ]
        commits = []
        commit = db.commit

        def counting_commit() -> None:
            commits.append(1)
            commit()

        monkeypatch.setattr(db, "commit", counting_commit)
        store = RecordStore(db)

        alerts = AlertRun(store, NotificationDispatcher(store, transport)).evaluate(now)

        assert len(alerts) == 3
        assert len(commits) == 1
        marked = [db.get(RecurringCheckup, checkup_id).last_notified_at for checkup_id in ids]
        assert [as_utc(ts) if ts else None for ts in marked] == [now, now, now, None]

    def test_mark_failure_keeps_alerts(
        self, db: Session, transport: FakeTransport, now: datetime, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        add_profile(db, "anna", "Anna")
        add_checkup(db, "anna", "Zahnarzt", (now + timedelta(days=3)).date())
        store = RecordStore(db)
        monkeypatch.setattr(store, "mark_checkups_notified", _boom)

        alerts = AlertRun(store, NotificationDispatcher(store, transport)).evaluate(now)

        assert len(alerts) == 1

    def test_single_checkup_update(self, db: Session, now: datetime) -> None:
        add_profile(db, "anna", "Anna")
        checkup = add_checkup(db, "anna", "Zahnarzt", (now + timedelta(days=3)).date())

        RecordStore(db).update_checkup_notified_at(checkup.id, now)

        assert as_utc(db.get(RecurringCheckup, checkup.id).last_notified_at) == now
