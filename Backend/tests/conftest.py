"""Shared fixtures: an in-memory database and a push transport that records sends."""

from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import threading
from collections.abc import Iterator
from datetime import date, datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from database import Base
from models.care_relationship import CareRelationship, CareStatus
from models.checkup import RecurringCheckup
from models.medication import Medication
from models.push_subscription import PushSubscription
from models.user import Profile
from schemas.notification import PushPayload
from services.push import DeliveryOutcome, DeviceTarget

NOW = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)


class FakeTransport:
    """Stands in for WebPushTransport; outcomes are chosen per endpoint."""

    def __init__(self, outcomes: dict[str, DeliveryOutcome] | None = None) -> None:
        self.outcomes = outcomes or {}
        self.sent: list[tuple[DeviceTarget, PushPayload]] = []
        self._lock = threading.Lock()

    def send(self, target: DeviceTarget, payload: PushPayload) -> DeliveryOutcome:
        with self._lock:
            self.sent.append((target, payload))
        outcome = self.outcomes.get(target.endpoint, DeliveryOutcome.sent)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def payloads_for(self, user_id: str) -> list[PushPayload]:
        return [payload for target, payload in self.sent if target.user_id == user_id]


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def db() -> Iterator[Session]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


def add_profile(db: Session, user_id: str, full_name: str | None = None) -> Profile:
    profile = Profile(id=user_id, full_name=full_name)
    db.add(profile)
    db.commit()
    return profile


def add_medication(
    db: Session,
    user_id: str,
    name: str,
    current_stock: int,
    daily_dosage: float,
    updated_at: datetime,
    expiry_date: date | None = None,
) -> Medication:
    med = Medication(
        user_id=user_id,
        name=name,
        current_stock=current_stock,
        daily_dosage=daily_dosage,
        expiry_date=expiry_date,
        updated_at=updated_at,
    )
    db.add(med)
    db.commit()
    return med


def add_checkup(
    db: Session,
    user_id: str,
    title: str,
    next_due_date: date | None,
    last_notified_at: datetime | None = None,
    patient_id: str | None = None,
) -> RecurringCheckup:
    checkup = RecurringCheckup(
        user_id=user_id,
        patient_id=patient_id,
        title=title,
        frequency_value=6,
        next_due_date=next_due_date,
        last_notified_at=last_notified_at,
    )
    db.add(checkup)
    db.commit()
    return checkup


def add_subscription(db: Session, user_id: str, endpoint: str) -> PushSubscription:
    sub = PushSubscription(user_id=user_id, endpoint=endpoint, p256dh="p256dh-key", auth="auth-secret")
    db.add(sub)
    db.commit()
    return sub


def add_care(db: Session, patient_id: str, caregiver_id: str, status: CareStatus) -> CareRelationship:
    rel = CareRelationship(patient_id=patient_id, caregiver_id=caregiver_id, status=status)
    db.add(rel)
    db.commit()
    return rel
