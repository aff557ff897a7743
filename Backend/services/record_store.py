from datetime import datetime

from sqlalchemy.orm import Session

from models.care_relationship import CareRelationship, CareStatus
from models.checkup import RecurringCheckup
from models.medication import Medication
from models.push_subscription import PushSubscription
from models.user import Profile


class RecordStore:
    """Reads and the few writes the notification job needs, over one session."""

    def __init__(self, db: Session):
        self.db = db

    def list_medications(self) -> list[Medication]:
        return self.db.query(Medication).order_by(Medication.user_id, Medication.id).all()

    def list_medications_for_user(self, user_id: str) -> list[Medication]:
        return (
            self.db.query(Medication)
            .filter(Medication.user_id == user_id)
            .order_by(Medication.name.asc())
            .all()
        )

    def list_checkups_with_due_date(self) -> list[RecurringCheckup]:
        return (
            self.db.query(RecurringCheckup)
            .filter(RecurringCheckup.next_due_date.isnot(None))
            .order_by(RecurringCheckup.next_due_date.asc())
            .all()
        )

    def update_checkup_notified_at(self, checkup_id: int, timestamp: datetime) -> None:
        self.mark_checkups_notified([checkup_id], timestamp)

    def mark_checkups_notified(self, checkup_ids: list[int], timestamp: datetime) -> int:
        if not checkup_ids:
            return 0
        updated = (
            self.db.query(RecurringCheckup)
            .filter(RecurringCheckup.id.in_(checkup_ids))
            .update({"last_notified_at": timestamp}, synchronize_session="fetch")
        )
        self.db.commit()
        return updated

    def list_accepted_caregivers(self, patient_id: str) -> list[str]:
        rows = (
            self.db.query(CareRelationship.caregiver_id)
            .filter(
                CareRelationship.patient_id == patient_id,
                CareRelationship.status == CareStatus.accepted,
            )
            .all()
        )
        return [caregiver_id for (caregiver_id,) in rows]

    def get_profile_names(self, user_ids) -> dict[str, str]:
        ids = {uid for uid in user_ids if uid}
        if not ids:
            return {}
        rows = self.db.query(Profile.id, Profile.full_name).filter(Profile.id.in_(ids)).all()
        return {pid: name for pid, name in rows if name}

    def list_subscriptions(self, user_id: str) -> list[PushSubscription]:
        return (
            self.db.query(PushSubscription)
            .filter(PushSubscription.user_id == user_id)
            .order_by(PushSubscription.id)
            .all()
        )

    def list_subscribed_user_ids(self) -> list[str]:
        rows = (
            self.db.query(PushSubscription.user_id)
            .distinct()
            .order_by(PushSubscription.user_id)
            .all()
        )
        return [user_id for (user_id,) in rows]

    def delete_subscription(self, subscription_id: int) -> int:
        # Idempotent: a concurrent run may already have removed it.
        deleted = (
            self.db.query(PushSubscription)
            .filter(PushSubscription.id == subscription_id)
            .delete(synchronize_session="fetch")
        )
        self.db.commit()
        return deleted
