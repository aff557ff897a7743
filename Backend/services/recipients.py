from services.record_store import RecordStore


def resolve_recipients(store: RecordStore, owner_id: str) -> set[str]:
    """The patient plus every caregiver whose relationship is accepted.

    Caregivers of caregivers are not included.
    """
    recipients = {owner_id}
    recipients.update(store.list_accepted_caregivers(owner_id))
    return recipients
