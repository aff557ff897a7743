from models.user import Profile
from models.medication import Medication
from models.checkup import RecurringCheckup, FrequencyUnit
from models.care_relationship import CareRelationship, CareStatus
from models.push_subscription import PushSubscription

__all__ = [
    "Profile",
    "Medication",
    "RecurringCheckup",
    "FrequencyUnit",
    "CareRelationship",
    "CareStatus",
    "PushSubscription",
]
