from dataclasses import dataclass, field

from config import APP_NAME
from services.alert_types import Alert

DEFAULT_DISPLAY_NAME = "Patient"


@dataclass
class OwnerDigest:
    """All alert lines for one owning user in a single run."""

    owner_id: str
    display_name: str
    lines: list[str] = field(default_factory=list)

    @property
    def title(self) -> str:
        return f"{APP_NAME} Status: {self.display_name}"

    @property
    def body(self) -> str:
        return "\n".join(self.lines)

    def body_for(self, recipient_id: str) -> str:
        if recipient_id == self.owner_id:
            return self.body
        # Caregivers need to know whose data this is.
        return f"{self.display_name}:\n{self.body}"


def aggregate_alerts(alerts: list[Alert], display_names: dict[str, str]) -> list[OwnerDigest]:
    """Group alerts by owning user, keeping first-seen order of owners and lines."""
    digests: dict[str, OwnerDigest] = {}
    for alert in alerts:
        digest = digests.get(alert.owner_id)
        if digest is None:
            digest = OwnerDigest(
                owner_id=alert.owner_id,
                display_name=display_names.get(alert.owner_id) or DEFAULT_DISPLAY_NAME,
            )
            digests[alert.owner_id] = digest
        digest.lines.append(alert.message)
    return list(digests.values())
