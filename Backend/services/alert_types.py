import enum
from dataclasses import dataclass

import config


class Severity(str, enum.Enum):
    warning = "warning"
    critical = "critical"
    expired = "expired"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.warning: 1,
    Severity.critical: 2,
    Severity.expired: 3,
}


class AlertKind(str, enum.Enum):
    stock = "stock"
    expiry = "expiry"
    medication = "medication"  # stock and expiry in one line
    checkup = "checkup"


@dataclass(frozen=True)
class AlertThresholds:
    """Day thresholds for evaluation and debounce. Override per call in tests."""

    critical_days: int = 5
    low_days: int = 10
    expiry_window_days: int = 30
    stock_silence_days: float = 1
    checkup_lead_days: int = 30
    checkup_silence_days: float = 25

    @classmethod
    def from_config(cls) -> "AlertThresholds":
        return cls(
            critical_days=config.CRITICAL_DAYS,
            low_days=config.LOW_DAYS,
            expiry_window_days=config.EXPIRY_WINDOW_DAYS,
            stock_silence_days=config.STOCK_SILENCE_DAYS,
            checkup_lead_days=config.CHECKUP_LEAD_DAYS,
            checkup_silence_days=config.CHECKUP_SILENCE_DAYS,
        )


@dataclass(frozen=True)
class Finding:
    """One triggered condition on a record, before it becomes an Alert."""

    kind: AlertKind
    severity: Severity
    reason: str


@dataclass(frozen=True)
class Alert:
    kind: AlertKind
    severity: Severity
    owner_id: str
    subject_name: str
    message: str
    record_id: int | None = None


def highest_severity(severities) -> Severity:
    return max(severities, key=lambda s: s.rank)
