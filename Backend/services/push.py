import enum
import logging
from dataclasses import dataclass

from pywebpush import WebPushException, webpush

from config import (
    PUSH_TIMEOUT_SECONDS,
    PUSH_TTL_SECONDS,
    VAPID_PRIVATE_KEY,
    VAPID_SUBJECT,
)
from models.push_subscription import PushSubscription
from schemas.notification import PushPayload

logger = logging.getLogger("medilog.push")

# Push services answer these when the browser dropped the subscription.
GONE_STATUS_CODES = (404, 410)


class DeliveryOutcome(str, enum.Enum):
    sent = "sent"
    gone = "gone"
    failed = "failed"


class PushGoneError(Exception):
    """Raised when the push service reports the endpoint no longer exists."""

    def __init__(self, endpoint: str):
        self.endpoint = endpoint
        super().__init__(f"Push subscription gone: {endpoint[:60]}")


class PushDeliveryError(Exception):
    """Raised when push delivery fails for any other reason."""


@dataclass(frozen=True)
class DeviceTarget:
    """Detached copy of a subscription row, safe to hand to worker threads."""

    subscription_id: int
    user_id: str
    endpoint: str
    p256dh: str
    auth: str

    @classmethod
    def from_model(cls, sub: PushSubscription) -> "DeviceTarget":
        return cls(
            subscription_id=sub.id,
            user_id=sub.user_id,
            endpoint=sub.endpoint,
            p256dh=sub.p256dh,
            auth=sub.auth,
        )

    def subscription_info(self) -> dict:
        return {
            "endpoint": self.endpoint,
            "keys": {"p256dh": self.p256dh, "auth": self.auth},
        }


class WebPushTransport:
    """Encrypted Web Push delivery signed with the app's VAPID key pair."""

    def __init__(
        self,
        vapid_private_key: str = VAPID_PRIVATE_KEY,
        vapid_subject: str = VAPID_SUBJECT,
        ttl: int = PUSH_TTL_SECONDS,
        timeout: float = PUSH_TIMEOUT_SECONDS,
    ):
        self.vapid_private_key = vapid_private_key
        self.vapid_subject = vapid_subject
        self.ttl = ttl
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.vapid_private_key and self.vapid_subject)

    def send(self, target: DeviceTarget, payload: PushPayload) -> DeliveryOutcome:
        try:
            self._send(target, payload.model_dump_json())
        except PushGoneError:
            return DeliveryOutcome.gone
        except PushDeliveryError as exc:
            logger.warning("Push delivery failed for subscription %s: %s", target.subscription_id, exc)
            return DeliveryOutcome.failed
        return DeliveryOutcome.sent

    def _send(self, target: DeviceTarget, payload_json: str) -> None:
        if not self.configured:
            raise PushDeliveryError("VAPID keys are not configured")
        try:
            webpush(
                subscription_info=target.subscription_info(),
                data=payload_json,
                vapid_private_key=self.vapid_private_key,
                # webpush() fills in aud/exp on the dict it is given.
                vapid_claims={"sub": self.vapid_subject},
                ttl=self.ttl,
                timeout=self.timeout,
            )
        except WebPushException as exc:
            response = getattr(exc, "response", None)
            if response is not None and response.status_code in GONE_STATUS_CODES:
                raise PushGoneError(target.endpoint) from exc
            raise PushDeliveryError(str(exc)) from exc
        except Exception as exc:
            raise PushDeliveryError(str(exc)) from exc
