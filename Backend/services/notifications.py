import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from config import APP_NAME, PUSH_DEFAULT_URL, PUSH_MAX_CONCURRENCY
from schemas.notification import PushPayload
from services.push import DeliveryOutcome, DeviceTarget, WebPushTransport
from services.record_store import RecordStore

logger = logging.getLogger("medilog.notifications")


@dataclass
class DispatchResult:
    sent: int = 0
    failed: int = 0
    removed: int = 0

    def add(self, other: "DispatchResult") -> None:
        self.sent += other.sent
        self.failed += other.failed
        self.removed += other.removed

    def to_dict(self) -> dict:
        return {"sent": self.sent, "failed": self.failed}


class NotificationDispatcher:
    """
    Sends one push message to every registered device of a recipient.

    Device sends run on a bounded thread pool and never short-circuit each
    other. The session is only used from the calling thread: subscriptions
    are read and copied before the fan-out, dead ones deleted after it.
    """

    def __init__(
        self,
        store: RecordStore,
        transport: WebPushTransport,
        max_workers: int = PUSH_MAX_CONCURRENCY,
    ):
        self.store = store
        self.transport = transport
        self.max_workers = max(max_workers, 1)

    def dispatch(
        self,
        recipient_id: str,
        title: str,
        body: str,
        url: str = PUSH_DEFAULT_URL,
    ) -> DispatchResult:
        result = DispatchResult()
        try:
            subscriptions = self.store.list_subscriptions(recipient_id)
        except SQLAlchemyError:
            logger.exception("Could not load push subscriptions for user %s", recipient_id)
            self.store.db.rollback()
            return result
        if not subscriptions:
            logger.debug("No push subscriptions for user %s", recipient_id)
            return result

        targets = [DeviceTarget.from_model(sub) for sub in subscriptions]
        payload = PushPayload(title=title, body=body, url=url)

        for target, outcome in self._deliver_all(targets, payload):
            if outcome == DeliveryOutcome.sent:
                result.sent += 1
            elif outcome == DeliveryOutcome.gone:
                logger.info(
                    "Removing expired push subscription %s of user %s",
                    target.subscription_id,
                    recipient_id,
                )
                result.failed += 1
                try:
                    self.store.delete_subscription(target.subscription_id)
                except SQLAlchemyError:
                    logger.exception("Could not remove push subscription %s", target.subscription_id)
                    self.store.db.rollback()
                    continue
                result.removed += 1
            else:
                result.failed += 1

        if result.failed:
            logger.info(
                "Push delivery summary for user %s: total=%d sent=%d failed=%d removed=%d",
                recipient_id,
                len(targets),
                result.sent,
                result.failed,
                result.removed,
            )
        return result

    def _deliver_all(self, targets: list[DeviceTarget], payload: PushPayload):
        if len(targets) == 1:
            return [(targets[0], self._deliver_one(targets[0], payload))]
        workers = min(self.max_workers, len(targets))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="push") as pool:
            futures = [(target, pool.submit(self._deliver_one, target, payload)) for target in targets]
            return [(target, future.result()) for target, future in futures]

    def _deliver_one(self, target: DeviceTarget, payload: PushPayload) -> DeliveryOutcome:
        try:
            return self.transport.send(target, payload)
        except Exception:
            # One broken device must not take down the rest of the batch.
            logger.exception("Push send crashed for subscription %s", target.subscription_id)
            return DeliveryOutcome.failed


def send_test_notification(
    store: RecordStore,
    transport: WebPushTransport,
    user_id: str,
    message: str,
) -> dict:
    if not store.list_subscriptions(user_id):
        logger.info("Test notification skipped: no subscriptions for %s", user_id)
        return {"success": False, "sent": 0, "failed": 0, "error": "No subscriptions found"}
    result = NotificationDispatcher(store, transport).dispatch(user_id, APP_NAME, message)
    return {"success": result.sent > 0, **result.to_dict(), "error": None}
