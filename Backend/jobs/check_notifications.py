import logging

from config import LOG_LEVEL
from database import SessionLocal
from services.alert_run import AlertRunError, run_notification_check
from services.tracing import configure_langfuse


def main() -> int:
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    configure_langfuse()
    db = SessionLocal()
    try:
        summary = run_notification_check(db)
    except AlertRunError as exc:
        print(f"Notification check failed: {exc}")
        return 1
    finally:
        db.close()
    print(f"Notification check: {summary.to_dict()}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
