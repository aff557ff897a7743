import logging

from config import LOG_LEVEL
from database import SessionLocal
from services.inventory_report import send_weekly_inventory_report
from services.tracing import configure_langfuse


def main() -> int:
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    configure_langfuse()
    db = SessionLocal()
    try:
        summary = send_weekly_inventory_report(db)
    finally:
        db.close()
    print(f"Inventory report: {summary.to_dict()}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
