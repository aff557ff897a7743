import hmac

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

import config
from database import get_db
from schemas.notification import InventoryReportOut, PushTestIn, PushTestOut, RunSummaryOut
from services.alert_run import AlertRunError, run_notification_check
from services.inventory_report import send_weekly_inventory_report
from services.notifications import send_test_notification
from services.push import WebPushTransport
from services.record_store import RecordStore

router = APIRouter(prefix="/jobs", tags=["Jobs"])


def get_push_transport() -> WebPushTransport:
    return WebPushTransport()


def require_job_key(
    key: str = Query(default=""),
    authorization: str = Header(default=""),
) -> None:
    """Scheduler hooks pass the key as ?key= or as a Bearer token."""
    if not config.JOB_RUN_KEY:
        raise HTTPException(status_code=503, detail="JOB_RUN_KEY is not configured")
    supplied = key
    if not supplied and authorization.lower().startswith("bearer "):
        supplied = authorization[7:].strip()
    if not hmac.compare_digest(supplied, config.JOB_RUN_KEY):
        raise HTTPException(status_code=401, detail="Invalid job key")


@router.api_route(
    "/check-notifications",
    methods=["GET", "POST"],
    response_model=RunSummaryOut,
    dependencies=[Depends(require_job_key)],
)
def check_notifications(
    db: Session = Depends(get_db),
    transport: WebPushTransport = Depends(get_push_transport),
):
    """External scheduler hook: evaluates all medications and checkups and pushes alerts."""
    try:
        summary = run_notification_check(db, transport)
    except AlertRunError as exc:
        return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})
    return RunSummaryOut(
        success=summary.success,
        alerts_generated=summary.alerts_generated,
        sent=summary.sent,
        failed=summary.failed,
    )


@router.api_route(
    "/inventory-report",
    methods=["GET", "POST"],
    response_model=InventoryReportOut,
    dependencies=[Depends(require_job_key)],
)
def inventory_report(
    db: Session = Depends(get_db),
    transport: WebPushTransport = Depends(get_push_transport),
):
    """Weekly stock digest for every user with a registered device."""
    summary = send_weekly_inventory_report(db, transport)
    return InventoryReportOut(
        success=summary.success,
        users_notified=summary.users_notified,
        sent=summary.sent,
        failed=summary.failed,
    )


@router.post(
    "/test-notification",
    response_model=PushTestOut,
    dependencies=[Depends(require_job_key)],
)
def test_notification(
    data: PushTestIn,
    db: Session = Depends(get_db),
    transport: WebPushTransport = Depends(get_push_transport),
):
    return send_test_notification(RecordStore(db), transport, data.user_id, data.message)
