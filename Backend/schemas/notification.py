from pydantic import BaseModel, ConfigDict, Field

from config import PUSH_DEFAULT_URL, PUSH_ICON


class PushPayload(BaseModel):
    """Wire shape the service worker expects in every push message."""

    title: str
    body: str
    icon: str = PUSH_ICON
    url: str = PUSH_DEFAULT_URL


class RunSummaryOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    alerts_generated: int = Field(default=0, serialization_alias="alertsGenerated")
    sent: int = 0
    failed: int = 0


class InventoryReportOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    users_notified: int = Field(default=0, serialization_alias="usersNotified")
    sent: int = 0
    failed: int = 0


class PushTestIn(BaseModel):
    user_id: str = Field(min_length=1, max_length=36)
    message: str = Field(default="Test-Benachrichtigung", min_length=1, max_length=500)


class PushTestOut(BaseModel):
    success: bool
    sent: int = 0
    failed: int = 0
    error: str | None = None
