from datetime import datetime
from typing import Literal, Optional

from pydantic import Field

from eprojects.schemas.common import ApiModel

NotificationType = Literal["info", "warning", "success", "error", "chat"]
TargetRole = Literal["all", "E-BASIC", "E-TOOL", "E-MASTER", "admin"]


class NotificationCreate(ApiModel):
    title: str = Field(min_length=3)
    message: str = Field(min_length=5)
    type: NotificationType = "info"
    target_role: TargetRole = "all"
    link: Optional[str] = None
    user_id: Optional[int] = None
    expires_at: Optional[datetime] = None


class BulkNotificationCreate(ApiModel):
    title: str = Field(min_length=3)
    message: str = Field(min_length=5)
    type: NotificationType = "info"
    target_role: TargetRole = "all"
    link: Optional[str] = None


class NotificationOut(ApiModel):
    id: int
    title: str
    message: str
    type: str
    link: Optional[str] = None
    target_role: str
    is_read: bool
    user_id: Optional[int] = None
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
