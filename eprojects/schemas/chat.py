from datetime import datetime
from typing import Optional

from pydantic import Field

from eprojects.schemas.common import ApiModel


class ThreadCreate(ApiModel):
    subject: str = Field(min_length=1)


class ThreadOut(ApiModel):
    id: int
    user_id: int
    subject: str
    status: str
    is_user_unread: bool
    is_admin_unread: bool
    last_message_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    user_name: Optional[str] = None


class MessageCreate(ApiModel):
    message: str = Field(min_length=1)


class MessageOut(ApiModel):
    id: int
    thread_id: int
    user_id: int
    message: str
    is_admin_message: bool
    created_at: Optional[datetime] = None
