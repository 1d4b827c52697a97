from typing import Optional
from pydantic import BaseModel
from datetime import datetime

class NotificationResponse(BaseModel):
    id: int
    user_id: int
    event: str
    document_id: Optional[int] = None
    title: str
    message: str
    read: bool = False
    created_at: datetime

    model_config = {"from_attributes": True}

class UnreadCountResponse(BaseModel):
    unread: int
