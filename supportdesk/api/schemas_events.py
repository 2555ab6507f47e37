from pydantic import BaseModel
from datetime import datetime
from supportdesk.db.models import AuditEventType

class AuditEventResponse(BaseModel):
    id: int
    object_type: str
    object_id: int
    event_type: AuditEventType
    payload: dict
    user_id: int | None = None
    created_at: datetime
