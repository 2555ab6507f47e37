from typing import Any, Dict

from pydantic import BaseModel, Field


class CustomerCompanyWriteRequest(BaseModel):
    user_id: int
    # keyed by mapped attribute name, e.g. CustomerID, CustomerCompanyName
    attributes: Dict[str, Any] = Field(default_factory=dict)
