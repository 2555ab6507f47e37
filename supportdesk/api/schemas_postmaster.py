from pydantic import BaseModel, Field


class LoopProtectionRequest(BaseModel):
    recipient: str = Field(min_length=1, max_length=255)


class LoopProtectionResponse(BaseModel):
    recipient: str
    allowed: bool | None = None
    recorded: bool | None = None
