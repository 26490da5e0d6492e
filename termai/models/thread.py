"""Thread (persisted conversation) model."""

from datetime import datetime

from pydantic import BaseModel, Field

from termai.models.messages import Message


class Thread(BaseModel):
    """A named conversation with a stable identifier."""

    id: str
    name: str
    created_at: datetime
    updated_at: datetime
    messages: list[Message] = Field(default_factory=list)
