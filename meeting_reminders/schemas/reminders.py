from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MeetingSummary(_CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    date: datetime
    location: Optional[str] = None
    date_human: str
    time_human: str


class ReviewResponse(_CamelModel):
    ok: bool = True
    meeting: MeetingSummary
    organizer_name: str
    group_name: str
    attendee_count: int
    recipient_count: int
    timezone: str
    expires_at: datetime


class ConfirmSubmission(BaseModel):
    description: Optional[str] = None
    message: Optional[str] = None


class ConfirmResponse(_CamelModel):
    success: bool = True
    attendee_count: int


class GenerateResponse(BaseModel):
    success: bool = True
    processed: int
    skipped: int
    errors: List[str] = []
