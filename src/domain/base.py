import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlmodel import SQLModel


def generate_uuid() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Naive UTC timestamp, the form stored in every datetime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BaseModel(SQLModel):
    pass


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC already."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
