from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel

from enums import HelpRequestStatus, UserRole, UserStatus


def utcnow() -> datetime:
    """Naive UTC timestamp, stored in plain (timezone-less) DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True, max_length=50)
    password_hash: Optional[str] = None
    contact_number: Optional[str] = Field(default=None, max_length=20)
    role: str = UserRole.USER.value
    status: str = UserStatus.ACTIVE.value

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)


class RefreshToken(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    token: str = Field(index=True, unique=True)
    expires_at: datetime = Field(sa_type=DateTime)

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)


class HelpRequest(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[int] = Field(default=None, foreign_key="user.id")

    lat: float
    lng: float
    urgency: str = Field(index=True)  # LOW | MEDIUM | HIGH
    short_note: Optional[str] = None
    approx_area: Optional[str] = None
    contact_type: Optional[str] = None
    contact: Optional[str] = None
    name: Optional[str] = None

    total_people: int = 1
    elders: int = 0
    children: int = 0
    pets: int = 0
    # list of ration item ids
    ration_items: List[str] = Field(default_factory=list, sa_column=Column(JSON))

    status: str = Field(default=HelpRequestStatus.OPEN.value, index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime, index=True)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)


class Donation(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    help_request_id: int = Field(foreign_key="helprequest.id", index=True)
    donator_id: int = Field(foreign_key="user.id", index=True)

    # ration item id -> pledged quantity
    ration_items: Dict[str, int] = Field(default_factory=dict, sa_column=Column(JSON))

    donator_marked_scheduled: bool = False
    donator_marked_completed: bool = False
    owner_marked_completed: bool = False

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)


class Item(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    description: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
