from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from enums import ContactType, HelpRequestStatus, Urgency, UserRole, UserStatus


class ApiModel(BaseModel):
    """Wire models: snake_case in Python, camelCase in JSON."""

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


# ---------------------------------------------------------------- users


class UserCreate(ApiModel):
    # length rules for username/password live in UserService so the
    # caller gets the register-or-login messages rather than a schema error
    username: str
    password: Optional[str] = None
    contact_number: Optional[str] = Field(
        default=None,
        min_length=8,
        max_length=20,
        pattern=r"^[\d\s\-\+\(\)]+$",
    )


class UserRead(ApiModel):
    id: int
    username: str
    contact_number: Optional[str] = None
    role: UserRole
    status: UserStatus
    created_at: Optional[datetime] = None


class LoginResponse(ApiModel):
    user: UserRead
    access_token: str
    refresh_token: str


class RefreshTokenRequest(ApiModel):
    refresh_token: str = Field(min_length=1)


class AccessTokenResponse(ApiModel):
    access_token: str


# ---------------------------------------------------------- help requests


class HelpRequestCreate(ApiModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    urgency: Urgency
    short_note: Optional[str] = Field(default=None, max_length=500)
    approx_area: Optional[str] = Field(default=None, max_length=255)
    contact_type: ContactType = ContactType.NONE
    contact: Optional[str] = Field(default=None, max_length=100)
    name: Optional[str] = Field(default=None, max_length=100)
    total_people: int = Field(default=1, ge=1)
    elders: int = Field(default=0, ge=0)
    children: int = Field(default=0, ge=0)
    pets: int = Field(default=0, ge=0)
    ration_items: List[str] = Field(default_factory=list)

    @field_validator("ration_items")
    @classmethod
    def _unique_ration_items(cls, value: List[str]) -> List[str]:
        # a set of item ids, first occurrence keeps its position
        return list(dict.fromkeys(value))


class HelpRequestRead(ApiModel):
    id: int
    user_id: Optional[int] = None
    lat: float
    lng: float
    urgency: Urgency
    short_note: Optional[str] = None
    approx_area: Optional[str] = None
    contact_type: Optional[str] = None
    contact: Optional[str] = None
    name: Optional[str] = None
    total_people: int
    elders: int
    children: int
    pets: int
    ration_items: List[str]
    status: HelpRequestStatus
    created_at: datetime
    updated_at: Optional[datetime] = None


class PeopleSummary(ApiModel):
    total_people: int = 0
    elders: int = 0
    children: int = 0
    pets: int = 0


class HelpRequestSummary(ApiModel):
    total: int
    by_urgency: Dict[str, int]
    by_status: Dict[str, int]
    by_district: Dict[str, int]
    people: PeopleSummary
    ration_items: Dict[str, int]


# -------------------------------------------------------------- donations


class DonationCreate(ApiModel):
    # overridden by the path parameter when posted to a help request
    help_request_id: Optional[int] = None
    ration_items: Dict[str, int]


class DonationRead(ApiModel):
    id: int
    help_request_id: int
    donator_id: int
    ration_items: Dict[str, int]
    donator_marked_scheduled: bool
    donator_marked_completed: bool
    owner_marked_completed: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DonationWithDonatorRead(DonationRead):
    donator_username: Optional[str] = None
    # only filled in for the owner of the help request
    donator_contact_number: Optional[str] = None


# ------------------------------------------------------------------ items


class ItemCreate(ApiModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)


class ItemUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)


class ItemRead(ApiModel):
    id: int
    name: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None
