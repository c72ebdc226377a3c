"""Data models for marketplace jobs, offers, users and notifications"""
from datetime import datetime
from enum import Enum
from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .errors import DecodeError


class WireModel(BaseModel):
    """Base for models exchanged with the backend (camelCase on the wire)"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    def to_payload(self) -> dict:
        """Serialize to a camelCase JSON body, leaving out unset and empty fields"""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True, exclude_none=True)


class Role(str, Enum):
    CLIENT = "client"
    LABOUR = "labour"


class JobStatus(str, Enum):
    OPEN = "open"
    RESERVED = "reserved"
    CLOSED = "closed"


# Legacy spellings still returned by older backend builds
JOB_STATUS_ALIASES = {
    "accepted": JobStatus.RESERVED.value,
    "completed": JobStatus.CLOSED.value,
}


class OfferStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Job(WireModel):
    """A posted task owned by a client"""
    id: str
    title: str
    description: str = ""
    location: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    budget: float

    # Media
    images: list[str] = Field(default_factory=list)
    video: Optional[str] = None

    created_at: datetime
    status: JobStatus

    # Parties
    created_by: str
    accepted_by: Optional[str] = None
    close_requested_by: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def _canonical_status(cls, value: Any) -> Any:
        if isinstance(value, str):
            return JOB_STATUS_ALIASES.get(value, value)
        return value

    @field_validator("images", mode="before")
    @classmethod
    def _images_default(cls, value: Any) -> Any:
        return [] if value is None else value

    @model_validator(mode="after")
    def _close_request_only_while_reserved(self) -> "Job":
        if self.status != JobStatus.RESERVED:
            self.close_requested_by = None
        return self

    @property
    def has_close_request(self) -> bool:
        return self.status == JobStatus.RESERVED and bool(self.close_requested_by)


class JobMapItem(Job):
    """A job that carries coordinates for the map view"""
    latitude: float
    longitude: float


class Offer(WireModel):
    """A worker's price proposal against an open job"""
    id: str
    job_id: str
    created_by: Optional[str] = None
    proposed_price: float = Field(ge=0)
    message: str = ""
    created_at: datetime
    status: OfferStatus

    @property
    def is_pending(self) -> bool:
        return self.status == OfferStatus.PENDING


class User(WireModel):
    """A marketplace account"""
    id: str
    name: str
    email: str
    role: Role

    # Profile
    avatar_url: Optional[str] = None
    location: Optional[str] = None
    bio: Optional[str] = None
    skills: list[str] = Field(default_factory=list)
    years_of_experience: Optional[int] = None
    company_name: Optional[str] = None
    profile_completed: bool = False

    @field_validator("skills", mode="before")
    @classmethod
    def _skills_default(cls, value: Any) -> Any:
        return [] if value is None else value

    def missing_profile_fields(self) -> list[str]:
        """Profile fields this user's role is expected to fill in but hasn't"""
        if self.role == Role.LABOUR:
            checks = {
                "location": self.location,
                "bio": self.bio,
                "skills": self.skills,
                "years_of_experience": self.years_of_experience,
            }
        else:
            checks = {
                "location": self.location,
                "company_name": self.company_name,
            }
        return [name for name, value in checks.items() if value in (None, "", [])]


class Notification(WireModel):
    id: str
    message: str
    created_at: datetime
    read: bool = False
    job_id: Optional[str] = None
    offer_id: Optional[str] = None


class NotificationsPage(WireModel):
    notifications: list[Notification] = Field(default_factory=list)
    unread_count: Optional[int] = None

    @model_validator(mode="after")
    def _count_unread(self) -> "NotificationsPage":
        if self.unread_count is None:
            self.unread_count = sum(1 for n in self.notifications if not n.read)
        return self


class UserJobs(WireModel):
    """Jobs a user created and jobs they are working on"""
    created: list[Job] = Field(default_factory=list)
    working_on: list[Job] = Field(default_factory=list)


class UploadResult(WireModel):
    images: list[str] = Field(default_factory=list)
    video: Optional[str] = None


# Request payloads

class JobDraft(WireModel):
    title: str
    description: str
    location: str
    budget: float = Field(ge=0)
    images: list[str] = Field(default_factory=list)
    video: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    def to_payload(self) -> dict:
        # Required fields must always be sent, even when left at their defaults
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class JobUpdate(WireModel):
    title: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    budget: Optional[float] = Field(default=None, ge=0)
    images: Optional[list[str]] = None
    video: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class UserUpdate(WireModel):
    name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    location: Optional[str] = None
    bio: Optional[str] = None
    profile_completed: Optional[bool] = None
    skills: Optional[list[str]] = None
    years_of_experience: Optional[int] = None
    company_name: Optional[str] = None


class OfferDraft(WireModel):
    proposed_price: float
    message: str


M = TypeVar("M", bound=BaseModel)


def decode(model: type[M], payload: Any, what: str) -> M:
    """Validate a decoded JSON body against a model, failing closed"""
    if not isinstance(payload, dict):
        raise DecodeError(f"Invalid response from server: expected a {what} object")
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise DecodeError(f"Invalid {what} in server response: {_summarize(e)}") from e


def decode_list(model: type[M], payload: Any, what: str) -> list[M]:
    """Validate a JSON array of entities"""
    if not isinstance(payload, list):
        raise DecodeError(f"Invalid response from server: expected a list of {what}")
    return [decode(model, item, what) for item in payload]


def _summarize(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"]) or "body"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)
