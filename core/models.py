from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

# Methods that carry a JSON body and therefore get a default Content-Type.
BODY_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


class SessionStatus(str, Enum):
    INITIALIZING = "Initializing"
    UNAUTHENTICATED = "Unauthenticated"
    RESOLVING = "Resolving"
    AUTHENTICATED = "Authenticated"
    INVALID = "Invalid"


@dataclass(frozen=True)
class Identity:
    id: int
    display_name: str


@dataclass(frozen=True)
class Session:
    """Point-in-time view of the session handed to consumers.

    identity is non-None only when status is AUTHENTICATED.
    """

    status: SessionStatus
    credential: Optional[str] = None
    identity: Optional[Identity] = None
    error: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.status is SessionStatus.AUTHENTICATED

    @property
    def is_settled(self) -> bool:
        return self.status not in (SessionStatus.INITIALIZING, SessionStatus.RESOLVING)


@dataclass
class RequestOptions:
    method: str = "GET"
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Wire payloads
# ---------------------------------------------------------------------------


class ProfilePayload(BaseModel):
    """Subset of the identity endpoint's user object that the client reads."""

    model_config = ConfigDict(extra="ignore")

    id: int
    name: Optional[str] = None
    slug: Optional[str] = None

    def to_identity(self) -> Identity:
        return Identity(id=self.id, display_name=self.name or self.slug or "")


class ErrorPayload(BaseModel):
    """Error envelope returned by the remote API (WordPress REST style).

    Some endpoints send a numeric code, or no usable message at all, so both
    fields are coerced before validation instead of failing the whole body.
    """

    model_config = ConfigDict(extra="ignore")

    code: Optional[str] = None
    message: Optional[str] = None

    @field_validator("code", mode="before")
    @classmethod
    def stringify_code(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)

    @field_validator("message", mode="before")
    @classmethod
    def drop_non_text_message(cls, value: Any) -> Optional[str]:
        return value if isinstance(value, str) else None


class Company(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: int = Field(alias="ID")
    name: str
    legal_name: Optional[str] = None
    document_number: Optional[str] = None
    default_flat_fee: Optional[str] = None  # DECIMAL column, serialized as a string
    contact_person: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    website: Optional[str] = None
    notes: Optional[str] = None
    status: int = 1
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
