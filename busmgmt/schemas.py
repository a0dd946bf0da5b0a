"""Schemas for Service Bus management objects and recorded traffic.

Management API resources use PascalCase field names on the wire; the models
below expose snake_case attributes and accept either form.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional, Annotated

from pydantic import BaseModel as PydanticBaseModel
from pydantic import ConfigDict, Field, field_validator, model_validator

NonEmptyStr = Annotated[str, Field(min_length=1)]


class BaseModel(PydanticBaseModel):
    """Base model for management API objects."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class NamespaceStatus(str, Enum):
    """Provisioning status of a namespace."""

    ACTIVATING = "Activating"
    ACTIVE = "Active"
    UNKNOWN = "Unknown"

    @classmethod
    def _missing_(cls, value: object) -> "NamespaceStatus":
        # Statuses we don't model (e.g. "Disabled") are terminal.
        return cls.UNKNOWN

    @property
    def is_terminal(self) -> bool:
        return self is not NamespaceStatus.ACTIVATING


class Namespace(BaseModel):
    """A region-scoped messaging namespace."""

    name: str = Field(alias="Name")
    region: str = Field(alias="Region")
    status: NamespaceStatus = Field(default=NamespaceStatus.UNKNOWN, alias="Status")
    created_at: Optional[datetime] = Field(default=None, alias="CreatedAt")
    default_key: Optional[str] = Field(default=None, alias="DefaultKey")
    service_bus_endpoint: Optional[str] = Field(
        default=None, alias="ServiceBusEndpoint"
    )

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> Any:
        if value is None:
            return NamespaceStatus.UNKNOWN
        if isinstance(value, str):
            return NamespaceStatus(value)
        return value


class Region(BaseModel):
    """A region in which namespaces can be created."""

    code: NonEmptyStr = Field(alias="Code")
    full_name: NonEmptyStr = Field(alias="FullName")


class NamespaceAvailability(BaseModel):
    """Result of a namespace name availability check."""

    result: bool = Field(alias="Result")
    reason: Optional[str] = Field(default=None, alias="Reason")


class TransportMode(str, Enum):
    """Whether traffic hits the network and whether it is captured."""

    LIVE = "live"
    RECORD = "record"
    REPLAY = "replay"


class FixtureRequest(BaseModel):
    """Recorded request, with secrets replaced by placeholders."""

    method: str
    path: str
    body: Any = None

    @property
    def signature(self) -> str:
        return f"{self.method} {self.path}"


class FixtureResponse(BaseModel):
    """Recorded response."""

    status_code: int
    headers: dict[str, str] = Field(default_factory=dict)
    body: str = ""


class FixtureEntry(BaseModel):
    """A single recorded request and its outcome.

    The outcome is either a response or, when the request never got one,
    the transport error it failed with.
    """

    request: FixtureRequest
    response: Optional[FixtureResponse] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def one_outcome(self) -> "FixtureEntry":
        if (self.response is None) == (self.error is None):
            raise ValueError("Exactly one of response and error must be set.")
        return self


class FixtureFile(BaseModel):
    """On-disk representation of one test's recorded traffic."""

    names: list[str] = Field(default_factory=list)
    entries: list[FixtureEntry] = Field(default_factory=list)
