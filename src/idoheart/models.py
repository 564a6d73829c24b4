"""Referral models shared by the API client and the local store."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

# yyyy-MM-dd'T'HH:mm:ss.SSSZ on the wire, e.g. 2025-03-22T10:15:30.123+1100
TIMESTAMP_FORMATS = (
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S%z",
)


def parse_timestamp(value: str) -> datetime:
    """Parse a server timestamp.

    Only numeric directives are used, so parsing does not depend on the
    current locale. Offsets may be ``+HHMM``, ``+HH:MM`` or ``Z``.
    """
    for fmt in TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    raise ValueError(f"Invalid timestamp: {value!r}")


def format_timestamp(value: datetime) -> str:
    """Format a datetime in the wire format (milliseconds, ``+HHMM`` offset)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (
        value.strftime("%Y-%m-%dT%H:%M:%S")
        + f".{value.microsecond // 1000:03d}"
        + value.strftime("%z")
    )


def now() -> datetime:
    """Current UTC time truncated to the wire precision."""
    current = datetime.now(timezone.utc)
    return current.replace(microsecond=current.microsecond // 1000 * 1000)


def _coerce_timestamp(value: Any) -> Any:
    if isinstance(value, str):
        return parse_timestamp(value)
    return value


class Referral(BaseModel):
    """Referral returned by the API and kept in local storage."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    referral_ref_id: str = Field(alias="referralRefId")  # server document id
    used_count: int = Field(alias="usedCount", ge=0)
    code: str
    created_at: datetime = Field(alias="createdAt")
    used_at: datetime | None = Field(default=None, alias="usedAt")

    @field_validator("created_at", "used_at", mode="before")
    @classmethod
    def _parse_timestamps(cls, value: Any) -> Any:
        return _coerce_timestamp(value)

    @field_serializer("created_at", "used_at")
    def _format_timestamps(self, value: datetime | None) -> str | None:
        return format_timestamp(value) if value is not None else None

    @property
    def is_used(self) -> bool:
        return self.used_count > 0

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize with wire field names, leaving out an absent usedAt."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class UseCodeResult(BaseModel):
    """Response of the useReferral endpoint."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    used_count: int = Field(alias="usedCount")
    success: bool


class ReceivedCodeState(str, Enum):
    """Lifecycle of a code this installation received via a referral link."""

    INSTALLED = "installed"  # app opened via link, not redeemed yet
    REDEEMED = "redeemed"  # code redeemed, terminal


class ReceivedCode(BaseModel):
    """The single referral code this installation received."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    code: str
    timestamp: datetime = Field(default_factory=now)  # last state change
    state: ReceivedCodeState

    @field_validator("timestamp", mode="before")
    @classmethod
    def _parse_timestamp(cls, value: Any) -> Any:
        return _coerce_timestamp(value)

    @field_serializer("timestamp")
    def _format_timestamp(self, value: datetime) -> str:
        return format_timestamp(value)

    @property
    def is_redeemed(self) -> bool:
        return self.state == ReceivedCodeState.REDEEMED

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize with wire field names."""
        return self.model_dump(mode="json", by_alias=True)
