from typing import Any, Optional
from urllib.parse import urlsplit
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sync_ics.normalizers.platforms import Platform


def _coerce_platform(value: Any) -> Any:
    if value is None or isinstance(value, Platform):
        return value
    return Platform.parse(str(value))


class CalendarSource(BaseModel):
    """
    One external calendar feed for a property.
    """

    name: str = Field(..., min_length=1, description="Display label, e.g. 'Airbnb'")
    platform: Platform = Field(Platform.OTHER, description="airbnb, vrbo, booking or other")
    url: str = Field(..., description="Public http(s) feed address")

    @field_validator("platform", mode="before")
    @classmethod
    def parse_platform(cls, value: Any) -> Any:
        return _coerce_platform(value)

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        parts = urlsplit(value.strip())
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError("url must be an absolute http(s) address")
        return value.strip()


class SyncRequest(BaseModel):
    """
    Schema for POST /sync-ics. Sources default to the configured feeds when omitted.
    """

    property_id: UUID = Field(..., description="Property whose bookings are synced")
    sources: Optional[list[CalendarSource]] = Field(
        None, description="Feeds to sync (optional; configured defaults otherwise)"
    )
    platform: Optional[Platform] = Field(
        None, description="Only sync sources of this platform (optional)"
    )

    @field_validator("platform", mode="before")
    @classmethod
    def parse_platform(cls, value: Any) -> Any:
        return _coerce_platform(value)


class SourceSyncResult(BaseModel):
    """
    Outcome of one source's pipeline.

    success is True when the feed was fetched and parsed, even if individual
    events were rejected; those rejections are listed in errors.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str
    platform: Platform
    bookings_processed: int = Field(0, alias="bookingsProcessed")
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    errors: list[str] = Field(default_factory=list)
    success: bool = True
    vanished: list[str] = Field(default_factory=list)

    @property
    def state(self) -> str:
        if not self.success:
            return "failed"
        return "partial" if self.errors else "success"


class SyncReport(BaseModel):
    """
    Aggregate result of one property sync, returned to the caller and never stored.
    """

    model_config = ConfigDict(populate_by_name=True)

    property_id: UUID = Field(..., alias="propertyId")
    platform: str = "all"
    success: bool = True
    total_processed: int = Field(0, alias="totalProcessed")
    total_errors: int = Field(0, alias="totalErrors")
    processing_time: int = Field(0, alias="processingTime", description="Milliseconds")
    sources: list[SourceSyncResult] = Field(default_factory=list)
