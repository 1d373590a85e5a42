"""Record models shared by the store, the repository and the HTTP layer.

Python attributes are snake_case; the wire/export format uses the camelCase
names of the original data files (``roadNumber``, ``createdAt`` ...).
"""

from __future__ import annotations

import base64
import binascii
import datetime as dt
from typing import Any, Dict, List, Optional
from urllib.parse import unquote_to_bytes

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .config import settings


def now_iso() -> str:
    """UTC timestamp with millisecond precision and a trailing ``Z``."""
    return dt.datetime.now(dt.timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def data_uri_size(uri: str) -> int:
    """Decoded payload size of a data URI in bytes.

    Raises ValueError for anything that is not a well-formed data URI.
    """
    if not uri.startswith("data:") or "," not in uri:
        raise ValueError("not a data URI")
    header, payload = uri[5:].split(",", 1)
    if header.endswith(";base64"):
        try:
            return len(base64.b64decode(payload, validate=True))
        except binascii.Error as e:
            raise ValueError(f"invalid base64 payload: {e}") from e
    return len(unquote_to_bytes(payload))


def _reject_bool(v: Any) -> Any:
    # JSON true/false would otherwise be coerced to road 1/0
    if isinstance(v, bool):
        raise ValueError("road number must be an integer, not a boolean")
    return v


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class RecordIn(_CamelModel):
    """Fields of a record before the store assigns an id."""

    road_number: int = Field(gt=0)
    prefecture: str
    location: str = ""
    date: dt.date = Field(default_factory=dt.date.today)
    notes: str = ""
    latitude: Optional[float] = Field(None, ge=-90.0, le=90.0)
    longitude: Optional[float] = Field(None, ge=-180.0, le=180.0)
    photos: List[str] = Field(default_factory=list)
    # Kept verbatim when supplied (e.g. by an import document)
    created_at: Optional[str] = None

    @field_validator("road_number", mode="before")
    @classmethod
    def _road_number_not_bool(cls, v: Any) -> Any:
        return _reject_bool(v)

    @field_validator("prefecture")
    @classmethod
    def _prefecture_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("prefecture must not be empty")
        return v

    @field_validator("location", "notes", mode="before")
    @classmethod
    def _none_as_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("photos", mode="before")
    @classmethod
    def _photos_default(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("photos")
    @classmethod
    def _photos_are_data_uris(cls, v: List[str]) -> List[str]:
        for idx, photo in enumerate(v):
            try:
                size = data_uri_size(photo)
            except ValueError as e:
                raise ValueError(f"photos[{idx}]: {e}") from e
            if size > settings.max_photo_size:
                raise ValueError(f"photos[{idx}] is larger than {settings.max_photo_size_mb}MB")
        return v

    @model_validator(mode="after")
    def _coordinates_pair(self):
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be given together")
        return self

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def stamped(self) -> "RecordIn":
        """Return a copy with ``created_at`` set, keeping an existing value."""
        if self.created_at:
            return self
        return self.model_copy(update={"created_at": now_iso()})


class Record(RecordIn):
    """A stored record."""

    id: int
    created_at: str

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class RecordPatch(_CamelModel):
    """Partial update used by edit; only explicitly sent fields are applied."""

    road_number: Optional[int] = Field(None, gt=0)
    prefecture: Optional[str] = None
    location: Optional[str] = None
    date: Optional[dt.date] = None
    notes: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    photos: Optional[List[str]] = None

    @field_validator("road_number", mode="before")
    @classmethod
    def _road_number_not_bool(cls, v: Any) -> Any:
        return _reject_bool(v)

    def apply_to(self, record: Record) -> RecordIn:
        merged = record.model_dump(exclude={"id"})
        merged.update(self.model_dump(exclude_unset=True))
        return RecordIn.model_validate(merged)
