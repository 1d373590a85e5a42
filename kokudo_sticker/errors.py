from __future__ import annotations


class StickerLogError(Exception):
    """Base class for every error raised by the record-keeping core."""


class StorageUnavailable(StickerLogError):
    """The database could not be opened or migrated. Fatal for the session."""


class WriteFailed(StickerLogError):
    """A single write transaction was rolled back."""


class LoadFailed(StickerLogError):
    """Reading the record collection failed."""


class InvalidFormat(StickerLogError):
    """An import document is not a JSON array of valid records."""


class RecordNotFound(StickerLogError, KeyError):
    def __init__(self, record_id: int) -> None:
        super().__init__(record_id)
        self.record_id = record_id

    def __str__(self) -> str:
        return f"Record not found: {self.record_id}"


class GeocodingFailed(StickerLogError):
    """Network, HTTP or decoding failure while querying the geocoder."""


class PhotoRejected(StickerLogError):
    """A photo was refused before encoding (not an image, or too large)."""

    def __init__(self, message: str, reason: str) -> None:
        super().__init__(message)
        self.reason = reason  # "type" | "size"
