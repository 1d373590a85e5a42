"""JSON export/import of the whole record collection."""

from __future__ import annotations

import datetime as dt
import json
from typing import Iterable, List, Optional, Union

from pydantic import ValidationError

from .errors import InvalidFormat
from .models import Record, RecordIn

EXPORT_PREFIX = "kokudo-sticker"


def export_records(records: Iterable[Record]) -> str:
    """Pretty-printed JSON array of every record, ids included.

    This is a snapshot; it does not touch the store.
    """
    return json.dumps([r.to_wire() for r in records], ensure_ascii=False, indent=2)


def export_filename(today: Optional[dt.date] = None) -> str:
    today = today or dt.date.today()
    return f"{EXPORT_PREFIX}-{today.isoformat()}.json"


def parse_import(document: Union[str, bytes]) -> List[RecordIn]:
    """Parse an export document into records ready to be added.

    Raises InvalidFormat when the document is not JSON, is not a top-level
    array, or any element is not a valid record. Validation covers the whole
    document, so a bad element is reported before anything is written.
    ``id`` fields are dropped (the store assigns new ones); ``createdAt`` is kept.
    """
    try:
        data = json.loads(document)
    except (ValueError, TypeError) as e:
        raise InvalidFormat(f"Import document is not valid JSON: {e}") from e
    if not isinstance(data, list):
        raise InvalidFormat("Invalid data format: expected a JSON array of records")

    records: List[RecordIn] = []
    for idx, item in enumerate(data):
        if not isinstance(item, dict):
            raise InvalidFormat(f"Element {idx} is not an object")
        try:
            records.append(RecordIn.model_validate(item))
        except ValidationError as e:
            raise InvalidFormat(f"Element {idx} is not a valid record: {e.errors()[0]['msg']}") from e
    return records
