from __future__ import annotations

from typing import List, Optional, Union

# In-memory mirror of the record store plus the filtered view the UI lists.
# Every mutation goes to the store first; the mirror is only replaced after
# the store call succeeded, so a failed write leaves it untouched.

from .config import settings
from .db import RecordStore
from .errors import RecordNotFound, StickerLogError
from .logging_setup import get_logger
from .models import Record, RecordIn, RecordPatch
from .serializer import export_records, parse_import
from .stats import MapSummary, StatsSnapshot, aggregate, map_summary, sort_by_date_desc

logger = get_logger()

EDIT_STRATEGIES = ("recreate", "in_place")


def matches(record: Record, query: str) -> bool:
    """Road number as text (exact substring), or prefecture/location ignoring case."""
    lower_query = query.lower()
    return (
        query in str(record.road_number)
        or lower_query in record.prefecture.lower()
        or bool(record.location and lower_query in record.location.lower())
    )


class RecordRepository:
    def __init__(self, store: RecordStore, edit_strategy: Optional[str] = None) -> None:
        self.store = store
        self.edit_strategy = edit_strategy or settings.edit_strategy
        if self.edit_strategy not in EDIT_STRATEGIES:
            raise ValueError(f"Unknown edit strategy: {self.edit_strategy}")
        self.records: List[Record] = []
        self.filtered: List[Record] = []
        self.query: str = ""

    async def refresh(self) -> List[Record]:
        """Reload the full record set from the store and reset the filtered view."""
        records = await self.store.get_all()
        self.records = records
        self.filtered = list(records)
        self.query = ""
        return self.records

    def search(self, query: Optional[str]) -> List[Record]:
        self.query = query or ""
        if not self.query:
            self.filtered = list(self.records)
        else:
            self.filtered = [r for r in self.records if matches(r, self.query)]
        return self.filtered

    def sorted_view(self) -> List[Record]:
        return sort_by_date_desc(self.filtered)

    def find(self, record_id: int) -> Optional[Record]:
        for record in self.records:
            if record.id == record_id:
                return record
        return None

    # Mutations

    async def add(self, record: RecordIn) -> Record:
        try:
            record_id = await self.store.add(record)
        except StickerLogError as e:
            logger.error(f"Error adding record: {e}")
            raise
        await self.refresh()
        logger.info(f"Record {record_id} added (road {record.road_number}, {record.prefecture})")
        return self.find(record_id) or await self._get_or_raise(record_id)

    async def delete(self, record_id: int) -> None:
        try:
            await self.store.remove(record_id)
        except StickerLogError as e:
            logger.error(f"Error deleting record {record_id}: {e}")
            raise
        await self.refresh()
        logger.info(f"Record {record_id} deleted")

    async def clear_all(self) -> None:
        try:
            await self.store.clear()
        except StickerLogError as e:
            logger.error(f"Error clearing all records: {e}")
            raise
        await self.refresh()
        logger.info("All records deleted")

    async def edit(self, record_id: int, changes: RecordPatch) -> Record:
        """Apply ``changes`` to an existing record.

        With the default ``recreate`` strategy the record is deleted and added
        again, so the result has a NEW id and createdAt; anything holding the
        old id no longer finds it. ``in_place`` keeps both stable.
        """
        current = await self._get_or_raise(record_id)
        updated = changes.apply_to(current)
        if self.edit_strategy == "in_place":
            try:
                await self.store.update(record_id, updated)
            except StickerLogError as e:
                logger.error(f"Error updating record {record_id}: {e}")
                raise
            await self.refresh()
            logger.info(f"Record {record_id} updated in place")
            return await self._get_or_raise(record_id)

        # recreate: the replacement gets a fresh createdAt from the store
        replacement = updated.model_copy(update={"created_at": None})
        await self.delete(record_id)
        new_record = await self.add(replacement)
        logger.info(f"Record {record_id} replaced by record {new_record.id}")
        return new_record

    async def _get_or_raise(self, record_id: int) -> Record:
        record = self.find(record_id) or await self.store.get(record_id)
        if record is None:
            raise RecordNotFound(record_id)
        return record

    # Derived data

    def stats(self) -> StatsSnapshot:
        return aggregate(self.records)

    def map_summary(self, limit: int = 5) -> MapSummary:
        return map_summary(self.records, limit=limit)

    def export(self) -> str:
        return export_records(self.records)

    async def import_document(self, document: Union[str, bytes]) -> int:
        """Replace the whole collection with the records of ``document``.

        The document is validated first (InvalidFormat leaves the store
        untouched); the clear and re-add then run as one transaction.
        """
        records = parse_import(document)
        try:
            await self.store.replace_all(records)
        except StickerLogError as e:
            logger.error(f"Error importing data: {e}")
            raise
        await self.refresh()
        logger.info(f"Imported {len(records)} records")
        return len(records)


def create_repository(db_path=None, edit_strategy: Optional[str] = None) -> RecordRepository:
    return RecordRepository(RecordStore(db_path or settings.db_file), edit_strategy=edit_strategy)
