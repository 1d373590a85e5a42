"""Summary statistics derived from the full record set.

Everything here is a pure function of the records passed in; nothing is
cached, the numbers are recomputed on every call.
"""

from __future__ import annotations

import datetime as dt
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .models import Record


@dataclass
class StatsSnapshot:
    total: int = 0
    distinct_prefectures: int = 0
    latest_road_number: Optional[int] = None
    latest_date: Optional[dt.date] = None
    # (prefecture, count), highest count first
    histogram: List[Tuple[str, int]] = field(default_factory=list)
    top_prefecture: Optional[str] = None
    top_count: int = 0

    @property
    def is_empty(self) -> bool:
        return self.total == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "distinctPrefectures": self.distinct_prefectures,
            "latestRoadNumber": self.latest_road_number,
            "latestDate": self.latest_date.isoformat() if self.latest_date else None,
            "histogram": [{"prefecture": p, "count": c} for p, c in self.histogram],
            "topPrefecture": self.top_prefecture,
            "topCount": self.top_count,
        }


@dataclass
class MapSummary:
    with_coordinates: int = 0
    total: int = 0
    top_prefectures: List[Tuple[str, int]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "withCoordinates": self.with_coordinates,
            "total": self.total,
            "topPrefectures": [{"prefecture": p, "count": c} for p, c in self.top_prefectures],
        }


def sort_by_date_desc(records: Iterable[Record]) -> List[Record]:
    """Most recent first. The sort is stable: equal dates keep their input order."""
    return sorted(records, key=lambda r: r.date, reverse=True)


def prefecture_histogram(records: Iterable[Record]) -> List[Tuple[str, int]]:
    # Counter keeps first-seen order and sorted() is stable, so ties go to the
    # prefecture encountered first.
    counts = Counter(r.prefecture for r in records)
    return sorted(counts.items(), key=lambda item: item[1], reverse=True)


def aggregate(records: Sequence[Record]) -> StatsSnapshot:
    if not records:
        return StatsSnapshot()

    histogram = prefecture_histogram(records)
    latest = sort_by_date_desc(records)[0]
    top_prefecture, top_count = histogram[0]
    return StatsSnapshot(
        total=len(records),
        distinct_prefectures=len(histogram),
        latest_road_number=latest.road_number,
        latest_date=latest.date,
        histogram=histogram,
        top_prefecture=top_prefecture,
        top_count=top_count,
    )


def map_summary(records: Sequence[Record], limit: int = 5) -> MapSummary:
    """Legend data for the map: how many records carry coordinates, by prefecture."""
    located = [r for r in records if r.has_coordinates]
    return MapSummary(
        with_coordinates=len(located),
        total=len(records),
        top_prefectures=prefecture_histogram(located)[: max(0, limit)],
    )
