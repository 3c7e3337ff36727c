"""
Decision Query Engine
Filter and paginate decision records.

Input records are expected newest-first; the engine never re-sorts.
Filters combine with AND across fields and OR within a field.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from app.domain.errors import ValidationError
from app.domain.models import DecisionRecord, DecisionType
from app.utils.time import parse_date_bounds

DEFAULT_LIMIT = 20


def parse_csv(value: Optional[str]) -> Tuple[str, ...]:
    """Split a comma-separated query parameter, dropping blanks"""
    if not value:
        return ()
    return tuple(part.strip() for part in value.split(",") if part.strip())


def _parse_types(values: Iterable[str]) -> Tuple[DecisionType, ...]:
    types = []
    for value in values:
        try:
            types.append(DecisionType(value.lower()))
        except ValueError:
            allowed = ", ".join(t.value for t in DecisionType)
            raise ValidationError(f"Unknown decision type '{value}'. Expected one of: {allowed}")
    return tuple(types)


@dataclass(frozen=True)
class DecisionQuery:
    """Filter and pagination parameters"""
    types: Tuple[DecisionType, ...] = ()
    protocols: Tuple[str, ...] = ()
    assets: Tuple[str, ...] = ()
    start_time: Optional[int] = None
    end_time: Optional[int] = None
    min_confidence: Optional[float] = None
    executed_only: bool = False
    with_errors: Optional[bool] = None
    limit: int = DEFAULT_LIMIT
    offset: int = 0

    def __post_init__(self):
        if self.limit <= 0:
            raise ValidationError("limit must be a positive integer")
        if self.offset < 0:
            raise ValidationError("offset must be zero or positive")
        if self.min_confidence is not None and not 0.0 <= self.min_confidence <= 1.0:
            raise ValidationError("minConfidence must be within [0, 1]")
        if (
            self.start_time is not None
            and self.end_time is not None
            and self.start_time > self.end_time
        ):
            raise ValidationError("startDate must not be after endDate")

    @classmethod
    def from_params(
        cls,
        type_csv: Optional[str] = None,
        protocol_csv: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        limit: int = DEFAULT_LIMIT,
        offset: int = 0,
        asset_csv: Optional[str] = None,
        min_confidence: Optional[float] = None,
        executed_only: bool = False,
        with_errors: Optional[bool] = None,
    ) -> "DecisionQuery":
        """Build a query from raw HTTP query-string values"""
        start_time, end_time = parse_date_bounds(start_date, end_date)
        return cls(
            types=_parse_types(parse_csv(type_csv)),
            protocols=parse_csv(protocol_csv),
            assets=parse_csv(asset_csv),
            start_time=start_time,
            end_time=end_time,
            min_confidence=min_confidence,
            executed_only=executed_only,
            with_errors=with_errors,
            limit=limit,
            offset=offset,
        )

    def without_pagination(self) -> "DecisionQuery":
        """Same filters, unbounded page (used by exports)"""
        return DecisionQuery(
            types=self.types,
            protocols=self.protocols,
            assets=self.assets,
            start_time=self.start_time,
            end_time=self.end_time,
            min_confidence=self.min_confidence,
            executed_only=self.executed_only,
            with_errors=self.with_errors,
            limit=2**31 - 1,
            offset=0,
        )


@dataclass(frozen=True)
class QueryPage:
    """One page of filtered records"""
    items: List[DecisionRecord]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + self.limit < self.total

    @property
    def count(self) -> int:
        return len(self.items)


def _any_match(candidates: Sequence[str], wanted: Sequence[str]) -> bool:
    wanted_lower = {w.lower() for w in wanted}
    return any(c.lower() in wanted_lower for c in candidates)


def matches(record: DecisionRecord, query: DecisionQuery) -> bool:
    """True when the record satisfies every active filter"""
    if query.types and record.type not in query.types:
        return False
    if query.protocols and not _any_match(record.protocols, query.protocols):
        return False
    if query.assets and not _any_match(record.assets, query.assets):
        return False
    if query.start_time is not None and record.timestamp < query.start_time:
        return False
    if query.end_time is not None and record.timestamp > query.end_time:
        return False
    if query.min_confidence is not None and record.confidence < query.min_confidence:
        return False
    if query.executed_only and not record.executed:
        return False
    if query.with_errors is not None and record.has_error != query.with_errors:
        return False
    return True


def filter_decisions(records: Iterable[DecisionRecord], query: DecisionQuery) -> List[DecisionRecord]:
    return [r for r in records if matches(r, query)]


def query_decisions(records: Iterable[DecisionRecord], query: DecisionQuery) -> QueryPage:
    """
    Filter then slice [offset, offset + limit).

    `total` counts filtered records before pagination.
    """
    filtered = filter_decisions(records, query)
    items = filtered[query.offset:query.offset + query.limit]
    return QueryPage(items=items, total=len(filtered), limit=query.limit, offset=query.offset)
