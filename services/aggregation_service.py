"""
Aggregation Service - Groups related return records for display.

Handles:
- Kanban column filtering by disposition
- Grouping by normalized reference key (document no → collection order
  → NCR no → record id)
- Recency ordering of groups
- Mixed-product detection
- Per-group expand / collapse state
- Column summaries
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from models.return_record import ReturnRecord, Disposition
from services.record_store import RecordStore
from utils import normalize_key

logger = logging.getLogger(__name__)


def group_key(record) -> str:
    """
    Grouping key of a record.

    First non-empty of the normalized document number, collection order
    id and NCR number; falls back to the record's own id.
    """
    return (
        normalize_key(getattr(record, "document_no", None))
        or normalize_key(getattr(record, "collection_order_id", None))
        or normalize_key(getattr(record, "ncr_number", None))
        or record.id
    )


@dataclass
class RecordGroup:
    """Records sharing one grouping key. The first member represents the group."""
    key: str
    items: List = field(default_factory=list)

    @property
    def representative(self):
        return self.items[0]

    @property
    def is_single(self) -> bool:
        return len(self.items) == 1

    @property
    def hidden_items(self) -> List:
        return self.items[1:]

    @property
    def is_mixed_product(self) -> bool:
        code = self.representative.product_code
        return any(item.product_code != code for item in self.items)


def group_records(records: Iterable, date_field: str = "date") -> List[RecordGroup]:
    """
    Partition records into groups and order them by recency.

    Members keep encounter order. Groups are sorted descending by the
    representative's date with a plain string comparison, so dates must
    be ISO formatted. Ties keep first-encounter order.
    """
    groups: Dict[str, RecordGroup] = {}
    for record in records:
        key = group_key(record)
        if key not in groups:
            groups[key] = RecordGroup(key=key)
        groups[key].items.append(record)

    return sorted(
        groups.values(),
        key=lambda g: getattr(g.representative, date_field, None) or "",
        reverse=True,
    )


def column_items(records: Iterable, disposition: str, override: bool = False) -> List:
    """
    Records belonging to a disposition column.

    The RTV column leaves out records that already carry a document
    number. With override the list is passed through untouched.
    """
    records = list(records)
    if override:
        return records
    return [
        r for r in records
        if r.disposition == disposition
        and (disposition != Disposition.RTV or not r.document_no)
    ]


class GroupExpansion:
    """Expand / collapse state per group key. Groups start collapsed."""

    def __init__(self):
        self._expanded: Set[str] = set()

    def toggle(self, key: str) -> bool:
        if key in self._expanded:
            self._expanded.discard(key)
        else:
            self._expanded.add(key)
        return key in self._expanded

    def is_expanded(self, key: str) -> bool:
        return key in self._expanded

    def visible_items(self, group: RecordGroup) -> List:
        """Representative always; remaining members only when expanded."""
        if group.is_single or self.is_expanded(group.key):
            return list(group.items)
        return [group.representative]


def summarize_groups(groups: List[RecordGroup]) -> Dict[str, int]:
    """Column header counts."""
    return {
        "groups": len(groups),
        "records": sum(len(g.items) for g in groups),
        "multi_record_groups": sum(1 for g in groups if not g.is_single),
        "mixed_product_groups": sum(1 for g in groups if g.is_mixed_product),
    }


class AggregationService:
    """Service for building grouped column views over the store."""

    def __init__(self, store: RecordStore):
        self.store = store

    def column_groups(
        self,
        disposition: str,
        records: Optional[Iterable[ReturnRecord]] = None,
        override: bool = False,
    ) -> List[RecordGroup]:
        """Grouped view of one disposition column."""
        if records is None:
            records = self.store.list(ReturnRecord)
        groups = group_records(column_items(records, disposition, override))
        logger.debug(f"[Aggregation] Column {disposition}: {summarize_groups(groups)}")
        return groups

    def board(self, dispositions: Iterable[str]) -> Dict[str, List[RecordGroup]]:
        """Grouped views of several columns from a single read."""
        records = self.store.list(ReturnRecord)
        return {d: self.column_groups(d, records) for d in dispositions}
