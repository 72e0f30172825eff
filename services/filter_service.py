"""
Filter Service - Routes operations records to the hub screens.

Handles:
- NCR logistics queue (NCR items to consolidate and ship)
- Branch receive queue (logistics items waiting for physical receipt)
- Branch filter options

Routing relies on the origin resolved when the record was written:
an explicit LOGISTICS tag always wins over a leftover NCR number.
"""

import logging
from typing import Iterable, List, Optional

from models.return_record import ReturnRecord, ReturnStatus
from services.record_store import RecordStore

logger = logging.getLogger(__name__)

ALL_BRANCHES = "All"

NCR_LOGISTICS_STATUSES = (ReturnStatus.REQUESTED, ReturnStatus.COL_JOB_ACCEPTED)
LOGISTICS_CONSOLIDATED_STATUSES = (ReturnStatus.COL_CONSOLIDATED,)
BRANCH_RECEIVE_STATUSES = (ReturnStatus.COL_JOB_ACCEPTED, ReturnStatus.JOB_ACCEPTED)


def is_pending_ncr_logistics(record: ReturnRecord) -> bool:
    """NCR items not yet shipped, plus consolidated logistics items."""
    if record.is_ncr_origin:
        return record.status in NCR_LOGISTICS_STATUSES
    return record.status in LOGISTICS_CONSOLIDATED_STATUSES


def is_pending_branch_receive(record: ReturnRecord) -> bool:
    """Accepted jobs waiting for physical receipt, excluding the NCR flow."""
    return record.status in BRANCH_RECEIVE_STATUSES and not record.is_ncr_origin


def filter_by_branch(records: Iterable[ReturnRecord], branch: Optional[str]) -> List[ReturnRecord]:
    if not branch or branch == ALL_BRANCHES:
        return list(records)
    return [r for r in records if r.branch == branch]


class FilterService:
    """Service for routing return records to the operations screens."""

    def __init__(self, store: RecordStore):
        self.store = store

    def pending_ncr_logistics(self, branch: Optional[str] = None) -> List[ReturnRecord]:
        """Records waiting for consolidation / transport assignment."""
        pending = [r for r in self.store.list(ReturnRecord) if is_pending_ncr_logistics(r)]
        return filter_by_branch(pending, branch)

    def pending_branch_receive(self) -> List[ReturnRecord]:
        """Records waiting for branch physical receipt."""
        return [r for r in self.store.list(ReturnRecord) if is_pending_branch_receive(r)]

    def branches(self, records: Iterable[ReturnRecord] = None) -> List[str]:
        """Distinct non-empty branches, in encounter order."""
        if records is None:
            records = self.pending_ncr_logistics()
        return list(dict.fromkeys(r.branch for r in records if r.branch))
