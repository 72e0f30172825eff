"""
Operations Service - Hub actions on return records.

Handles:
- NCR logistics dispatch (hub consolidation or direct return)
- Branch physical receive (per item or bulk)
- Splitting a record into a parent / child pair
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from models.return_record import ReturnRecord, ReturnStatus
from services.errors import InvalidStateError, ValidationError
from services.filter_service import FilterService, is_pending_branch_receive, is_pending_ncr_logistics
from services.ports import ConfirmationPort, AutoConfirm
from services.record_store import RecordStore
from services.transitions import validate_transition
from utils import today_iso

logger = logging.getLogger(__name__)


class RouteType:
    """NCR logistics route."""
    HUB = "Hub"
    DIRECT = "Direct"


class TransportMode:
    """How NCR goods travel."""
    COMPANY = "Company"
    THIRD_PARTY = "3PL"
    OTHER = "Other"


OTHER_DESTINATION = "Other"

ROUTE_TARGET_STATUS = {
    RouteType.HUB: ReturnStatus.COL_IN_TRANSIT,
    RouteType.DIRECT: ReturnStatus.DIRECT_RETURN,
}

# Columns never copied onto a split child
_SPLIT_EXCLUDED = {"pk", "id", "parent_id", "quantity", "created_at", "updated_at"}


@dataclass
class TransportInfo:
    """Transport details entered for an NCR logistics dispatch."""
    mode: str = TransportMode.COMPANY
    driver_name: str = ""
    plate_number: str = ""
    transport_company: str = "Company Vehicle"

    def violations(self) -> List[str]:
        errors = []
        if self.mode in (TransportMode.THIRD_PARTY, TransportMode.OTHER) and not self.transport_company:
            errors.append(
                "transport company is required" if self.mode == TransportMode.THIRD_PARTY
                else "transport details are required"
            )
        if self.mode in (TransportMode.COMPANY, TransportMode.THIRD_PARTY):
            if not self.driver_name or not self.plate_number:
                errors.append("driver name and plate number are required")
        if self.mode not in (TransportMode.COMPANY, TransportMode.THIRD_PARTY, TransportMode.OTHER):
            errors.append(f"unknown transport mode '{self.mode}'")
        return errors


class OperationsService:
    """Service for hub-side transitions of return records."""

    def __init__(self, store: RecordStore, confirmation: ConfirmationPort = None):
        self.store = store
        self.confirmation = confirmation or AutoConfirm()
        self.filters = FilterService(store)

    # ==================== NCR Logistics ====================

    def dispatch_ncr_logistics(
        self,
        record_ids: Sequence[str],
        route_type: str,
        transport: TransportInfo,
        destination: Optional[str] = None,
        custom_destination: Optional[str] = None,
    ) -> List[ReturnRecord]:
        """
        Hand pending NCR logistics records over to transport.

        Hub route → COL_InTransit, Direct route → DirectReturn.

        Raises:
            ValidationError: missing selection, transport details or destination
            InvalidStateError: a record is not waiting for NCR logistics
        """
        ids = list(dict.fromkeys(i for i in record_ids or [] if i))
        violations = []
        if not ids:
            violations.append("select at least one item")
        if route_type not in ROUTE_TARGET_STATUS:
            violations.append(f"unknown route '{route_type}'")
        violations.extend(transport.violations())

        final_destination = None
        if route_type == RouteType.DIRECT:
            if not destination:
                violations.append("destination is required for direct return")
            elif destination == OTHER_DESTINATION and not custom_destination:
                violations.append("destination name is required")
            else:
                final_destination = custom_destination if destination == OTHER_DESTINATION else destination

        if violations:
            raise ValidationError("Cannot dispatch NCR logistics", violations)

        target = ROUTE_TARGET_STATUS[route_type]
        records = [self.store.require(ReturnRecord, rid, "ReturnRecord") for rid in ids]
        for record in records:
            if not is_pending_ncr_logistics(record):
                raise InvalidStateError(
                    record.id, record.status, target,
                    f"{record.id} ({record.status}) is not waiting for NCR logistics",
                )
            validate_transition("return", record.id, record.status, target)

        with self.store.transaction():
            for record in records:
                record.status = target
                record.route_type = route_type
                record.dispatch_destination = final_destination
                record.transport_driver = transport.driver_name or None
                record.transport_plate = transport.plate_number or None
                record.transport_company = transport.transport_company or None

        logger.info(f"[Operations] Dispatched {len(records)} record(s) via {route_type} → {target}")
        return records

    # ==================== Branch Receive ====================

    def receive_item(self, record_id: str) -> Optional[ReturnRecord]:
        """
        Confirm physical receipt of one record at the branch.

        Returns None when the operator cancels.
        """
        record = self.store.require(ReturnRecord, record_id, "ReturnRecord")
        if not is_pending_branch_receive(record):
            raise InvalidStateError(
                record.id, record.status, ReturnStatus.COL_BRANCH_RECEIVED,
                f"{record.id} ({record.status}) is not waiting for branch receipt",
            )

        if not self.confirmation.confirm(f"Receive {record.id}?"):
            return None

        with self.store.transaction():
            self._mark_received(record)

        logger.info(f"[Operations] {record.id} received at branch")
        return record

    def receive_all(self) -> List[ReturnRecord]:
        """Confirm receipt of every pending record at once (all-or-nothing)."""
        pending = self.filters.pending_branch_receive()
        if not pending:
            return []

        if not self.confirmation.confirm(f"Receive all {len(pending)} item(s)?"):
            return []

        with self.store.transaction():
            for record in pending:
                self._mark_received(record)

        logger.info(f"[Operations] Bulk received {len(pending)} record(s)")
        return pending

    def _mark_received(self, record: ReturnRecord):
        validate_transition("return", record.id, record.status, ReturnStatus.COL_BRANCH_RECEIVED)
        record.status = ReturnStatus.COL_BRANCH_RECEIVED
        record.date_received = today_iso()

    # ==================== Split ====================

    def split_record(self, record_id: str, quantity: int) -> ReturnRecord:
        """
        Split part of a record's quantity into a new child record.

        Raises:
            ValidationError: quantity not strictly between 0 and the record quantity
        """
        parent = self.store.require(ReturnRecord, record_id, "ReturnRecord")
        quantity = int(quantity or 0)
        if quantity <= 0 or quantity >= (parent.quantity or 0):
            raise ValidationError(
                f"Split quantity must be between 1 and {max((parent.quantity or 0) - 1, 0)} for {parent.id}"
            )

        with self.store.transaction():
            child_id = self._next_child_id(parent.id)
            values = {
                column.key: getattr(parent, column.key)
                for column in ReturnRecord.__table__.columns
                if column.key not in _SPLIT_EXCLUDED
            }
            child = ReturnRecord(id=child_id, parent_id=parent.id, quantity=quantity, **values)
            self.store.append(child)
            parent.quantity = parent.quantity - quantity

        logger.info(f"[Operations] Split {quantity} from {parent.id} into {child_id}")
        return child

    def _next_child_id(self, parent_id: str) -> str:
        n = len(self.store.list(ReturnRecord, ReturnRecord.parent_id == parent_id)) + 1
        while self.store.exists(ReturnRecord, f"{parent_id}-S{n}"):
            n += 1
        return f"{parent_id}-S{n}"
