"""
Status transition tables.

Single source of truth for the legal state transitions of every entity
type. Transitions are explicit actions performed by the services, never
freely settable fields.
"""
import logging
from typing import Dict, Set

from models.collection import RmaStatus, CollectionStatus, ShipmentStatus
from models.return_record import ReturnStatus
from services.errors import InvalidStateError

logger = logging.getLogger(__name__)


RMA_TRANSITIONS: Dict[str, Set[str]] = {
    RmaStatus.APPROVED_FOR_PICKUP: {RmaStatus.PICKUP_SCHEDULED},
    RmaStatus.PICKUP_SCHEDULED: set(),
}

COLLECTION_TRANSITIONS: Dict[str, Set[str]] = {
    CollectionStatus.PENDING: {CollectionStatus.ASSIGNED, CollectionStatus.COLLECTED},
    CollectionStatus.ASSIGNED: {CollectionStatus.COLLECTED},
    CollectionStatus.COLLECTED: {CollectionStatus.CONSOLIDATED},
    CollectionStatus.CONSOLIDATED: set(),  # Terminal
}

SHIPMENT_TRANSITIONS: Dict[str, Set[str]] = {
    ShipmentStatus.IN_TRANSIT: {ShipmentStatus.ARRIVED_HQ},
    ShipmentStatus.ARRIVED_HQ: set(),
}

RETURN_TRANSITIONS: Dict[str, Set[str]] = {
    ReturnStatus.REQUESTED: {
        ReturnStatus.COL_JOB_ACCEPTED,
        ReturnStatus.COL_IN_TRANSIT,
        ReturnStatus.DIRECT_RETURN,
    },
    ReturnStatus.COL_JOB_ACCEPTED: {
        ReturnStatus.COL_BRANCH_RECEIVED,
        ReturnStatus.COL_IN_TRANSIT,
        ReturnStatus.DIRECT_RETURN,
    },
    ReturnStatus.JOB_ACCEPTED: {ReturnStatus.COL_BRANCH_RECEIVED},
    ReturnStatus.COL_CONSOLIDATED: {ReturnStatus.COL_IN_TRANSIT, ReturnStatus.DIRECT_RETURN},
    ReturnStatus.COL_IN_TRANSIT: set(),
    ReturnStatus.DIRECT_RETURN: set(),
    ReturnStatus.COL_BRANCH_RECEIVED: set(),
    ReturnStatus.SETTLED_ON_FIELD: set(),
}

TRANSITIONS: Dict[str, Dict[str, Set[str]]] = {
    "rma": RMA_TRANSITIONS,
    "collection": COLLECTION_TRANSITIONS,
    "shipment": SHIPMENT_TRANSITIONS,
    "return": RETURN_TRANSITIONS,
}


def can_transition(domain: str, current_state: str, next_state: str) -> bool:
    """Whether next_state is reachable from current_state in one step."""
    return next_state in TRANSITIONS[domain].get(current_state, set())


def validate_transition(domain: str, record_id: str, current_state: str, next_state: str) -> None:
    """
    Validate whether a status transition is allowed.

    Raises InvalidStateError if invalid.
    """
    table = TRANSITIONS[domain]

    if current_state not in table:
        raise InvalidStateError(
            record_id, current_state, next_state,
            f"{record_id}: unknown {domain} state '{current_state}'",
        )

    if next_state not in table[current_state]:
        logger.warning(f"[Transition] Blocked {domain} {record_id}: {current_state} → {next_state}")
        raise InvalidStateError(record_id, current_state, next_state)
