"""Services module for the workflow engine."""

from services.errors import (
    WorkflowError,
    ValidationError,
    RecordNotFoundError,
    InvalidStateError,
    AuthorizationError,
    SequenceGenerationError,
    PersistenceError,
    PartialPersistenceError,
)
from services.record_store import RecordStore
from services.sequence_service import SequenceService
from services.ports import (
    ItemAction,
    ConfirmationPort,
    AutoConfirm,
    CallbackConfirm,
    AuthorizationPort,
    PassphraseAuthorization,
    RoleAuthorization,
)
from services.collection_service import CollectionService
from services.filter_service import FilterService
from services.operations_service import OperationsService, RouteType, TransportMode, TransportInfo
from services.aggregation_service import AggregationService, RecordGroup, GroupExpansion, group_records
from services.ncr_service import NCRService, NCRDraft, NCRHeaderDraft, NCRItemDraft, NCRSaveResult, SaveOutcome
from services.workflow import ReturnWorkflow

__all__ = [
    # Errors
    "WorkflowError",
    "ValidationError",
    "RecordNotFoundError",
    "InvalidStateError",
    "AuthorizationError",
    "SequenceGenerationError",
    "PersistenceError",
    "PartialPersistenceError",
    # Store
    "RecordStore",
    "SequenceService",
    # Ports
    "ItemAction",
    "ConfirmationPort",
    "AutoConfirm",
    "CallbackConfirm",
    "AuthorizationPort",
    "PassphraseAuthorization",
    "RoleAuthorization",
    # Core services
    "CollectionService",
    "FilterService",
    "OperationsService",
    "RouteType",
    "TransportMode",
    "TransportInfo",
    "AggregationService",
    "RecordGroup",
    "GroupExpansion",
    "group_records",
    "NCRService",
    "NCRDraft",
    "NCRHeaderDraft",
    "NCRItemDraft",
    "NCRSaveResult",
    "SaveOutcome",
    # Orchestration
    "ReturnWorkflow",
]
