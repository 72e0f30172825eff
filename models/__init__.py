"""Models module for the workflow engine."""
from models.classification import (
    ProblemKind, ActionKind, CauseKind,
    PROBLEM_DISPLAY_MAP, ACTION_DISPLAY_MAP, CAUSE_DISPLAY_MAP,
)
from models.return_record import (
    ReturnRecord, ReturnStatus, Disposition, DocumentType, RecordOrigin,
    resolve_origin, ITEM_DETAIL_FIELDS,
)
from models.collection import (
    Driver, ReturnRequest, CollectionOrder, ShipmentManifest,
    RmaStatus, CollectionStatus, ShipmentStatus,
)
from models.ncr import NCRReport, NCRItem, NCRStatus, composite_item_id
from models.sequence import DocumentSequence
