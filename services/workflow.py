"""
Return Workflow - Entry point wiring the engine around one session.

Holds the entity store and every service built on it:
1. Collection  - dispatch, driver pickup, hub consolidation
2. NCR         - report entry, submission and sync to operations
3. Operations  - NCR logistics dispatch, branch receive, split
4. Filters     - hub screen queues
5. Aggregation - grouped column views

Key features:
- One session / one store shared by all services, so a unit of work
  spans every service touched inside it
- Confirmation and authorization ports injected once
"""

import logging
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from config import settings
from db.session import SessionLocal, init_db, test_connection
from models.collection import ShipmentManifest
from models.ncr import NCRReport
from models.return_record import ReturnRecord
from services.aggregation_service import AggregationService
from services.collection_service import CollectionService
from services.errors import PersistenceError
from services.filter_service import FilterService
from services.ncr_service import NCRService
from services.operations_service import OperationsService
from services.ports import AuthorizationPort, ConfirmationPort, AutoConfirm
from services.record_store import RecordStore
from services.sequence_service import SequenceService
from utils import setup_logging

logger = logging.getLogger(__name__)


class ReturnWorkflow:
    """
    Facade over the workflow engine.

    Usage:
        workflow = ReturnWorkflow.from_settings()
        order = workflow.collection.create_collection_order(["RMA-1"], "DRV-1")
        result = await workflow.ncr.submit(draft)
    """

    def __init__(
        self,
        db: Session,
        confirmation: ConfirmationPort = None,
        authorization: AuthorizationPort = None,
        print_hook: Callable[[str], Any] = None,
        sequence=None,
    ):
        self.db = db
        self.store = RecordStore(db)
        self.confirmation = confirmation or AutoConfirm()

        self.sequences = SequenceService(self.store)
        self.collection = CollectionService(self.store, self.sequences, self.confirmation)
        self.ncr = NCRService(
            self.store,
            sequence or self.sequences,
            authorization=authorization,
            confirmation=self.confirmation,
            print_hook=print_hook,
        )
        self.operations = OperationsService(self.store, self.confirmation)
        self.filters = FilterService(self.store)
        self.aggregation = AggregationService(self.store)

    @classmethod
    def from_settings(cls, db: Optional[Session] = None, **kwargs) -> "ReturnWorkflow":
        """
        Configure logging, create tables and open a session from settings.

        Raises:
            PersistenceError: the entity store is unreachable
        """
        setup_logging()
        init_db()
        if not test_connection():
            raise PersistenceError(f"Entity store unreachable: {settings.DATABASE_URL}")
        logger.info(f"[Workflow] Started (store: {settings.DATABASE_URL})")
        return cls(db or SessionLocal(), **kwargs)

    def summary(self) -> Dict[str, int]:
        """Record counts per queue, for dashboards and logs."""
        return {
            "pending_pickups": len(self.collection.pending_pickups()),
            "driver_tasks": len(self.collection.driver_tasks()),
            "collected_orders": len(self.collection.collected_orders()),
            "shipments": self.store.count(ShipmentManifest),
            "ncr_reports": self.store.count(NCRReport),
            "return_records": self.store.count(ReturnRecord),
            "pending_ncr_logistics": len(self.filters.pending_ncr_logistics()),
            "pending_branch_receive": len(self.filters.pending_branch_receive()),
        }

    def close(self):
        self.db.close()
