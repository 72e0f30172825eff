"""
Record Store - Entity store over the SQLAlchemy session.

Holds the canonical collections (return records, RMAs, collection
orders, shipment manifests, NCR reports) and exposes read / append /
update operations.

Every write runs inside a unit of work: it commits on success and rolls
back on any exception, so a rejected multi-record transition never
leaves an intermediate state behind. Units of work nest; only the
outermost one commits.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Generator, List, Type

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.return_record import ReturnRecord
from models.ncr import NCRReport, NCRItem
from services.errors import PersistenceError, RecordNotFoundError, ValidationError

logger = logging.getLogger(__name__)


# Business key column per model (defaults to "id")
BUSINESS_KEYS: Dict[type, str] = {
    NCRReport: "ncr_no",
    NCRItem: "record_id",
}

# Fields that can never be patched
IMMUTABLE_FIELDS = {"pk", "id", "ncr_no", "record_id", "origin"}

# Patching any of these re-resolves a return record's origin
ORIGIN_FIELDS = {"document_type", "ncr_number"}


class RecordStore:
    """
    Entity store for the workflow engine.

    Usage:
        store = RecordStore(db)
        store.append(ReturnRecord(id="RT-1", status=ReturnStatus.REQUESTED))
        store.update(ReturnRecord, "RT-1", {"document_type": DocumentType.LOGISTICS})
        records = store.list(ReturnRecord)
    """

    def __init__(self, db: Session):
        self.db = db
        self._in_transaction = False

    @staticmethod
    def _key_column(model: Type):
        return getattr(model, BUSINESS_KEYS.get(model, "id"))

    @staticmethod
    def _key_of(record) -> str:
        return getattr(record, BUSINESS_KEYS.get(type(record), "id"))

    @contextmanager
    def transaction(self) -> Generator[Session, None, None]:
        """
        Unit of work. Commits on success, rolls back on any error.

        Usage:
            with store.transaction():
                ...several writes applied atomically...
        """
        if self._in_transaction:
            yield self.db
            return

        self._in_transaction = True
        try:
            yield self.db
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"[Store] Transaction rolled back: {e}")
            raise PersistenceError(str(e)) from e
        except Exception:
            self.db.rollback()
            raise
        finally:
            self._in_transaction = False

    # ==================== Reads ====================

    def get(self, model: Type, record_id: str):
        """Get a record by its business id, or None."""
        if not record_id:
            return None
        return self.db.query(model).filter(self._key_column(model) == record_id).first()

    def require(self, model: Type, record_id: str, kind: str = None):
        """Get a record by its business id or raise RecordNotFoundError."""
        record = self.get(model, record_id)
        if record is None:
            raise RecordNotFoundError(kind or model.__name__, record_id)
        return record

    def list(self, model: Type, *criteria) -> List[Any]:
        """All records of a model in insertion order, optionally filtered."""
        query = self.db.query(model)
        if criteria:
            query = query.filter(*criteria)
        return query.order_by(model.pk).all()

    def count(self, model: Type) -> int:
        return self.db.query(model).count()

    def exists(self, model: Type, record_id: str) -> bool:
        return self.get(model, record_id) is not None

    # ==================== Writes ====================

    def append(self, record):
        """
        Append a new record.

        Raises:
            ValidationError: id missing or already used, or unknown parent
        """
        model = type(record)
        record_id = self._key_of(record)
        if not record_id:
            raise ValidationError(f"{model.__name__} requires an id")

        with self.transaction():
            if self.exists(model, record_id):
                raise ValidationError(f"{model.__name__} '{record_id}' already exists")

            if isinstance(record, ReturnRecord):
                if record.parent_id and not self.exists(ReturnRecord, record.parent_id):
                    raise ValidationError(
                        f"ReturnRecord '{record_id}' references unknown parent '{record.parent_id}'"
                    )
                record.resolve_origin()

            self.db.add(record)
            self.db.flush()

        logger.debug(f"[Store] Appended {model.__name__} {record_id}")
        return record

    def append_all(self, records: List[Any]) -> List[Any]:
        """Append several records atomically."""
        with self.transaction():
            for record in records:
                self.append(record)
        return records

    def update(self, model: Type, record_id: str, patch: Dict[str, Any]):
        """
        Apply a patch to an existing record.

        Raises:
            RecordNotFoundError: no record with that id
            ValidationError: patch touches an immutable or unknown field
        """
        blocked = IMMUTABLE_FIELDS.intersection(patch)
        if blocked:
            raise ValidationError(f"Cannot patch immutable field(s): {', '.join(sorted(blocked))}")

        with self.transaction():
            record = self.require(model, record_id)
            previous = getattr(record, "origin", None)

            for field, value in patch.items():
                if not hasattr(model, field):
                    raise ValidationError(f"{model.__name__} has no field '{field}'")
                setattr(record, field, value)

            if isinstance(record, ReturnRecord) and ORIGIN_FIELDS.intersection(patch):
                if record.resolve_origin() != previous:
                    logger.info(f"[Store] {record_id} origin re-resolved: {previous} → {record.origin}")

            self.db.flush()

        return record

    def update_many(self, model: Type, record_ids: List[str], patch: Dict[str, Any]) -> List[Any]:
        """Apply the same patch to several records atomically."""
        with self.transaction():
            return [self.update(model, record_id, dict(patch)) for record_id in record_ids]
