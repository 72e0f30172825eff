"""
Sequence Service - Durable document number reservation.

Document numbers are reserved from a persistent counter rather than
derived from the current number of records, so a number is never handed
out twice.

Formats:
    COL-{YYYYMM}-{seq:03d}   Collection order
    SHP-{YYYY}-{seq:03d}     Shipment manifest
    {prefix}-{YYYY}-{seq:04d} NCR number (prefix from settings)

USAGE:
    sequence = SequenceService(store)
    ncr_no = await sequence.get_next_document_number()
"""

import logging
from datetime import datetime
from typing import Optional

from config import settings
from models.sequence import DocumentSequence
from services.errors import PersistenceError, SequenceGenerationError
from services.record_store import RecordStore

logger = logging.getLogger(__name__)


# Sequence keys
COLLECTION_SEQUENCE = "COL"
SHIPMENT_SEQUENCE = "SHP"


class SequenceService:
    """
    Service for reserving document numbers.

    Features:
    - One durable counter per sequence key
    - Optional floor so a counter never falls behind records created
      outside the service (e.g. imported fixtures)
    """

    def __init__(self, store: RecordStore, ncr_prefix: Optional[str] = None):
        self.store = store
        self.ncr_prefix = ncr_prefix or settings.NCR_NUMBER_PREFIX

    def reserve(self, sequence_key: str, floor: int = 0) -> int:
        """
        Reserve the next value of a sequence.

        Args:
            sequence_key: Counter name
            floor: The reserved value is always greater than this

        Returns:
            Reserved sequence value (1-based)
        """
        db = self.store.db
        with self.store.transaction():
            sequence = db.query(DocumentSequence).filter(
                DocumentSequence.sequence_key == sequence_key
            ).first()

            if not sequence:
                sequence = DocumentSequence(sequence_key=sequence_key, current_value=0)
                db.add(sequence)

            sequence.current_value = max(sequence.current_value or 0, floor) + 1
            db.flush()
            value = sequence.current_value

        logger.debug(f"[Sequence] Reserved {sequence_key} #{value}")
        return value

    def peek(self, sequence_key: str) -> int:
        """Last reserved value of a sequence (0 if never used)."""
        sequence = self.store.db.query(DocumentSequence).filter(
            DocumentSequence.sequence_key == sequence_key
        ).first()
        return sequence.current_value if sequence else 0

    def next_collection_order_id(self, existing_count: int = 0, now: datetime = None) -> str:
        now = now or datetime.now()
        seq = self.reserve(COLLECTION_SEQUENCE, floor=existing_count)
        return f"COL-{now.year}{now.month:02d}-{seq:03d}"

    def next_shipment_id(self, existing_count: int = 0, now: datetime = None) -> str:
        now = now or datetime.now()
        seq = self.reserve(SHIPMENT_SEQUENCE, floor=existing_count)
        return f"SHP-{now.year}-{seq:03d}"

    async def get_next_document_number(self) -> str:
        """
        Get the next NCR number.

        Raises:
            SequenceGenerationError: if the counter could not be reserved
        """
        year = datetime.now().year
        try:
            seq = self.reserve(f"{self.ncr_prefix}-{year}")
        except PersistenceError as e:
            raise SequenceGenerationError(f"Could not reserve NCR number: {e}") from e
        return f"{self.ncr_prefix}-{year}-{seq:04d}"
