"""
Collection Service - Dispatch, driver pickup and hub consolidation.

Handles:
- Grouping approved RMAs into a collection order for a driver
- Driver proof-of-collection
- Consolidating collected orders into a shipment manifest
- Manifest arrival at HQ

Multi-record transitions validate every selected record before the
first mutation and run inside one store transaction.
"""

import logging
from typing import List, Optional, Sequence

from config import settings
from models.collection import (
    Driver, ReturnRequest, CollectionOrder, ShipmentManifest,
    RmaStatus, CollectionStatus, ShipmentStatus,
)
from services.errors import InvalidStateError, ValidationError
from services.ports import ConfirmationPort, AutoConfirm
from services.record_store import RecordStore
from services.sequence_service import SequenceService
from services.transitions import validate_transition
from utils import normalize_key, today_iso, utc_timestamp

logger = logging.getLogger(__name__)


# Stand-ins used when the driver app only simulates signature / photo capture
SIMULATED_SIGNATURE = "signed_mock"
SIMULATED_PHOTOS = ("mock_photo_url",)


def _unique(ids: Sequence[str]) -> List[str]:
    """Drop empty and repeated ids, keeping selection order."""
    return list(dict.fromkeys(i for i in ids or [] if i))


class CollectionService:
    """Service for the collection / consolidation pipeline."""

    def __init__(
        self,
        store: RecordStore,
        sequence: SequenceService = None,
        confirmation: ConfirmationPort = None,
    ):
        self.store = store
        self.sequence = sequence or SequenceService(store)
        self.confirmation = confirmation or AutoConfirm()

    # ==================== Views ====================

    def pending_pickups(self) -> List[ReturnRequest]:
        """Approved RMAs waiting for logistics assignment."""
        return self.store.list(ReturnRequest, ReturnRequest.status == RmaStatus.APPROVED_FOR_PICKUP)

    def driver_tasks(self, driver_id: str = None) -> List[CollectionOrder]:
        """Open (PENDING / ASSIGNED) collection orders, optionally for one driver."""
        criteria = [CollectionOrder.status.in_(CollectionStatus.ACTIVE)]
        if driver_id:
            criteria.append(CollectionOrder.driver_id == driver_id)
        return self.store.list(CollectionOrder, *criteria)

    def collected_orders(self) -> List[CollectionOrder]:
        """Orders ready for consolidation."""
        return self.store.list(CollectionOrder, CollectionOrder.status == CollectionStatus.COLLECTED)

    def shipments(self) -> List[ShipmentManifest]:
        """Shipment manifests, newest first."""
        return list(reversed(self.store.list(ShipmentManifest)))

    # ==================== Dispatch ====================

    def check_pickup_locations(self, rma_ids: Sequence[str]) -> List[str]:
        """
        Warn about RMAs whose address differs from the first selected RMA.

        A collection order takes its pickup location from the first RMA
        only. Divergent addresses are reported, never rejected.
        """
        rmas = [self.store.get(ReturnRequest, rma_id) for rma_id in _unique(rma_ids)]
        rmas = [r for r in rmas if r is not None]
        if len(rmas) < 2:
            return []

        first = rmas[0]
        expected = normalize_key(first.customer_address)
        warnings = []
        for rma in rmas[1:]:
            if normalize_key(rma.customer_address) != expected:
                warnings.append(
                    f"{rma.id} pickup address '{rma.customer_address}' differs from "
                    f"{first.id} '{first.customer_address}'"
                )
        return warnings

    def create_collection_order(
        self,
        selected_rma_ids: Sequence[str],
        driver_id: str,
        pickup_date: str = None,
        box_count: int = 1,
        description: str = "",
    ) -> Optional[CollectionOrder]:
        """
        Group selected RMAs into a new collection order.

        Silently aborts (returns None) when the driver or the selection is
        missing, or when the operator cancels. Callers surface the
        validation message before invoking.

        Raises:
            RecordNotFoundError: a selected RMA does not exist
            InvalidStateError: a selected RMA is not APPROVED_FOR_PICKUP
        """
        rma_ids = _unique(selected_rma_ids)
        if not driver_id or not rma_ids:
            logger.warning("[Collection] Create skipped: driver and at least one RMA are required")
            return None

        # Validate every RMA before touching any of them
        rmas = [self.store.require(ReturnRequest, rma_id, "RMA") for rma_id in rma_ids]
        for rma in rmas:
            validate_transition("rma", rma.id, rma.status, RmaStatus.PICKUP_SCHEDULED)

        for warning in self.check_pickup_locations(rma_ids):
            logger.warning(f"[Collection] {warning}")

        if not self.confirmation.confirm(f"Dispatch {len(rma_ids)} request(s) to driver {driver_id}?"):
            return None

        first = rmas[0]
        driver = self.store.get(Driver, driver_id)

        with self.store.transaction():
            order = CollectionOrder(
                id=self.sequence.next_collection_order_id(self.store.count(CollectionOrder)),
                driver_id=driver_id,
                vehicle_plate=driver.vehicle_plate if driver else None,
                linked_rma_ids=rma_ids,
                pickup_name=first.customer_name,
                pickup_address=first.customer_address,
                pickup_contact_name=first.contact_person,
                pickup_contact_phone=first.contact_phone,
                pickup_date=pickup_date or today_iso(),
                total_boxes=int(box_count or 1),
                package_description=description or settings.DEFAULT_PACKAGE_DESCRIPTION,
                status=CollectionStatus.PENDING,
                created_date=utc_timestamp(),
            )
            self.store.append(order)

            for rma in rmas:
                rma.status = RmaStatus.PICKUP_SCHEDULED
                rma.collection_order_id = order.id

        logger.info(f"[Collection] Created {order.id} for driver {driver_id} with {len(rma_ids)} RMA(s)")
        return order

    def assign_order(self, order_id: str) -> CollectionOrder:
        """Move a PENDING order to ASSIGNED (driver accepted the job)."""
        with self.store.transaction():
            order = self.store.require(CollectionOrder, order_id, "CollectionOrder")
            validate_transition("collection", order.id, order.status, CollectionStatus.ASSIGNED)
            order.status = CollectionStatus.ASSIGNED

        logger.info(f"[Collection] {order_id} assigned to {order.driver_id}")
        return order

    # ==================== Driver ====================

    def confirm_driver_collection(
        self,
        order_id: str,
        signature_url: str = SIMULATED_SIGNATURE,
        photo_urls: Sequence[str] = SIMULATED_PHOTOS,
    ) -> Optional[CollectionOrder]:
        """
        Record proof of collection and move the order to COLLECTED.

        Irreversible. Calling it on an order that is no longer PENDING or
        ASSIGNED is a caller error and leaves the first proof untouched.

        Raises:
            RecordNotFoundError: unknown order
            InvalidStateError: order not in PENDING / ASSIGNED
            ValidationError: signature or photo missing
        """
        order = self.store.require(CollectionOrder, order_id, "CollectionOrder")
        if order.status not in CollectionStatus.ACTIVE:
            raise InvalidStateError(
                order.id, order.status, CollectionStatus.COLLECTED,
                f"{order.id} is {order.status}; only PENDING or ASSIGNED orders can be collected",
            )

        photos = [p for p in (photo_urls or []) if p]
        violations = []
        if not signature_url:
            violations.append("signature is required")
        if not photos:
            violations.append("at least one photo is required")
        if violations:
            raise ValidationError(f"Proof of collection incomplete for {order.id}", violations)

        if not self.confirmation.confirm(f"Driver: confirm collection of {order.id}?"):
            return None

        with self.store.transaction():
            validate_transition("collection", order.id, order.status, CollectionStatus.COLLECTED)
            order.status = CollectionStatus.COLLECTED
            order.proof_timestamp = utc_timestamp()
            order.proof_signature_url = signature_url
            order.proof_photo_urls = photos

        logger.info(f"[Collection] ✅ {order.id} collected ({len(photos)} photo(s))")
        return order

    # ==================== Consolidation ====================

    def create_shipment_manifest(
        self,
        selected_order_ids: Sequence[str],
        carrier_name: str,
        tracking_number: str = "",
    ) -> Optional[ShipmentManifest]:
        """
        Consolidate collected orders into a shipment manifest.

        Returns None when the operator cancels.

        Raises:
            ValidationError: carrier or selection missing
            RecordNotFoundError: a selected order does not exist
            InvalidStateError: a selected order is not COLLECTED
        """
        order_ids = _unique(selected_order_ids)
        violations = []
        if not carrier_name or not carrier_name.strip():
            violations.append("carrier name is required")
        if not order_ids:
            violations.append("select at least one collected order")
        if violations:
            raise ValidationError("Cannot create shipment manifest", violations)

        # An order that is not COLLECTED blocks the whole manifest
        orders = [self.store.require(CollectionOrder, oid, "CollectionOrder") for oid in order_ids]
        for order in orders:
            if order.status != CollectionStatus.COLLECTED:
                raise InvalidStateError(
                    order.id, order.status, CollectionStatus.CONSOLIDATED,
                    f"{order.id} is {order.status}; only COLLECTED orders can be consolidated",
                )

        if not self.confirmation.confirm(f"Consolidate {len(order_ids)} collection(s) with {carrier_name}?"):
            return None

        with self.store.transaction():
            manifest = ShipmentManifest(
                id=self.sequence.next_shipment_id(self.store.count(ShipmentManifest)),
                collection_order_ids=list(order_ids),
                transport_method=settings.DEFAULT_TRANSPORT_METHOD,
                carrier_name=carrier_name.strip(),
                tracking_number=tracking_number or "-",
                status=ShipmentStatus.IN_TRANSIT,
                created_date=utc_timestamp(),
            )
            self.store.append(manifest)

            for order in orders:
                validate_transition("collection", order.id, order.status, CollectionStatus.CONSOLIDATED)
                order.status = CollectionStatus.CONSOLIDATED
                order.shipment_id = manifest.id

        logger.info(f"[Collection] Manifest {manifest.id} via {manifest.carrier_name}: {len(order_ids)} order(s)")
        return manifest

    def mark_arrived_hq(self, shipment_id: str) -> ShipmentManifest:
        """Record the arrival of a manifest at HQ."""
        with self.store.transaction():
            manifest = self.store.require(ShipmentManifest, shipment_id, "ShipmentManifest")
            validate_transition("shipment", manifest.id, manifest.status, ShipmentStatus.ARRIVED_HQ)
            manifest.status = ShipmentStatus.ARRIVED_HQ
            manifest.arrived_date = utc_timestamp()

        logger.info(f"[Collection] Manifest {shipment_id} arrived at HQ")
        return manifest
