"""
Collection & consolidation SQLAlchemy models.

Core tables:
- Driver: Driver roster (vehicle plate is copied onto collection orders)
- ReturnRequest: Approved customer RMA waiting for pickup
- CollectionOrder: Pickup job grouping one or more RMAs
- ShipmentManifest: Consolidation of collected orders towards HQ

Status Flow:
RMA:        APPROVED_FOR_PICKUP → PICKUP_SCHEDULED
Collection: PENDING → ASSIGNED → COLLECTED → CONSOLIDATED
                 └──────────────↗
Shipment:   IN_TRANSIT → ARRIVED_HQ
"""

from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, DateTime, JSON

from db.session import Base


class RmaStatus:
    """Return request (RMA) status values."""
    APPROVED_FOR_PICKUP = "APPROVED_FOR_PICKUP"
    PICKUP_SCHEDULED = "PICKUP_SCHEDULED"


class CollectionStatus:
    """Collection order status values."""
    PENDING = "PENDING"
    ASSIGNED = "ASSIGNED"
    COLLECTED = "COLLECTED"
    CONSOLIDATED = "CONSOLIDATED"

    # Driver's open task list
    ACTIVE = (PENDING, ASSIGNED)


class ShipmentStatus:
    """Shipment manifest status values."""
    IN_TRANSIT = "IN_TRANSIT"
    ARRIVED_HQ = "ARRIVED_HQ"


class Driver(Base):
    """Driver roster entry."""
    __tablename__ = "drivers"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(50), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    vehicle_plate = Column(String(50), nullable=True)

    def __repr__(self):
        return f"<Driver(id={self.id}, plate={self.vehicle_plate})>"


class ReturnRequest(Base):
    """Approved customer return request (RMA)."""
    __tablename__ = "return_requests"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(50), nullable=False, unique=True, index=True)

    # Customer
    customer_name = Column(String(255), nullable=True)
    customer_address = Column(Text, nullable=True)
    contact_person = Column(String(255), nullable=True)
    contact_phone = Column(String(50), nullable=True)
    items_summary = Column(Text, nullable=True)

    status = Column(String(50), nullable=False, default=RmaStatus.APPROVED_FOR_PICKUP, index=True)

    # Owning collection order (one active order at a time)
    collection_order_id = Column(String(50), nullable=True, index=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<ReturnRequest(id={self.id}, status={self.status})>"


class CollectionOrder(Base):
    """Pickup job assigned to a driver."""
    __tablename__ = "collection_orders"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(50), nullable=False, unique=True, index=True)

    driver_id = Column(String(50), nullable=False, index=True)
    vehicle_plate = Column(String(50), nullable=True)
    linked_rma_ids = Column(JSON, default=list)

    # Pickup location (taken from the first linked RMA)
    pickup_name = Column(String(255), nullable=True)
    pickup_address = Column(Text, nullable=True)
    pickup_contact_name = Column(String(255), nullable=True)
    pickup_contact_phone = Column(String(50), nullable=True)
    pickup_date = Column(String(10), nullable=True)

    # Package summary
    total_boxes = Column(Integer, default=1)
    package_description = Column(Text, nullable=True)

    status = Column(String(20), nullable=False, default=CollectionStatus.PENDING, index=True)

    # Proof of collection
    proof_timestamp = Column(String(40), nullable=True)
    proof_signature_url = Column(Text, nullable=True)
    proof_photo_urls = Column(JSON, nullable=True)

    # Consolidating manifest
    shipment_id = Column(String(50), nullable=True, index=True)

    created_date = Column(String(40), nullable=True)

    @property
    def has_proof(self) -> bool:
        return bool(self.proof_timestamp)

    def __repr__(self):
        return f"<CollectionOrder(id={self.id}, driver={self.driver_id}, status={self.status})>"


class ShipmentManifest(Base):
    """Consolidated shipment of collected orders."""
    __tablename__ = "shipment_manifests"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(50), nullable=False, unique=True, index=True)

    # Membership snapshot at creation
    collection_order_ids = Column(JSON, default=list)

    transport_method = Column(String(50), nullable=True)
    carrier_name = Column(String(255), nullable=False)
    tracking_number = Column(String(100), nullable=True)

    status = Column(String(20), nullable=False, default=ShipmentStatus.IN_TRANSIT, index=True)

    created_date = Column(String(40), nullable=True)
    arrived_date = Column(String(40), nullable=True)

    def __repr__(self):
        return f"<ShipmentManifest(id={self.id}, orders={len(self.collection_order_ids or [])}, status={self.status})>"
