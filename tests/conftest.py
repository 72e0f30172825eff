"""Shared fixtures: a fresh in-memory entity store per test."""

import pytest
from sqlalchemy.orm import sessionmaker

import models  # noqa: F401  (registers every table on Base)
from db.session import Base, make_engine
from models.collection import Driver, ReturnRequest, RmaStatus
from models.return_record import ReturnRecord, ReturnStatus, Disposition
from services.record_store import RecordStore
from services.sequence_service import SequenceService


@pytest.fixture
def engine():
    engine = make_engine("sqlite://", echo=False)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def store(db):
    return RecordStore(db)


@pytest.fixture
def sequences(store):
    return SequenceService(store)


@pytest.fixture
def add_record(store):
    """Append a ReturnRecord with sensible defaults."""
    counter = {"n": 0}

    def _add(**overrides) -> ReturnRecord:
        counter["n"] += 1
        values = {
            "id": f"RT-TEST-{counter['n']:03d}",
            "status": ReturnStatus.REQUESTED,
            "disposition": Disposition.PENDING,
            "branch": "Head Office",
            "product_code": "P-100",
            "product_name": "Widget",
            "quantity": 10,
            "date": "2026-01-01",
        }
        values.update(overrides)
        return store.append(ReturnRecord(**values))

    return _add


@pytest.fixture
def seeded(store):
    """Two drivers, three approved RMAs and one already scheduled RMA."""
    store.append_all([
        Driver(id="DRV-1", name="Somchai", vehicle_plate="1AB-1234"),
        Driver(id="DRV-2", name="Anan", vehicle_plate=None),
        ReturnRequest(
            id="RMA-1", customer_name="Big C Rama 4", customer_address="12 Rama IV Rd",
            contact_person="Khun Nok", contact_phone="081-000-0001",
            status=RmaStatus.APPROVED_FOR_PICKUP,
        ),
        ReturnRequest(
            id="RMA-2", customer_name="Big C Rama 4", customer_address=" 12 rama iv  rd ",
            contact_person="Khun Nok", contact_phone="081-000-0001",
            status=RmaStatus.APPROVED_FOR_PICKUP,
        ),
        ReturnRequest(
            id="RMA-3", customer_name="Lotus Bangna", customer_address="99 Bangna-Trad",
            contact_person="Khun Dang", contact_phone="081-000-0003",
            status=RmaStatus.APPROVED_FOR_PICKUP,
        ),
        ReturnRequest(
            id="RMA-4", customer_name="Makro Sathorn", customer_address="1 Sathorn Rd",
            status=RmaStatus.PICKUP_SCHEDULED, collection_order_id="COL-OLD-001",
        ),
    ])
    return store
