import pytest

from models.return_record import DocumentType, RecordOrigin, ReturnRecord, ReturnStatus
from services.errors import RecordNotFoundError, ValidationError


def test_append_resolves_origin(add_record):
    ncr = add_record(document_type=DocumentType.NCR)
    legacy_ncr = add_record(ncr_number="NCR-2025-0007")
    logistics = add_record(document_type=DocumentType.LOGISTICS, ncr_number="NCR-2025-0007")
    untagged = add_record()

    assert ncr.origin == RecordOrigin.NCR
    assert legacy_ncr.origin == RecordOrigin.NCR
    assert logistics.origin == RecordOrigin.LOGISTICS
    assert untagged.origin == RecordOrigin.UNTAGGED_LEGACY


def test_update_re_resolves_origin(store, add_record):
    record = add_record(ncr_number="NCR-2025-0001")
    assert record.origin == RecordOrigin.NCR

    store.update(ReturnRecord, record.id, {"document_type": DocumentType.LOGISTICS})

    assert store.get(ReturnRecord, record.id).origin == RecordOrigin.LOGISTICS


def test_update_without_origin_fields_keeps_origin(store, add_record):
    record = add_record(document_type=DocumentType.NCR)
    store.update(ReturnRecord, record.id, {"branch": "Chiang Mai"})

    stored = store.get(ReturnRecord, record.id)
    assert stored.branch == "Chiang Mai"
    assert stored.origin == RecordOrigin.NCR


def test_append_rejects_duplicate_id(store, add_record):
    add_record(id="RT-1")
    with pytest.raises(ValidationError, match="already exists"):
        store.append(ReturnRecord(id="RT-1", status=ReturnStatus.REQUESTED))
    assert store.count(ReturnRecord) == 1


def test_append_rejects_unknown_parent(store):
    with pytest.raises(ValidationError, match="unknown parent"):
        store.append(ReturnRecord(id="RT-2", parent_id="RT-MISSING"))
    assert store.count(ReturnRecord) == 0


@pytest.mark.parametrize("field", ["id", "pk", "origin"])
def test_update_rejects_immutable_fields(store, add_record, field):
    record = add_record(id="RT-1")
    with pytest.raises(ValidationError, match="immutable"):
        store.update(ReturnRecord, "RT-1", {field: "X"})
    assert store.get(ReturnRecord, "RT-1") is record


def test_update_rejects_unknown_field_and_rolls_back(store, add_record):
    add_record(id="RT-1", branch="Head Office")
    with pytest.raises(ValidationError, match="no field"):
        store.update(ReturnRecord, "RT-1", {"branch": "Phuket", "colour": "red"})
    assert store.get(ReturnRecord, "RT-1").branch == "Head Office"


def test_update_missing_record(store):
    with pytest.raises(RecordNotFoundError) as exc:
        store.update(ReturnRecord, "RT-404", {"branch": "Phuket"})
    assert exc.value.record_id == "RT-404"


def test_transaction_rolls_back_every_write(store, add_record):
    add_record(id="RT-1", branch="Head Office")

    with pytest.raises(RuntimeError):
        with store.transaction():
            store.append(ReturnRecord(id="RT-2"))
            store.update(ReturnRecord, "RT-1", {"branch": "Phuket"})
            raise RuntimeError("boom")

    assert not store.exists(ReturnRecord, "RT-2")
    assert store.get(ReturnRecord, "RT-1").branch == "Head Office"


def test_list_keeps_insertion_order(store, add_record):
    for record_id in ("RT-C", "RT-A", "RT-B"):
        add_record(id=record_id)
    assert [r.id for r in store.list(ReturnRecord)] == ["RT-C", "RT-A", "RT-B"]
    assert [r.id for r in store.list(ReturnRecord, ReturnRecord.id != "RT-A")] == ["RT-C", "RT-B"]


def test_update_many_is_atomic(store, add_record):
    add_record(id="RT-1")
    with pytest.raises(RecordNotFoundError):
        store.update_many(ReturnRecord, ["RT-1", "RT-404"], {"branch": "Phuket"})
    assert store.get(ReturnRecord, "RT-1").branch == "Head Office"
