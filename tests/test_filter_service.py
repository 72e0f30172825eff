from models.return_record import DocumentType, ReturnRecord, ReturnStatus
from services.filter_service import FilterService


def _ids(records):
    return [r.id for r in records]


def test_ncr_records_wait_for_ncr_logistics(store, add_record):
    add_record(id="NCR-A", document_type=DocumentType.NCR, status=ReturnStatus.COL_JOB_ACCEPTED)
    add_record(id="NCR-B", document_type=DocumentType.NCR, status=ReturnStatus.REQUESTED)
    add_record(id="NCR-SETTLED", document_type=DocumentType.NCR, status=ReturnStatus.SETTLED_ON_FIELD)

    filters = FilterService(store)

    assert _ids(filters.pending_ncr_logistics()) == ["NCR-A", "NCR-B"]
    assert filters.pending_branch_receive() == []


def test_consolidated_logistics_records_join_ncr_logistics(store, add_record):
    add_record(id="LOG-1", document_type=DocumentType.LOGISTICS, status=ReturnStatus.COL_CONSOLIDATED)
    add_record(id="LOG-2", document_type=DocumentType.LOGISTICS, status=ReturnStatus.REQUESTED)

    assert _ids(FilterService(store).pending_ncr_logistics()) == ["LOG-1"]


def test_logistics_tag_wins_over_stale_ncr_number(store, add_record):
    add_record(
        id="LOG-STALE", document_type=DocumentType.LOGISTICS,
        ncr_number="NCR-2025-0003", status=ReturnStatus.COL_JOB_ACCEPTED,
    )
    add_record(id="LEGACY-NCR", ncr_number="NCR-2025-0004", status=ReturnStatus.COL_JOB_ACCEPTED)
    add_record(id="LEGACY", status=ReturnStatus.JOB_ACCEPTED)

    filters = FilterService(store)

    assert _ids(filters.pending_branch_receive()) == ["LOG-STALE", "LEGACY"]
    assert _ids(filters.pending_ncr_logistics()) == ["LEGACY-NCR"]


def test_correcting_document_type_moves_record_between_queues(store, add_record):
    add_record(id="RT-1", ncr_number="NCR-2025-0009", status=ReturnStatus.COL_JOB_ACCEPTED)
    filters = FilterService(store)
    assert _ids(filters.pending_ncr_logistics()) == ["RT-1"]

    store.update(ReturnRecord, "RT-1", {"document_type": DocumentType.LOGISTICS})

    assert filters.pending_ncr_logistics() == []
    assert _ids(filters.pending_branch_receive()) == ["RT-1"]


def test_branch_filter(store, add_record):
    add_record(id="A", document_type=DocumentType.NCR, branch="Chiang Mai")
    add_record(id="B", document_type=DocumentType.NCR, branch="Phuket")
    add_record(id="C", document_type=DocumentType.NCR, branch="Chiang Mai")

    filters = FilterService(store)

    assert _ids(filters.pending_ncr_logistics("Chiang Mai")) == ["A", "C"]
    assert _ids(filters.pending_ncr_logistics("All")) == ["A", "B", "C"]
    assert filters.branches() == ["Chiang Mai", "Phuket"]


def test_direct_document_type_assignment_reroutes_record(store, add_record):
    record = add_record(id="RT-X", ncr_number="NCR-1", status=ReturnStatus.COL_JOB_ACCEPTED)
    filters = FilterService(store)

    with store.transaction():
        record.document_type = DocumentType.LOGISTICS

    assert store.get(ReturnRecord, "RT-X").origin == "LOGISTICS"
    assert filters.pending_ncr_logistics() == []
    assert _ids(filters.pending_branch_receive()) == ["RT-X"]


def test_clearing_ncr_number_on_untagged_record_reroutes_it(store, add_record):
    record = add_record(id="RT-Y", ncr_number="NCR-2", status=ReturnStatus.JOB_ACCEPTED)

    with store.transaction():
        record.ncr_number = None

    assert _ids(FilterService(store).pending_branch_receive()) == ["RT-Y"]
