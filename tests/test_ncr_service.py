import asyncio
from datetime import datetime

import pytest

from models.classification import ActionKind, CauseKind, ProblemKind
from models.ncr import NCRItem, NCRReport, NCRStatus
from models.return_record import DocumentType, RecordOrigin, ReturnRecord, ReturnStatus, Disposition
from services.errors import (
    AuthorizationError, PartialPersistenceError, PersistenceError, SequenceGenerationError, ValidationError,
)
from services.filter_service import FilterService
from services.ncr_service import (
    NCRDraft, NCRItemDraft, NCRSaveResult, NCRService, PreliminaryDecision, SaveOutcome,
)
from services.ports import CallbackConfirm, RoleAuthorization
from services.record_store import RecordStore

YEAR = datetime.now().year


class ErrorSentinel:
    """Non-string failure marker some numbering backends return."""


class StubSequence:
    """Numbering collaborator returning a fixed value (or raising)."""

    def __init__(self, value=None, error=None, delay=0):
        self.value = value
        self.error = error
        self.delay = delay

    async def get_next_document_number(self):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.value


class FlakyStore(RecordStore):
    """Store failing to append the operations records at the given call numbers."""

    def __init__(self, db, fail_on):
        super().__init__(db)
        self.fail_on = set(fail_on)
        self.calls = 0

    def append(self, record):
        if isinstance(record, ReturnRecord):
            self.calls += 1
            if self.calls in self.fail_on:
                raise PersistenceError("disk full")
        return super().append(record)


def _item(**values):
    values.setdefault("branch", "Nakhon Sawan")
    values.setdefault("product_code", "P-100")
    values.setdefault("quantity", "5")
    return NCRItemDraft(**values)


def _draft(service, count=3, **header):
    draft = NCRDraft()
    draft.header.founder = header.pop("founder", "QC Inspector")
    draft.header.causes = header.pop("causes", {CauseKind.TRANSPORT})
    for name, value in header.items():
        setattr(draft.header, name, value)
    for n in range(count):
        service.add_item(draft, _item(product_code=f"P-{n}"))
    return draft


@pytest.fixture
def service(store, sequences):
    return NCRService(store, sequences, print_delay=0)


# ==================== Item entry ====================

def test_add_item_normalizes_entry(service):
    draft = NCRDraft()
    item = service.add_item(draft, _item(
        price_bill="125.50", cost_amount="abc", preliminary_route="Other",
        preliminary_route_other="Return to supplier", problems={ProblemKind.DAMAGED},
    ))

    assert draft.items == [item]
    assert item.item_key
    assert item.quantity == 5
    assert item.price_bill == 125.5
    assert item.cost_amount == 0
    assert item.preliminary_route == "Return to supplier"
    assert item.preliminary_decision == PreliminaryDecision.RETURN


def test_add_item_field_settled_decision(service):
    item = service.add_item(NCRDraft(), _item(is_field_settled=True))
    assert item.preliminary_decision == PreliminaryDecision.FIELD_SETTLEMENT


def test_add_item_keys_are_unique(service):
    draft = NCRDraft()
    keys = {service.add_item(draft, _item()).item_key for _ in range(5)}
    assert len(keys) == 5


def test_add_item_requires_product_and_branch(service):
    draft = NCRDraft()
    with pytest.raises(ValidationError) as exc:
        service.add_item(draft, NCRItemDraft())
    assert exc.value.violations == ["product code is required", "branch is required"]
    assert draft.items == []


def test_delete_item_requires_passphrase(service):
    draft = _draft(service, count=2)
    key = draft.items[0].item_key

    with pytest.raises(AuthorizationError):
        service.delete_item(draft, key, "0000")
    assert len(draft.items) == 2

    assert service.delete_item(draft, key, "1234") is True
    assert key not in [i.item_key for i in draft.items]
    assert len(draft.items) == 1


def test_delete_item_cancelled(store, sequences):
    service = NCRService(store, sequences, confirmation=CallbackConfirm(lambda prompt: False))
    draft = NCRDraft()
    item = service.add_item(draft, _item())

    assert service.delete_item(draft, item.item_key, "1234") is False
    assert draft.items == [item]


def test_edit_item_takes_item_off_the_form(service):
    draft = _draft(service, count=2)
    first = draft.items[0]

    edited = service.edit_item(draft, first.item_key, "1234")

    assert edited is first
    assert first not in draft.items
    assert len(draft.items) == 1


def test_role_authorization(store, sequences):
    service = NCRService(store, sequences, authorization=RoleAuthorization({"QA_OFFICER"}))
    draft = _draft(service, count=2)

    with pytest.raises(AuthorizationError):
        service.delete_item(draft, draft.items[0].item_key)
    service.edit_item(draft, draft.items[0].item_key)
    assert len(draft.items) == 1


# ==================== Validation ====================

def test_validate_accumulates_violations(service, store):
    draft = NCRDraft()

    assert len(service.validate(draft)) == 3
    with pytest.raises(ValidationError) as exc:
        asyncio.run(service.submit(draft))

    assert len(exc.value.violations) == 3
    assert store.count(NCRReport) == 0


def test_submit_cancelled(store, sequences):
    service = NCRService(store, sequences, confirmation=CallbackConfirm(lambda prompt: False))
    draft = _draft(service)

    assert asyncio.run(service.submit(draft)) is None
    assert store.count(NCRReport) == 0
    assert len(draft.items) == 3


# ==================== Submission ====================

def test_submit_persists_items_and_operations_records(service, store):
    draft = _draft(service, count=2, problem_detail="Crushed cartons")
    service.add_item(draft, _item(
        product_code="P-FS", is_field_settled=True, field_settlement_amount="300",
        actions={ActionKind.REWORK}, action_quantities={ActionKind.REWORK: "2"},
    ))

    result = asyncio.run(service.submit(draft))

    assert result.outcome == SaveOutcome.ALL
    assert result.ncr_no == f"NCR-{YEAR}-0001"
    assert result.succeeded == result.total == 3
    result.raise_for_outcome()

    report = store.get(NCRReport, result.ncr_no)
    assert report.founder == "QC Inspector"
    assert report.causes == {CauseKind.TRANSPORT}
    assert [i.status for i in report.items] == [NCRStatus.OPEN, NCRStatus.OPEN, NCRStatus.SETTLED_ON_FIELD]
    assert all(i.record_id == f"{result.ncr_no}-{i.item_key}" for i in report.items)
    assert report.items[2].action_quantity(ActionKind.REWORK) == 2

    records = store.list(ReturnRecord)
    assert [r.id for r in records] == result.return_record_ids
    assert [r.status for r in records] == [
        ReturnStatus.COL_JOB_ACCEPTED, ReturnStatus.COL_JOB_ACCEPTED, ReturnStatus.SETTLED_ON_FIELD,
    ]
    for record, item in zip(records, report.items):
        assert record.id.startswith(f"RT-{YEAR}-")
        assert item.return_record_id == record.id
        assert record.ncr_number == result.ncr_no
        assert record.document_type == DocumentType.NCR
        assert record.origin == RecordOrigin.NCR
        assert record.disposition == Disposition.PENDING
        assert record.ref_no == "-"
        assert record.product_name == "Unknown"
        assert record.unit == "Unit"
        assert record.preliminary_route == "Other"
        assert record.reason == "NCR: Crushed cartons"
        assert record.causes == {CauseKind.TRANSPORT}

    # Draft is cleared after a full save
    assert draft.items == []
    assert draft.header.founder == ""

    # Non-settled items wait for NCR logistics
    assert len(FilterService(store).pending_ncr_logistics()) == 2


def test_qa_accept_closes_items(service, store):
    draft = _draft(service, count=1, qa_accept=True)
    result = asyncio.run(service.submit(draft))
    assert [i.status for i in service.items_of(result.ncr_no)] == [NCRStatus.CLOSED]


def test_ncr_numbers_increase(service):
    first = asyncio.run(service.submit(_draft(service, count=1)))
    second = asyncio.run(service.submit(_draft(service, count=1)))
    assert first.ncr_no == f"NCR-{YEAR}-0001"
    assert second.ncr_no == f"NCR-{YEAR}-0002"
    assert service.founder_suggestions() == ["QC Inspector"]


@pytest.mark.parametrize("sequence", [
    StubSequence(value="ERR-TIMEOUT"),
    StubSequence(value=""),
    StubSequence(value=None),
    StubSequence(value=ErrorSentinel()),
    StubSequence(error=RuntimeError("sheet unavailable")),
    StubSequence(error=SequenceGenerationError("no counter")),
    StubSequence(value="NCR-2026-0001", delay=1),
])
def test_sequence_failure_persists_nothing(store, sequence):
    service = NCRService(store, sequence, sequence_timeout=0.05)
    draft = _draft(service)

    with pytest.raises(SequenceGenerationError):
        asyncio.run(service.submit(draft))

    assert store.count(NCRReport) == 0
    assert store.count(NCRItem) == 0
    assert store.count(ReturnRecord) == 0
    assert len(draft.items) == 3


def test_partial_save(db, sequences):
    store = FlakyStore(db, fail_on={2})
    service = NCRService(store, sequences)
    draft = _draft(service)

    result = asyncio.run(service.submit(draft))

    assert result.outcome == SaveOutcome.PARTIAL
    assert result.succeeded == 2
    assert result.total == 3
    assert "2 of 3" in result.message
    with pytest.raises(PartialPersistenceError) as exc:
        result.raise_for_outcome()
    assert exc.value.succeeded == 2

    # The failed item left neither an NCR item nor an operations record behind
    assert store.count(NCRReport) == 1
    assert store.count(NCRItem) == 2
    assert store.count(ReturnRecord) == 2
    assert len(draft.items) == 3


def test_first_item_failure_still_saves_the_rest(db, sequences):
    store = FlakyStore(db, fail_on={1})
    service = NCRService(store, sequences)
    draft = _draft(service)

    result = asyncio.run(service.submit(draft))

    assert result.outcome == SaveOutcome.PARTIAL
    report = store.get(NCRReport, result.ncr_no)
    assert [i.position for i in report.items] == [1, 2]


def test_nothing_saved(db, sequences):
    store = FlakyStore(db, fail_on={1, 2})
    service = NCRService(store, sequences)
    draft = _draft(service, count=2)

    result = asyncio.run(service.submit(draft))

    assert result.outcome == SaveOutcome.NONE
    with pytest.raises(PersistenceError) as exc:
        result.raise_for_outcome()
    assert not isinstance(exc.value, PartialPersistenceError)
    assert store.count(NCRReport) == 0
    assert store.count(NCRItem) == 0


def test_save_result_outcomes():
    assert NCRSaveResult("N", 3, 3).outcome == SaveOutcome.ALL
    assert NCRSaveResult("N", 0, 3).outcome == SaveOutcome.NONE
    assert NCRSaveResult("N", 1, 3).outcome == SaveOutcome.PARTIAL


# ==================== Printing ====================

def test_print_hook_runs_after_full_save(store, sequences):
    printed = []
    service = NCRService(store, sequences, print_hook=printed.append, print_delay=0.01)

    async def scenario():
        draft = _draft(service, count=1)
        draft.print_requested = True
        result = await service.submit(draft)
        # Printing is detached from the save
        assert printed == []
        await asyncio.sleep(0.1)
        return result

    result = asyncio.run(scenario())
    assert printed == [result.ncr_no]


def test_print_hook_skipped_when_not_requested(store, sequences):
    printed = []
    service = NCRService(store, sequences, print_hook=printed.append, print_delay=0)

    async def scenario():
        await service.submit(_draft(service, count=1))
        await asyncio.sleep(0.05)

    asyncio.run(scenario())
    assert printed == []
