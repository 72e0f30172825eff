"""
NCR Service - Non-conformance report entry, submission and sync.

Handles the complete NCR save pipeline:
1. Item entry on a draft (edit / delete gated by the authorization port)
2. Validation (all violations accumulated)
3. Operator confirmation
4. NCR number from the sequence collaborator (failure aborts everything)
5. Per item, sequentially: persist the NCR item and the operations
   record derived from it in one transaction
6. Outcome: all / none / partial
7. On full success: reset the draft and schedule printing if requested

Key features:
- Header owns its items; each item keeps the composite storage id
  "{ncr_no}-{item_key}"
- Field-settled items go straight to Settled_OnField
- No partial NCR when numbering fails
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Set

from config import settings
from models.classification import ActionKind, CauseKind, ProblemKind, to_tag_list
from models.ncr import NCRReport, NCRItem, NCRStatus, composite_item_id
from models.return_record import (
    ReturnRecord, ReturnStatus, Disposition, DocumentType, ITEM_DETAIL_FIELDS,
)
from services.errors import (
    PartialPersistenceError, PersistenceError, SequenceGenerationError,
    ValidationError, WorkflowError,
)
from services.ports import (
    AuthorizationPort, ConfirmationPort, AutoConfirm, ItemAction, PassphraseAuthorization,
)
from services.record_store import RecordStore
from services.sequence_service import SequenceService
from utils import generate_item_key, generate_return_record_id, today_iso

logger = logging.getLogger(__name__)


class PreliminaryDecision:
    RETURN = "Return"
    FIELD_SETTLEMENT = "FieldSettlement"


OTHER_ROUTE = "Other"

# Header fields inherited by every derived operations record
HEADER_INHERITED_FIELDS = (
    "cause_tags", "cause_detail", "prevention_detail", "prevention_due_date",
    "responsible_person", "responsible_position", "due_date",
    "approver", "approver_position", "approver_date",
)

_NUMERIC_FIELDS = (
    "price_per_unit", "price_bill", "price_sell", "cost_amount", "field_settlement_amount",
)


def _number(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


# ==================== Drafts ====================

@dataclass
class NCRItemDraft:
    """One item on the NCR form before submission."""
    branch: str = ""
    ref_no: str = ""
    neo_ref_no: str = ""
    product_code: str = ""
    product_name: str = ""
    customer_name: str = ""
    destination_customer: str = ""
    quantity: int = 0
    unit: str = ""
    expiry_date: str = ""

    price_per_unit: float = 0
    price_bill: float = 0
    price_sell: float = 0

    has_cost: bool = False
    cost_amount: float = 0
    cost_responsible: str = ""
    problem_source: str = ""

    preliminary_decision: str = PreliminaryDecision.RETURN
    preliminary_route: str = ""
    preliminary_route_other: str = ""

    is_field_settled: bool = False
    field_settlement_amount: float = 0
    field_settlement_evidence: str = ""
    field_settlement_name: str = ""
    field_settlement_position: str = ""

    problem_analysis: str = "Customer"
    problem_analysis_sub: str = ""
    problem_analysis_cause: str = ""
    problem_analysis_detail: str = ""
    images: List[str] = field(default_factory=list)

    problems: Set[ProblemKind] = field(default_factory=set)
    problem_other_text: str = ""
    problem_detail: str = ""
    actions: Set[ActionKind] = field(default_factory=set)
    action_quantities: Dict[ActionKind, int] = field(default_factory=dict)
    action_rework_method: str = ""
    action_special_acceptance_reason: str = ""

    item_key: str = ""

    def column_values(self) -> Dict[str, Any]:
        """Values of the shared item columns."""
        values = {name: getattr(self, name) for name in ITEM_DETAIL_FIELDS if hasattr(self, name)}
        values["images"] = list(self.images)
        values["problem_tags"] = to_tag_list(self.problems)
        values["action_tags"] = to_tag_list(self.actions)
        values["action_quantities"] = {
            ActionKind(kind).value: int(qty or 0) for kind, qty in self.action_quantities.items()
        }
        return values


@dataclass
class NCRHeaderDraft:
    """Report-level fields of the NCR form."""
    to_dept: str = "Quality Control"
    date: str = field(default_factory=today_iso)
    copy_to: str = ""
    founder: str = ""
    po_no: str = ""
    problem_detail: str = ""

    causes: Set[CauseKind] = field(default_factory=set)
    cause_detail: str = ""
    prevention_detail: str = ""
    prevention_due_date: str = ""

    due_date: str = ""
    approver: str = ""
    approver_position: str = ""
    approver_date: str = ""
    responsible_person: str = ""
    responsible_position: str = ""

    qa_accept: bool = False
    qa_reject: bool = False
    qa_reason: str = ""


@dataclass
class NCRDraft:
    """Transient NCR form state."""
    header: NCRHeaderDraft = field(default_factory=NCRHeaderDraft)
    items: List[NCRItemDraft] = field(default_factory=list)
    print_requested: bool = False

    def find(self, item_key: str) -> Optional[NCRItemDraft]:
        return next((i for i in self.items if i.item_key == item_key), None)

    def reset(self):
        self.header = NCRHeaderDraft()
        self.items = []
        self.print_requested = False


# ==================== Result ====================

class SaveOutcome:
    ALL = "ALL"
    NONE = "NONE"
    PARTIAL = "PARTIAL"


@dataclass
class NCRSaveResult:
    """Outcome of an NCR submission."""
    ncr_no: str
    succeeded: int
    total: int
    return_record_ids: List[str] = field(default_factory=list)

    @property
    def outcome(self) -> str:
        if self.succeeded == self.total:
            return SaveOutcome.ALL
        if self.succeeded == 0:
            return SaveOutcome.NONE
        return SaveOutcome.PARTIAL

    @property
    def success(self) -> bool:
        return self.outcome == SaveOutcome.ALL

    @property
    def message(self) -> str:
        if self.outcome == SaveOutcome.ALL:
            return f"NCR {self.ncr_no} saved ({self.total} item(s))"
        if self.outcome == SaveOutcome.NONE:
            return f"NCR {self.ncr_no}: no item could be saved"
        return f"NCR {self.ncr_no}: only {self.succeeded} of {self.total} item(s) saved"

    def raise_for_outcome(self):
        """Raise PartialPersistenceError / PersistenceError unless everything was saved."""
        if self.outcome == SaveOutcome.PARTIAL:
            raise PartialPersistenceError(self.message, self.succeeded, self.total)
        if self.outcome == SaveOutcome.NONE:
            raise PersistenceError(self.message)


# ==================== Service ====================

class NCRService:
    """
    Service for NCR entry and submission.

    Usage:
        service = NCRService(store, SequenceService(store))
        draft = NCRDraft()
        draft.header.founder = "QC Inspector"
        draft.header.causes = {CauseKind.TRANSPORT}
        service.add_item(draft, NCRItemDraft(branch="Nakhon Sawan", product_code="P-01"))
        result = await service.submit(draft)
    """

    def __init__(
        self,
        store: RecordStore,
        sequence=None,
        authorization: AuthorizationPort = None,
        confirmation: ConfirmationPort = None,
        print_hook: Callable[[str], Any] = None,
        sequence_timeout: float = None,
        print_delay: float = None,
    ):
        self.store = store
        self.sequence = sequence or SequenceService(store)
        self.authorization = authorization or PassphraseAuthorization()
        self.confirmation = confirmation or AutoConfirm()
        self.print_hook = print_hook
        self.sequence_timeout = sequence_timeout if sequence_timeout is not None else settings.SEQUENCE_TIMEOUT_SECONDS
        self.print_delay = print_delay if print_delay is not None else settings.PRINT_DELAY_SECONDS

    # ---------- Item entry ----------

    def add_item(self, draft: NCRDraft, item: NCRItemDraft) -> NCRItemDraft:
        """
        Add an item to the draft.

        Raises:
            ValidationError: product code or branch missing
        """
        violations = []
        if not item.product_code:
            violations.append("product code is required")
        if not item.branch:
            violations.append("branch is required")
        if violations:
            raise ValidationError("Incomplete item", violations)

        route = item.preliminary_route
        if route == OTHER_ROUTE:
            route = item.preliminary_route_other or OTHER_ROUTE

        added = replace(
            item,
            item_key=self._unique_item_key(draft),
            quantity=int(_number(item.quantity)),
            preliminary_decision=(
                PreliminaryDecision.FIELD_SETTLEMENT if item.is_field_settled else PreliminaryDecision.RETURN
            ),
            preliminary_route=route,
            images=list(item.images),
            problems=set(item.problems),
            actions=set(item.actions),
            action_quantities=dict(item.action_quantities),
            **{name: _number(getattr(item, name)) for name in _NUMERIC_FIELDS},
        )
        draft.items.append(added)
        logger.debug(f"[NCR] Draft item {added.item_key} added ({added.product_code})")
        return added

    @staticmethod
    def _unique_item_key(draft: NCRDraft) -> str:
        key = generate_item_key()
        used = {i.item_key for i in draft.items}
        while key in used:
            key = str(int(key) + 1)
        return key

    def delete_item(self, draft: NCRDraft, item_key: str, credential: str = None) -> bool:
        """
        Remove an item from the draft after authorization and confirmation.

        Returns False when the operator cancels.

        Raises:
            AuthorizationError: authorization refused (draft unchanged)
            ValidationError: unknown item
        """
        self.authorization.authorize(ItemAction.DELETE, credential)
        item = self._require_item(draft, item_key)
        if not self.confirmation.confirm(f"Delete item {item.product_code}?"):
            return False
        draft.items.remove(item)
        logger.info(f"[NCR] Draft item {item_key} deleted")
        return True

    def edit_item(self, draft: NCRDraft, item_key: str, credential: str = None) -> NCRItemDraft:
        """
        Take an item off the draft so the entry form can be repopulated.

        Raises:
            AuthorizationError: authorization refused (draft unchanged)
            ValidationError: unknown item
        """
        self.authorization.authorize(ItemAction.EDIT, credential)
        item = self._require_item(draft, item_key)
        draft.items.remove(item)
        logger.info(f"[NCR] Draft item {item_key} reopened for edit")
        return item

    @staticmethod
    def _require_item(draft: NCRDraft, item_key: str) -> NCRItemDraft:
        item = draft.find(item_key)
        if item is None:
            raise ValidationError(f"Item '{item_key}' is not on the form")
        return item

    # ---------- Validation ----------

    def validate(self, draft: NCRDraft) -> List[str]:
        """All violations preventing submission (empty when valid)."""
        errors = []
        if not (draft.header.founder or "").strip():
            errors.append("founder is required")
        if not draft.items:
            errors.append("add at least one item")
        if not draft.header.causes:
            errors.append("select at least one cause (packaging / transport / operation / environment)")
        return errors

    # ---------- Submission ----------

    async def submit(self, draft: NCRDraft) -> Optional[NCRSaveResult]:
        """
        Save the draft: one NCR item plus one operations record per item.

        Returns None when the operator cancels.

        Raises:
            ValidationError: draft incomplete (nothing persisted)
            SequenceGenerationError: no NCR number (nothing persisted)
        """
        errors = self.validate(draft)
        if errors:
            raise ValidationError("NCR form incomplete", errors)

        if not self.confirmation.confirm(f"Save NCR with {len(draft.items)} item(s)?"):
            return None

        ncr_no = await self._next_ncr_number()
        logger.info(f"[NCR] Saving {ncr_no} with {len(draft.items)} item(s)")

        result = NCRSaveResult(ncr_no=ncr_no, succeeded=0, total=len(draft.items))
        header_persisted = False

        for position, item in enumerate(draft.items):
            try:
                record_id = self._persist_item(ncr_no, draft.header, item, position, header_persisted)
            except WorkflowError as e:
                logger.error(f"[NCR] ❌ Item {composite_item_id(ncr_no, item.item_key)} not saved: {e}")
                continue

            header_persisted = True
            result.succeeded += 1
            result.return_record_ids.append(record_id)
            # Yield between items; each persistence completes before the next starts
            await asyncio.sleep(0)

        if result.success:
            logger.info(f"[NCR] ✅ {result.message}")
            print_requested = draft.print_requested
            draft.reset()
            if print_requested:
                self._schedule_print(ncr_no)
        else:
            logger.warning(f"[NCR] {result.message}")

        return result

    async def _next_ncr_number(self) -> str:
        try:
            ncr_no = await asyncio.wait_for(
                self.sequence.get_next_document_number(),
                timeout=self.sequence_timeout,
            )
        except SequenceGenerationError:
            raise
        except asyncio.TimeoutError as e:
            raise SequenceGenerationError(
                f"NCR number not received within {self.sequence_timeout}s"
            ) from e
        except Exception as e:
            raise SequenceGenerationError(f"NCR number generation failed: {e}") from e

        if not isinstance(ncr_no, str) or not ncr_no or "ERR" in ncr_no:
            raise SequenceGenerationError(f"NCR number generation failed: {ncr_no!r}")
        return ncr_no

    def _persist_item(
        self,
        ncr_no: str,
        header: NCRHeaderDraft,
        item: NCRItemDraft,
        position: int,
        header_persisted: bool,
    ) -> str:
        """Persist one NCR item and its operations record atomically."""
        with self.store.transaction():
            if header_persisted:
                report = self.store.require(NCRReport, ncr_no, "NCRReport")
            else:
                report = self._build_report(ncr_no, header)
                self.store.append(report)

            ncr_item = NCRItem(
                record_id=composite_item_id(ncr_no, item.item_key),
                item_key=item.item_key,
                position=position,
                status=self._item_status(header, item),
                **item.column_values(),
            )
            report.items.append(ncr_item)
            self.store.db.flush()

            record = self.build_return_record(report, ncr_item)
            self.store.append(record)
            ncr_item.return_record_id = record.id

        logger.debug(f"[NCR] Item {ncr_item.record_id} → {record.id} ({record.status})")
        return record.id

    @staticmethod
    def _build_report(ncr_no: str, header: NCRHeaderDraft) -> NCRReport:
        return NCRReport(
            ncr_no=ncr_no,
            to_dept=header.to_dept,
            date=header.date,
            copy_to=header.copy_to,
            founder=header.founder.strip(),
            po_no=header.po_no,
            problem_detail=header.problem_detail,
            cause_tags=to_tag_list(header.causes),
            cause_detail=header.cause_detail,
            prevention_detail=header.prevention_detail,
            prevention_due_date=header.prevention_due_date,
            due_date=header.due_date,
            approver=header.approver,
            approver_position=header.approver_position,
            approver_date=header.approver_date,
            responsible_person=header.responsible_person,
            responsible_position=header.responsible_position,
            qa_accept=header.qa_accept,
            qa_reject=header.qa_reject,
            qa_reason=header.qa_reason,
        )

    @staticmethod
    def _item_status(header: NCRHeaderDraft, item: NCRItemDraft) -> str:
        if item.is_field_settled:
            return NCRStatus.SETTLED_ON_FIELD
        return NCRStatus.CLOSED if header.qa_accept else NCRStatus.OPEN

    def build_return_record(self, report: NCRReport, item: NCRItem) -> ReturnRecord:
        """Derive the operations hub record of an NCR item."""
        record = ReturnRecord(id=self._unique_return_record_id())

        for name in ITEM_DETAIL_FIELDS:
            setattr(record, name, getattr(item, name))
        for name in HEADER_INHERITED_FIELDS:
            setattr(record, name, getattr(report, name))

        record.images = list(item.images or [])
        record.ref_no = item.ref_no or "-"
        record.neo_ref_no = item.neo_ref_no or "-"
        record.product_name = item.product_name or "Unknown"
        record.product_code = item.product_code or "N/A"
        record.unit = item.unit or "Unit"
        record.customer_name = item.customer_name or "Unknown"
        record.destination_customer = item.destination_customer or ""
        record.branch = item.branch or "Head Office"
        record.preliminary_route = item.preliminary_route or OTHER_ROUTE

        record.date = report.date
        record.date_requested = report.date
        record.category = "General"
        record.ncr_number = report.ncr_no
        record.document_type = DocumentType.NCR
        record.founder = report.founder
        record.status = (
            ReturnStatus.SETTLED_ON_FIELD if item.is_field_settled else ReturnStatus.COL_JOB_ACCEPTED
        )
        record.disposition = Disposition.PENDING
        record.reason = f"NCR: {item.problem_detail or report.problem_detail or '-'}"
        record.amount = item.price_bill or 0
        record.root_cause = item.problem_source or "NCR"
        return record

    def _unique_return_record_id(self) -> str:
        record_id = generate_return_record_id()
        while self.store.exists(ReturnRecord, record_id):
            record_id = generate_return_record_id()
        return record_id

    def _schedule_print(self, ncr_no: str):
        """
        Run the print hook shortly after the save, detached from it.

        Best effort: the callback lives on the caller's running loop, so it
        is dropped if that loop stops before the delay elapses.
        """
        if self.print_hook is None:
            return
        loop = asyncio.get_running_loop()
        loop.call_later(self.print_delay, self.print_hook, ncr_no)
        logger.debug(f"[NCR] Print of {ncr_no} scheduled in {self.print_delay}s")

    # ---------- Lookups ----------

    def founder_suggestions(self) -> List[str]:
        """Distinct founders of stored NCR reports, sorted."""
        return sorted({r.founder for r in self.store.list(NCRReport) if r.founder})

    def items_of(self, ncr_no: str) -> List[NCRItem]:
        """Items of a stored NCR report in entry order."""
        return list(self.store.require(NCRReport, ncr_no, "NCRReport").items)
