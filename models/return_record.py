"""
Return record SQLAlchemy model (operations hub record).

A ReturnRecord is the canonical operations unit. It originates either
from the logistics collection flow or from an NCR item.

Status Flow:
Requested / COL_JobAccepted (NCR) ─┬─→ COL_InTransit (hub route)
COL_Consolidated (logistics) ──────┴─→ DirectReturn (direct route)

COL_JobAccepted / JobAccepted (non-NCR) → COL_BranchReceived

Field-settled NCR items → Settled_OnField (never enter the pipeline)
"""

from datetime import datetime
from typing import Optional, Set

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, Numeric, JSON, Index
from sqlalchemy.orm import validates

from db.session import Base
from models.classification import (
    ProblemKind, ActionKind, CauseKind, to_tag_list, to_tag_set,
)


class ReturnStatus:
    """Operations hub status values."""
    REQUESTED = "Requested"
    JOB_ACCEPTED = "JobAccepted"  # legacy
    COL_JOB_ACCEPTED = "COL_JobAccepted"
    COL_CONSOLIDATED = "COL_Consolidated"
    COL_IN_TRANSIT = "COL_InTransit"
    DIRECT_RETURN = "DirectReturn"
    COL_BRANCH_RECEIVED = "COL_BranchReceived"
    SETTLED_ON_FIELD = "Settled_OnField"


class Disposition:
    """Post-decision routing of a return record."""
    RTV = "RTV"
    SELL = "Sell"
    SCRAP = "Scrap"
    INTERNAL = "Internal"
    CLAIM = "Claim"
    OTHER = "Other"
    PENDING = "Pending"


class DocumentType:
    """Explicit origin tag carried by a record."""
    NCR = "NCR"
    LOGISTICS = "LOGISTICS"


class RecordOrigin:
    """Origin resolved from the document type tag plus the NCR number."""
    NCR = "NCR"
    LOGISTICS = "LOGISTICS"
    UNTAGGED_LEGACY = "UNTAGGED_LEGACY"


def resolve_origin(document_type: Optional[str], ncr_number: Optional[str]) -> str:
    """
    Resolve the origin of a record.

    The explicit LOGISTICS tag always wins over a stale NCR number;
    untagged legacy records carrying an NCR number belong to the NCR flow.
    """
    if document_type == DocumentType.NCR:
        return RecordOrigin.NCR
    if document_type == DocumentType.LOGISTICS:
        return RecordOrigin.LOGISTICS
    if ncr_number and ncr_number.strip():
        return RecordOrigin.NCR
    return RecordOrigin.UNTAGGED_LEGACY


class ItemDetailColumns:
    """Item-level columns shared by NCR items and the records derived from them."""

    # Product & customer
    branch = Column(String(100), nullable=True, index=True)
    ref_no = Column(String(100), nullable=True)
    neo_ref_no = Column(String(100), nullable=True)
    product_code = Column(String(100), nullable=True, index=True)
    product_name = Column(String(255), nullable=True)
    customer_name = Column(String(255), nullable=True)
    destination_customer = Column(String(255), nullable=True)
    quantity = Column(Integer, default=0)
    unit = Column(String(50), nullable=True)
    expiry_date = Column(String(10), nullable=True)

    # Prices
    price_per_unit = Column(Numeric(12, 2), default=0)
    price_bill = Column(Numeric(12, 2), default=0)
    price_sell = Column(Numeric(12, 2), default=0)

    # Cost
    has_cost = Column(Boolean, default=False)
    cost_amount = Column(Numeric(12, 2), default=0)
    cost_responsible = Column(String(255), nullable=True)
    problem_source = Column(String(255), nullable=True)

    # Preliminary decision
    preliminary_decision = Column(String(50), nullable=True)
    preliminary_route = Column(String(255), nullable=True)

    # Field settlement
    is_field_settled = Column(Boolean, default=False)
    field_settlement_amount = Column(Numeric(12, 2), default=0)
    field_settlement_evidence = Column(Text, nullable=True)
    field_settlement_name = Column(String(255), nullable=True)
    field_settlement_position = Column(String(255), nullable=True)

    # Problem analysis
    problem_analysis = Column(String(100), nullable=True)
    problem_analysis_sub = Column(String(255), nullable=True)
    problem_analysis_cause = Column(String(255), nullable=True)
    problem_analysis_detail = Column(Text, nullable=True)
    images = Column(JSON, default=list)

    # Classification (sorted tag lists)
    problem_tags = Column(JSON, default=list)
    problem_other_text = Column(Text, nullable=True)
    problem_detail = Column(Text, nullable=True)
    action_tags = Column(JSON, default=list)
    action_quantities = Column(JSON, default=dict)
    action_rework_method = Column(Text, nullable=True)
    action_special_acceptance_reason = Column(Text, nullable=True)

    @property
    def problems(self) -> Set[ProblemKind]:
        return to_tag_set(self.problem_tags, ProblemKind)

    @problems.setter
    def problems(self, value):
        self.problem_tags = to_tag_list(value)

    @property
    def actions(self) -> Set[ActionKind]:
        return to_tag_set(self.action_tags, ActionKind)

    @actions.setter
    def actions(self, value):
        self.action_tags = to_tag_list(value)

    def action_quantity(self, kind: ActionKind) -> int:
        return int((self.action_quantities or {}).get(ActionKind(kind).value, 0))


# Fields copied verbatim from an NCR item onto its operations record
ITEM_DETAIL_FIELDS = (
    "branch", "ref_no", "neo_ref_no", "product_code", "product_name",
    "customer_name", "destination_customer", "quantity", "unit", "expiry_date",
    "price_per_unit", "price_bill", "price_sell",
    "has_cost", "cost_amount", "cost_responsible", "problem_source",
    "preliminary_decision", "preliminary_route",
    "is_field_settled", "field_settlement_amount", "field_settlement_evidence",
    "field_settlement_name", "field_settlement_position",
    "problem_analysis", "problem_analysis_sub", "problem_analysis_cause",
    "problem_analysis_detail", "images",
    "problem_tags", "problem_other_text", "problem_detail",
    "action_tags", "action_quantities", "action_rework_method",
    "action_special_acceptance_reason",
)


class ReturnRecord(ItemDetailColumns, Base):
    """Operations hub record."""
    __tablename__ = "return_records"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(100), nullable=False, unique=True, index=True)
    parent_id = Column(String(100), nullable=True, index=True)

    # Reference numbers
    ncr_number = Column(String(100), nullable=True, index=True)
    document_no = Column(String(100), nullable=True, index=True)
    collection_order_id = Column(String(100), nullable=True, index=True)
    tm_no = Column(String(100), nullable=True)
    invoice_no = Column(String(100), nullable=True)

    # Classification of origin
    document_type = Column(String(20), nullable=True)
    origin = Column(String(20), nullable=False, default=RecordOrigin.UNTAGGED_LEGACY, index=True)

    # Descriptive
    category = Column(String(100), nullable=True)
    founder = Column(String(255), nullable=True)
    reason = Column(Text, nullable=True)
    root_cause = Column(String(255), nullable=True)
    amount = Column(Numeric(12, 2), default=0)

    # Status & routing
    status = Column(String(50), nullable=False, default=ReturnStatus.REQUESTED, index=True)
    disposition = Column(String(20), nullable=False, default=Disposition.PENDING, index=True)

    # Dates (ISO strings, compared lexically)
    date = Column(String(32), nullable=True)
    date_requested = Column(String(32), nullable=True)
    date_received = Column(String(32), nullable=True)

    # Inherited from the NCR header
    cause_tags = Column(JSON, default=list)
    cause_detail = Column(Text, nullable=True)
    prevention_detail = Column(Text, nullable=True)
    prevention_due_date = Column(String(10), nullable=True)
    responsible_person = Column(String(255), nullable=True)
    responsible_position = Column(String(255), nullable=True)
    due_date = Column(String(10), nullable=True)
    approver = Column(String(255), nullable=True)
    approver_position = Column(String(255), nullable=True)
    approver_date = Column(String(10), nullable=True)

    # NCR logistics dispatch
    route_type = Column(String(20), nullable=True)
    dispatch_destination = Column(String(255), nullable=True)
    transport_driver = Column(String(255), nullable=True)
    transport_plate = Column(String(50), nullable=True)
    transport_company = Column(String(255), nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def causes(self) -> Set[CauseKind]:
        return to_tag_set(self.cause_tags, CauseKind)

    @causes.setter
    def causes(self, value):
        self.cause_tags = to_tag_list(value)

    @property
    def is_ncr_origin(self) -> bool:
        return self.origin == RecordOrigin.NCR

    def resolve_origin(self) -> str:
        """Recompute the resolved origin from the current tag and NCR number."""
        self.origin = resolve_origin(self.document_type, self.ncr_number)
        return self.origin

    @validates("document_type", "ncr_number")
    def _refresh_origin(self, key, value):
        """Keep origin in step with the tag and NCR number on every assignment."""
        document_type = value if key == "document_type" else self.document_type
        ncr_number = value if key == "ncr_number" else self.ncr_number
        self.origin = resolve_origin(document_type, ncr_number)
        return value

    def __repr__(self):
        return f"<ReturnRecord(id={self.id}, status={self.status}, origin={self.origin})>"


Index("ix_return_records_status_origin", ReturnRecord.status, ReturnRecord.origin)
