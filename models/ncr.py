"""
NCR (non-conformance report) SQLAlchemy models.

One NCRReport header owns an ordered list of NCRItems. Items never
escape their header. At the storage boundary each item keeps the
composite id "{ncr_no}-{item_key}".
"""

from datetime import datetime
from typing import Set

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship

from db.session import Base
from models.classification import CauseKind, to_tag_list, to_tag_set
from models.return_record import ItemDetailColumns


class NCRStatus:
    """NCR item status values."""
    OPEN = "Open"
    CLOSED = "Closed"
    SETTLED_ON_FIELD = "Settled_OnField"


def composite_item_id(ncr_no: str, item_key: str) -> str:
    """Storage id of an NCR item."""
    return f"{ncr_no}-{item_key}"


class NCRReport(Base):
    """NCR header shared by every item of one submission."""
    __tablename__ = "ncr_reports"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    ncr_no = Column(String(50), nullable=False, unique=True, index=True)

    # Header
    to_dept = Column(String(255), nullable=True)
    date = Column(String(10), nullable=True)
    copy_to = Column(String(255), nullable=True)
    founder = Column(String(255), nullable=False, index=True)
    po_no = Column(String(100), nullable=True)
    problem_detail = Column(Text, nullable=True)

    # Cause & prevention
    cause_tags = Column(JSON, default=list)
    cause_detail = Column(Text, nullable=True)
    prevention_detail = Column(Text, nullable=True)
    prevention_due_date = Column(String(10), nullable=True)

    # Signatures
    due_date = Column(String(10), nullable=True)
    approver = Column(String(255), nullable=True)
    approver_position = Column(String(255), nullable=True)
    approver_date = Column(String(10), nullable=True)
    responsible_person = Column(String(255), nullable=True)
    responsible_position = Column(String(255), nullable=True)

    # QA verdict
    qa_accept = Column(Boolean, default=False)
    qa_reject = Column(Boolean, default=False)
    qa_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    items = relationship(
        "NCRItem",
        back_populates="report",
        order_by="NCRItem.position",
        cascade="all, delete-orphan",
    )

    @property
    def causes(self) -> Set[CauseKind]:
        return to_tag_set(self.cause_tags, CauseKind)

    @causes.setter
    def causes(self, value):
        self.cause_tags = to_tag_list(value)

    def __repr__(self):
        return f"<NCRReport(ncr_no={self.ncr_no}, items={len(self.items)})>"


class NCRItem(ItemDetailColumns, Base):
    """One non-conforming item of an NCR report."""
    __tablename__ = "ncr_items"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    record_id = Column(String(120), nullable=False, unique=True, index=True)
    report_id = Column(Integer, ForeignKey("ncr_reports.pk", ondelete="CASCADE"), nullable=False, index=True)
    item_key = Column(String(50), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    status = Column(String(30), nullable=False, default=NCRStatus.OPEN)

    # Operations record derived from this item
    return_record_id = Column(String(100), nullable=True, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    report = relationship("NCRReport", back_populates="items")

    def __repr__(self):
        return f"<NCRItem(record_id={self.record_id}, status={self.status})>"
