"""
Problem / action / cause classification tags.

NCR items classify a non-conformance with a multi-select of problem
kinds, corrective action kinds and root-cause categories. They are kept
as sets of enum tags and stored as sorted JSON lists of tag values.
"""

from enum import Enum
from typing import Dict, Iterable, List, Set, Type, TypeVar


class ProblemKind(str, Enum):
    """Problem observed on an NCR item."""
    DAMAGED = "DAMAGED"
    DAMAGED_IN_BOX = "DAMAGED_IN_BOX"
    LOST = "LOST"
    MIXED = "MIXED"
    WRONG_INVOICE = "WRONG_INVOICE"
    LATE = "LATE"
    DUPLICATE = "DUPLICATE"
    WRONG = "WRONG"
    INCOMPLETE = "INCOMPLETE"
    OVER = "OVER"
    WRONG_INFO = "WRONG_INFO"
    SHORT_EXPIRY = "SHORT_EXPIRY"
    TRANSPORT_DAMAGE = "TRANSPORT_DAMAGE"
    ACCIDENT = "ACCIDENT"
    PO_EXPIRED = "PO_EXPIRED"
    NO_BARCODE = "NO_BARCODE"
    NOT_ORDERED = "NOT_ORDERED"
    OTHER = "OTHER"


class ActionKind(str, Enum):
    """Corrective action taken on an NCR item."""
    REJECT = "REJECT"
    REJECT_SORT = "REJECT_SORT"
    REWORK = "REWORK"
    SPECIAL_ACCEPTANCE = "SPECIAL_ACCEPTANCE"
    SCRAP = "SCRAP"
    REPLACE = "REPLACE"


class CauseKind(str, Enum):
    """Root-cause category of an NCR report."""
    PACKAGING = "PACKAGING"
    TRANSPORT = "TRANSPORT"
    OPERATION = "OPERATION"
    ENVIRONMENT = "ENVIRONMENT"


# ==================== Display Labels ====================

PROBLEM_DISPLAY_MAP: Dict[ProblemKind, str] = {
    ProblemKind.DAMAGED: "Damaged",
    ProblemKind.DAMAGED_IN_BOX: "Damaged In Box",
    ProblemKind.LOST: "Lost",
    ProblemKind.MIXED: "Mixed Products",
    ProblemKind.WRONG_INVOICE: "Wrong Invoice",
    ProblemKind.LATE: "Late Delivery",
    ProblemKind.DUPLICATE: "Duplicate Delivery",
    ProblemKind.WRONG: "Wrong Product",
    ProblemKind.INCOMPLETE: "Incomplete",
    ProblemKind.OVER: "Over Delivery",
    ProblemKind.WRONG_INFO: "Wrong Information",
    ProblemKind.SHORT_EXPIRY: "Short Expiry",
    ProblemKind.TRANSPORT_DAMAGE: "Damaged In Transport",
    ProblemKind.ACCIDENT: "Accident",
    ProblemKind.PO_EXPIRED: "PO Expired",
    ProblemKind.NO_BARCODE: "No Barcode",
    ProblemKind.NOT_ORDERED: "Not Ordered",
    ProblemKind.OTHER: "Other",
}

ACTION_DISPLAY_MAP: Dict[ActionKind, str] = {
    ActionKind.REJECT: "Reject",
    ActionKind.REJECT_SORT: "Reject & Sort",
    ActionKind.REWORK: "Rework",
    ActionKind.SPECIAL_ACCEPTANCE: "Special Acceptance",
    ActionKind.SCRAP: "Scrap",
    ActionKind.REPLACE: "Replace",
}

CAUSE_DISPLAY_MAP: Dict[CauseKind, str] = {
    CauseKind.PACKAGING: "Packaging",
    CauseKind.TRANSPORT: "Transport",
    CauseKind.OPERATION: "Operation",
    CauseKind.ENVIRONMENT: "Environment",
}


E = TypeVar("E", bound=Enum)


def to_tag_list(tags: Iterable) -> List[str]:
    """Serialize a collection of tags (enum members or values) as a sorted list."""
    return sorted({tag.value if isinstance(tag, Enum) else str(tag) for tag in (tags or [])})


def to_tag_set(values: Iterable[str], enum_cls: Type[E]) -> Set[E]:
    """Parse stored tag values back into a set of enum members."""
    return {enum_cls(value) for value in (values or [])}


def display_labels(tags: Iterable[E], display_map: Dict[E, str]) -> List[str]:
    """Display labels of the given tags, in declaration order."""
    selected = set(tags)
    return [label for tag, label in display_map.items() if tag in selected]
