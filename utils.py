"""
Utility functions for the workflow engine.

Provides common utilities:
- Logging setup
- Grouping key normalization
- Return record id generation
- ISO date / timestamp helpers
"""

import logging
import random
import re
import time
from datetime import datetime, timezone
from typing import Optional

from config import settings

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def setup_logging(level: str = None):
    """Configure root logging from settings."""
    logging.basicConfig(
        level=getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def normalize_key(value: Optional[str]) -> str:
    """
    Normalize a reference number for grouping.

    Trims, removes all internal whitespace and lowercases. Punctuation is
    kept: "R-001" and " r-001 " collapse, "R001" stays distinct.
    """
    if not value:
        return ""
    return _WHITESPACE.sub("", value.strip()).lower()


def generate_return_record_id(now: datetime = None) -> str:
    """
    Generate an operations record id.

    Format: RT-{year}-{epoch_millis}-{random 0..999}
    """
    now = now or datetime.now()
    millis = int(time.time() * 1000)
    return f"RT-{now.year}-{millis}-{random.randint(0, 999)}"


def generate_item_key() -> str:
    """Epoch-millis key of a draft NCR item."""
    return str(int(time.time() * 1000))


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with a Z suffix."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def today_iso() -> str:
    """Current local date as YYYY-MM-DD."""
    return datetime.now().date().isoformat()
