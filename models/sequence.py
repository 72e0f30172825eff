"""
Document sequence model - durable counters for document numbers.

One row per sequence key (e.g. "COL", "SHP", "NCR-2026").
"""
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime

from db.session import Base


class DocumentSequence(Base):
    """Last reserved value of a numbering sequence."""
    __tablename__ = "document_sequences"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sequence_key = Column(String(50), nullable=False, unique=True, index=True)
    current_value = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<DocumentSequence(key={self.sequence_key}, value={self.current_value})>"
