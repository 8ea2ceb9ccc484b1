"""Counter rows backing document-number issuance."""

from sqlalchemy import Column, Integer, String
from backend.app.db.session import Base


class DocumentCounter(Base):
    """
    One row per document prefix.

    ``last_value`` is only ever advanced by a single UPDATE ... RETURNING
    statement, never read-then-written from application code.
    """
    __tablename__ = "document_counters"

    prefix = Column(String(20), primary_key=True)
    last_value = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<DocumentCounter(prefix='{self.prefix}', last_value={self.last_value})>"
