"""
Store and store-assignment models.

Area managers are linked to the stores they audit through
``StoreAssignment``. Assignments are soft-deactivated so history is kept.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from backend.app.db.session import Base


class Store(Base):
    """A retail store that can be audited."""
    __tablename__ = "stores"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    store_name = Column(String(200), nullable=False)
    store_code = Column(String(50), unique=True, nullable=False)

    # Status (soft delete)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Store(id={self.id}, code='{self.store_code}', active={self.is_active})>"


class StoreAssignment(Base):
    """Many-to-many link between area managers and stores."""
    __tablename__ = "store_assignments"
    __table_args__ = (
        UniqueConstraint("store_id", "user_id", name="uq_store_assignment"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    store_id = Column(Integer, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    assigned_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    assigned_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    def __repr__(self):
        return f"<StoreAssignment(store={self.store_id}, user={self.user_id}, active={self.is_active})>"
