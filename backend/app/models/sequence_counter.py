"""
Sequence counter database model.

One row per numbering scope (e.g. ``RW2501-`` or ``SAL-RW2501-``).
"""

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from backend.app.db.session import Base


class SequenceCounter(Base):
    """
    Per-scope counter.

    ``last_value`` is the suffix most recently handed out for ``scope``.
    The row is locked (SELECT ... FOR UPDATE) while a transaction allocates
    from it, which serializes allocators within a scope.
    """
    __tablename__ = "sequence_counters"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    scope = Column(String(32), unique=True, nullable=False, index=True)
    last_value = Column(Integer, nullable=False, default=0)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<SequenceCounter(scope='{self.scope}', last_value={self.last_value})>"
