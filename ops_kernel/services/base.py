"""
BaseService -- abstract base for kernel services.

Responsibility:
    Provides the common constructor, the transaction-boundary switch and the
    conflict-aware flush used by every ledger service.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - With ``auto_commit=False`` a service only flushes; the caller owns
      commit/rollback, so several ledger calls form one atomic unit.
    - With ``auto_commit=True`` each public operation is its own unit of
      work, committed on success and rolled back on failure.
    - Optimistic lock failures surface as ConcurrentModificationError,
      never as a raw SQLAlchemy exception.

Failure modes:
    - ConcurrentModificationError from ``_flush`` when a version-checked row
      changed since it was read.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ops_kernel.db.base import Base
from ops_kernel.exceptions import ConcurrentModificationError

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller.  ``auto_commit``
        decides whether the service or its caller owns the transaction.
    """

    def __init__(self, session: Session, auto_commit: bool = False):
        """
        Args:
            session: SQLAlchemy session for database operations.
            auto_commit: Commit each public operation (True) or only flush
                inside the caller's transaction (False).
        """
        self.session = session
        self.auto_commit = auto_commit

    def _flush(
        self,
        entity_type: str,
        entity_id: str,
        unique_conflicts: bool = False,
    ) -> None:
        """Flush, converting an optimistic lock failure to a typed error.

        ``unique_conflicts`` also treats an IntegrityError as a conflict; the
        stock ledger sets it because a competing writer can surface as a
        duplicate (item_id, sequence) insert instead of a stale version.
        """
        try:
            self.session.flush()
        except StaleDataError as exc:
            raise ConcurrentModificationError(entity_type, entity_id) from exc
        except IntegrityError as exc:
            if not unique_conflicts:
                raise
            raise ConcurrentModificationError(entity_type, entity_id) from exc
