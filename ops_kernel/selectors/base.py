"""
Module: ops_kernel.selectors.base
Responsibility: Abstract base class for read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/, domain/ and
    models/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors never add, delete, flush or commit.
    - DTO return convention: selectors return frozen dataclasses, not ORM
      instances.
    - Organization scoping: every query filters on ``organization_id``.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from ops_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only
        queries, and return DTOs.
    """

    def __init__(self, session: Session):
        self.session = session

    def _execute(self, statement):
        """Execute ``statement``, refreshing instances already in the session.

        Sessions outlive commits made through other sessions (batch workers,
        the alert sink), so identity-map hits are reloaded from the row.
        """
        return self.session.execute(
            statement.execution_options(populate_existing=True)
        )
