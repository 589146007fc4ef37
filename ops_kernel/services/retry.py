"""
Optimistic-concurrency retry loop for units of work that own their commit.

Responsibility:
    Runs a read-modify-write callable, commits it, and on a version conflict
    rolls back, lets the callable re-read fresh state and tries again, up to
    a bounded number of attempts.

Architecture position:
    Kernel > Services -- shared by StockLedger (auto_commit mode) and the
    module-level coordinators that own a transaction boundary.

Invariants enforced:
    - Every failed attempt is rolled back before the next one starts, so no
      partial write from a lost race survives.
    - Non-conflict errors are rolled back and re-raised immediately.

Failure modes:
    - ConcurrentModificationError once ``max_attempts`` conflicts occurred.
"""

from typing import Callable, TypeVar

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ops_kernel.exceptions import ConcurrentModificationError
from ops_kernel.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 5


def run_with_retry(
    session: Session,
    operation: Callable[[], T],
    *,
    operation_name: str,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> T:
    """
    Run ``operation`` and commit, retrying on optimistic conflicts.

    Preconditions:
        - ``operation`` re-reads everything it mutates on each call.
        - ``max_attempts`` >= 1.

    Postconditions:
        - On success the session is committed and the operation result is
          returned.
        - On failure the session is rolled back.

    Raises:
        ConcurrentModificationError: when every attempt conflicted.
        Exception: any other error from ``operation``, after rollback.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    last_conflict: ConcurrentModificationError | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            result = operation()
            session.commit()
            if attempt > 1:
                logger.info(
                    "optimistic_retry_succeeded",
                    extra={"operation": operation_name, "attempt": attempt},
                )
            return result
        except ConcurrentModificationError as exc:
            session.rollback()
            last_conflict = exc
        except StaleDataError as exc:
            session.rollback()
            last_conflict = ConcurrentModificationError(operation_name, "unknown")
            last_conflict.__cause__ = exc
        except Exception:
            session.rollback()
            raise

        logger.warning(
            "optimistic_conflict_retry",
            extra={
                "operation": operation_name,
                "attempt": attempt,
                "max_attempts": max_attempts,
                "entity_type": last_conflict.entity_type,
                "entity_id": last_conflict.entity_id,
            },
        )

    logger.error(
        "optimistic_retries_exhausted",
        extra={"operation": operation_name, "max_attempts": max_attempts},
    )
    raise ConcurrentModificationError(
        last_conflict.entity_type,
        last_conflict.entity_id,
        attempts=max_attempts,
    ) from last_conflict
