"""Unit-of-work boundary for multi-row writes.

Services never open transactions themselves; they hand a callable to
``IUnitOfWork.with_transaction`` and the implementation decides how the work
is committed.  ``DjangoUnitOfWork`` maps onto ``transaction.atomic``; tests
supply an in-memory implementation with the same contract.

Contract:
- The callable's return value is returned on commit.
- Any exception aborts the unit; nothing it wrote is kept.
- ``ServiceError`` subclasses propagate unchanged.
- Storage faults surface as ``TransientFailure`` (safe to retry).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, TypeVar

import structlog
from django.db import DatabaseError, transaction

from modules.core.exceptions import ServiceError, TransientFailure

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class IUnitOfWork(ABC):
    @abstractmethod
    def with_transaction(self, work: Callable[[], T]) -> T:
        """Run ``work`` atomically and return its result."""


class DjangoUnitOfWork(IUnitOfWork):
    """Unit of work backed by the default database connection."""

    def with_transaction(self, work: Callable[[], T]) -> T:
        try:
            with transaction.atomic():
                return work()
        except ServiceError:
            raise
        except DatabaseError as exc:
            logger.warning("uow.aborted", error=repr(exc))
            raise TransientFailure() from exc
