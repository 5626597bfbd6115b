"""
BaseLookupService -- shared collaborator-call handling for async services.

Responsibility:
    Wraps every awaited collaborator lookup with the configured timeout and
    translates backend failures into ``ExternalSystemUnavailableError`` so
    that callers see one failure type for "the outside world is down".

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  Extended by
    ``TransactionComplianceService`` and ``LicenceCorrectionImpactService``.

Invariants enforced:
    - No retries.  A failed lookup fails the whole operation.
    - ``asyncio.CancelledError`` is never caught; cancellation propagates
      untouched.
    - Concurrent lookups run in a task group: one failure cancels its
      siblings before the error reaches the caller.

Failure modes:
    - ``ExternalSystemUnavailableError`` on collaborator error or timeout.

Audit relevance:
    Each failure emits one ``external_lookup_failed`` warning naming the
    collaborator and operation.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Coroutine, TypeVar

from compliance_kernel.exceptions import ExternalSystemUnavailableError
from compliance_kernel.logging_config import get_logger

T = TypeVar("T")

logger = get_logger("services.lookup")


class BaseLookupService:
    """
    Base class for services that read from async collaborator ports.

    Contract:
        Subclasses await collaborators only through ``_lookup``.

    Guarantees:
        - A lookup never waits longer than ``lookup_timeout`` seconds
          (None disables the limit).
    """

    def __init__(self, lookup_timeout: float | None = 5.0):
        self._lookup_timeout = lookup_timeout

    async def _lookup(
        self,
        collaborator: str,
        operation: str,
        awaitable: Awaitable[T],
    ) -> T:
        try:
            if self._lookup_timeout is None:
                return await awaitable
            return await asyncio.wait_for(awaitable, self._lookup_timeout)
        except ExternalSystemUnavailableError as exc:
            self._log_failure(collaborator, operation, exc)
            raise
        except (asyncio.TimeoutError, OSError) as exc:
            self._log_failure(collaborator, operation, exc)
            detail = str(exc) or type(exc).__name__
            raise ExternalSystemUnavailableError(
                collaborator, operation, detail
            ) from exc

    async def _lookup_all(self, *lookups: Coroutine[Any, Any, T]) -> list[T]:
        """Await lookups concurrently, results in argument order.

        The first failure cancels the lookups still running and is raised
        as itself rather than wrapped in an ``ExceptionGroup``.
        """
        try:
            async with asyncio.TaskGroup() as group:
                tasks = [group.create_task(lookup) for lookup in lookups]
        except ExceptionGroup as eg:
            raise eg.exceptions[0]
        return [task.result() for task in tasks]

    @staticmethod
    def _log_failure(collaborator: str, operation: str, exc: Exception) -> None:
        logger.warning(
            "external_lookup_failed",
            extra={
                "collaborator": collaborator,
                "operation": operation,
                "error_type": type(exc).__name__,
                "error": str(exc),
            },
        )
