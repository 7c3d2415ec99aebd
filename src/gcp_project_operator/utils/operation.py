"""Control-flow values returned by reconcile operations."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a single ensure operation.

    A result either lets the pipeline continue, cancels the rest of the pass,
    or asks the scheduler to come back (optionally after a delay). An error
    always halts the pipeline and is reported with a requeue.
    """

    requeue: bool = False
    cancel: bool = False
    requeue_after: float = 0.0
    error: Exception | None = None

    @property
    def halts(self) -> bool:
        """Whether the pipeline must stop after this result."""
        return self.error is not None or self.requeue or self.cancel


@dataclass(frozen=True)
class ReconcileResult:
    """Decision handed back to the scheduler after a pass."""

    requeue: bool = False
    requeue_after: float = 0.0
    error: Exception | None = None


def continue_processing() -> OperationResult:
    return OperationResult()


def stop_processing() -> OperationResult:
    return OperationResult(cancel=True)


def requeue() -> OperationResult:
    return OperationResult(requeue=True)


def requeue_with_error(error: Exception) -> OperationResult:
    return OperationResult(requeue=True, error=error)


def requeue_after(delay: float, error: Exception | None = None) -> OperationResult:
    return OperationResult(requeue=True, requeue_after=delay, error=error)

