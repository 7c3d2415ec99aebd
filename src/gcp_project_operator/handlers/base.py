"""Base handler running the fixed reconcile pipeline of a resource kind."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable

import kopf

from .. import metrics
from ..logging import log_resource_event
from ..store import PassStore, Store
from ..tracing import set_span_status, trace_span
from ..utils.errors import sanitize_exception
from ..utils.events import emit_reconcile_failed
from ..utils.operation import OperationResult, ReconcileResult, requeue_with_error

Operation = Callable[[], OperationResult]

# Smallest delay handed to kopf for an immediate requeue
MIN_REQUEUE_DELAY = 1.0


def _operation_name(operation: Operation) -> str:
    return getattr(operation, "__name__", repr(operation))


class BaseHandler:
    """Base class for the ProjectClaim and ProjectReference handlers.

    Subclasses implement ``reconcile(store, namespace, name)``; this class runs
    their operation lists and turns the outcome into what kopf understands.
    """

    def __init__(
        self,
        kind: str,
        store: Store | None = None,
        error_retry_delay: float = 10.0,
        requeue_after_write: float = 1.0,
    ):
        """Initialize base handler.

        Args:
            kind: The Kubernetes resource kind (e.g., "ProjectClaim")
            store: Store to use; built from the cluster config when omitted
            error_retry_delay: Delay before retrying a failed pass
            requeue_after_write: Delay before re-running a pass that wrote
        """
        self.kind = kind
        self.logger = logging.getLogger(__name__)
        self._store = store
        self.error_retry_delay = error_retry_delay
        self.requeue_after_write = requeue_after_write
        self._locks: dict[tuple[str, str], threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def record_lock(self, namespace: str, name: str) -> threading.Lock:
        """Lock serializing passes over one record.

        kopf runs timers apart from the event handlers, so two passes on the
        same record could otherwise overlap and repeat cloud side effects.
        """
        with self._locks_guard:
            return self._locks.setdefault((namespace, name), threading.Lock())

    def forget_record(self, namespace: str, name: str) -> None:
        with self._locks_guard:
            self._locks.pop((namespace, name), None)

    @property
    def store(self) -> Store:
        if self._store is None:
            from .shared import get_store

            self._store = get_store()
        return self._store

    def _get_resource_context(self, meta: dict[str, Any]) -> dict[str, Any]:
        return {
            "name": meta.get("name", "unknown"),
            "namespace": meta.get("namespace", "default"),
            "uid": meta.get("uid", "unknown"),
        }

    def _log(
        self,
        level: int,
        meta: dict[str, Any],
        message: str,
        event: str,
        reason: str,
        **kwargs: Any,
    ) -> None:
        ctx = self._get_resource_context(meta)
        log_resource_event(
            self.logger,
            resource_kind=self.kind,
            resource_name=ctx["name"],
            namespace=ctx["namespace"],
            uid=ctx["uid"],
            event=event,
            reason=reason,
            message=message,
            level=level,
            **kwargs,
        )

    def log_warning(
        self,
        meta: dict[str, Any],
        message: str,
        event: str = "warning",
        reason: str = "Warning",
        **kwargs: Any,
    ) -> None:
        """Log a warning-level structured log message."""
        self._log(logging.WARNING, meta, message, event, reason, **kwargs)

    def log_error(
        self,
        meta: dict[str, Any],
        message: str,
        error: Exception | None = None,
        event: str = "error",
        reason: str = "Error",
        **kwargs: Any,
    ) -> None:
        """Log an error-level structured log message.

        Args:
            meta: Kubernetes resource metadata
            message: Log message
            error: Optional exception to include sanitized error details
            event: Event type (default: "error")
            reason: Reason for the event (default: "Error")
            **kwargs: Additional fields to include in the log
        """
        log_data = kwargs.copy()
        if error is not None:
            log_data["error"] = sanitize_exception(error)
            log_data["error_type"] = type(error).__name__
        self._log(logging.ERROR, meta, message, event, reason, **log_data)

    def run_pipeline(self, meta: dict[str, Any], operations: list[Operation]) -> ReconcileResult:
        """Run operations in order until one of them halts the pass.

        An exception escaping an operation counts as a requeue with that error.

        Args:
            meta: Metadata of the record being reconciled
            operations: The fixed operation list of the record kind

        Returns:
            Decision for the scheduler
        """
        for operation in operations:
            try:
                result = operation()
            except Exception as e:
                result = requeue_with_error(e)

            if result.error is not None or result.requeue:
                self.logger.debug(f"{self.kind} {meta.get('name')}: {_operation_name(operation)} requested a requeue")
                return ReconcileResult(requeue=True, requeue_after=result.requeue_after, error=result.error)
            if result.cancel:
                self.logger.debug(f"{self.kind} {meta.get('name')}: {_operation_name(operation)} stopped the pass")
                return ReconcileResult()
        return ReconcileResult()

    def record_reconcile_error(
        self,
        meta: dict[str, Any],
        set_condition: Callable[[Exception | None], OperationResult],
        error: Exception | None,
    ) -> None:
        """Set or resolve the Error condition from the outcome of the pass.

        A failure here is logged and left for the next pass to repair.
        """
        try:
            set_condition(error)
        except Exception as e:
            self.log_warning(meta, f"Could not update Error condition: {sanitize_exception(e)}", reason="ConditionUpdateFailed")

    def reconcile(self, store: Store, namespace: str, name: str) -> ReconcileResult:
        raise NotImplementedError

    def exists(self, store: Store, namespace: str, name: str) -> bool:
        raise NotImplementedError

    def reconcile_with_metrics(
        self,
        body: dict[str, Any],
        meta: dict[str, Any],
        reconcile_fn: Callable[[], ReconcileResult],
    ) -> ReconcileResult:
        """Execute reconciliation with metrics, tracing and error reporting.

        Args:
            body: Resource body, used for events
            meta: Kubernetes resource metadata
            reconcile_fn: Function running one pass

        Returns:
            Decision of the pass; exceptions raised while loading are folded
            into an error decision
        """
        metrics.reconcile_total.labels(kind=self.kind, result="started").inc()

        start_time = time.time()
        ctx = self._get_resource_context(meta)
        with trace_span(
            f"reconcile_{self.kind.lower()}",
            kind=self.kind,
            attributes={"resource.name": ctx["name"], "resource.namespace": ctx["namespace"]},
        ):
            try:
                result = reconcile_fn()
            except Exception as e:
                result = ReconcileResult(requeue=True, error=e)
            finally:
                duration = time.time() - start_time
                metrics.reconcile_duration_seconds.labels(kind=self.kind).observe(duration)

            if result.error is not None:
                sanitized_error = sanitize_exception(result.error)
                metrics.error_total.labels(kind=self.kind, error_type=type(result.error).__name__).inc()
                metrics.reconcile_total.labels(kind=self.kind, result="error").inc()
                self.log_error(meta, "Reconciliation failed", error=result.error, reason="ReconciliationFailed")
                emit_reconcile_failed(body, f"Reconciliation failed: {sanitized_error}")
                set_span_status(False, sanitized_error)
            elif result.requeue:
                metrics.reconcile_total.labels(kind=self.kind, result="requeue").inc()
                set_span_status(True)
            else:
                metrics.reconcile_total.labels(kind=self.kind, result="success").inc()
                set_span_status(True)

        return result

    def handle(self, body: dict[str, Any], meta: dict[str, Any]) -> None:
        """Run one pass for a kopf event and translate its decision for kopf.

        Raises:
            kopf.TemporaryError: When the record must be reconciled again
        """
        namespace = meta.get("namespace", "")
        name = meta.get("name", "")
        store = PassStore(self.store)

        with self.record_lock(namespace, name):
            result = self.reconcile_with_metrics(body, meta, lambda: self.reconcile(store, namespace, name))
            removed = bool(store.writes) and not self.exists(self.store, namespace, name)
        if removed:
            self.forget_record(namespace, name)

        if result.error is not None:
            delay = result.requeue_after or self.error_retry_delay
            raise kopf.TemporaryError(f"Reconciliation failed: {sanitize_exception(result.error)}", delay=delay)

        if result.requeue:
            delay = max(result.requeue_after, MIN_REQUEUE_DELAY)
            raise kopf.TemporaryError(f"Requeue requested after {delay:g}s", delay=delay)

        # Status and finalizer writes do not retrigger kopf handlers, so a pass
        # that changed the record is followed by another until nothing changes.
        if store.writes and not removed:
            raise kopf.TemporaryError("Record updated, continuing reconciliation", delay=self.requeue_after_write)
