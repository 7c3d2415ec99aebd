"""Main entry point for the GCP Project Operator."""

from __future__ import annotations

from typing import Any

import kopf

from . import handlers  # noqa: F401
from . import health
from . import logging as structured_logging
from .handlers.shared import get_settings
from .tracing import initialize_tracing


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure the operator."""
    # Set up structured JSON logging
    structured_logging.setup_structured_logging()
    initialize_tracing()

    # Keep kopf's bookkeeping in annotations; status belongs to the reconcilers
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()
    settings.persistence.finalizer = "kopf.gcp.managed.openshift.io/finalizer"

    settings.posting.level = 0
    settings.networking.request_timeout = 30.0
    settings.execution.max_workers = 4

    health.start_metrics_server(get_settings().metrics_port)


def main() -> None:
    """Run the operator in all namespaces."""
    kopf.run(clusterwide=True)


if __name__ == "__main__":
    main()
