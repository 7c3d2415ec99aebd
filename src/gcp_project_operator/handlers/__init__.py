"""Handler modules for CRD resources."""

# Import handlers to register them - all handlers register themselves via @kopf decorators
from . import projectclaim  # noqa: F401
from . import projectreference  # noqa: F401
