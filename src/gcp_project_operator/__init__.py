"""Kubernetes operator provisioning Google Cloud projects for ProjectClaims."""

__version__ = "0.1.0"
