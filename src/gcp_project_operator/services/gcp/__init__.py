"""Google Cloud client interface and implementation."""
