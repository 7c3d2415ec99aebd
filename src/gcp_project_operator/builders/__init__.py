"""Builders for collaborator clients."""
