"""Utility functions for the GCP Project Operator."""
