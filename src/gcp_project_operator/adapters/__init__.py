"""Adapters exposing the ensure operations of each record kind."""
