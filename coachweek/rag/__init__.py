"""Retrieval context boundary."""
