"""Structured-output agents built on the generation gateway."""
