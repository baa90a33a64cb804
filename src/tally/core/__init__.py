"""Shared infrastructure: config, errors, events, storage, utilities."""
