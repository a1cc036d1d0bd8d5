"""Shared infrastructure: database, settings, logging and the event pipeline."""
