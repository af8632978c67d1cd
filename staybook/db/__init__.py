"""Persistence: ORM base, engines, column types."""
