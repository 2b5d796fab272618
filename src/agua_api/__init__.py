"""Agua API: credential, session, and access control service for water-meter management."""

__version__ = "0.1.0"
