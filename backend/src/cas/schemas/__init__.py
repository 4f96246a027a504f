"""Pydantic schemas for CAS API requests and responses."""
