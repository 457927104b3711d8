"""Pydantic schemas for remote payloads, stored blobs and API responses."""
