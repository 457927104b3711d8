"""Clients for remote provider APIs."""

from .n8n_client import N8nClient

__all__ = ["N8nClient"]
