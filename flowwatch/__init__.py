"""Incremental sync of n8n executions and workflows into local storage."""

__version__ = "0.1.0"
