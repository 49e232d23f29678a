"""Workflow diff engine for n8n-style workflow graphs."""

__version__ = "0.1.0"
