"""
Repository-layer exceptions for the import pipeline.
"""

from __future__ import annotations


class RepositoryError(Exception):
    """Base exception for repository failures."""


class TemplateNotFoundError(RepositoryError):
    """Raised when a referenced CSV import template does not exist."""
