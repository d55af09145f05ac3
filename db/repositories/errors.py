"""
Repository-layer exceptions.
"""

from __future__ import annotations


class RepositoryError(Exception):
    """Base exception for repository failures."""


class OrganizationNotFoundError(RepositoryError):
    """Raised when a referenced organization does not exist."""


class OrganizationInactiveError(RepositoryError):
    """Raised when a referenced organization is not active."""


class RecordNotFoundError(RepositoryError):
    """Raised when a tenant-scoped record does not exist for the organization."""


class DuplicateRecordError(RepositoryError):
    """Raised when an insert or update hits a unique constraint."""
