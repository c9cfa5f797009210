"""
VodMirror error taxonomy.

Every failure surfaced by a public operation is a ``CatalogError`` carrying a
stable machine ``code``, a human-readable message, and the HTTP status the API
layer renders it with.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class CatalogError(Exception):
    code = "catalog_error"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class NotFound(CatalogError):
    """Entity absent, soft-deleted, or deleted at the remote source."""
    code = "not_found"
    status_code = 404


class ValidationError(CatalogError):
    code = "validation_error"
    status_code = 400


class RemoteUnavailable(CatalogError):
    """Network, DNS, timeout, or an unclassified provider failure."""
    code = "remote_unavailable"
    status_code = 502


class RemoteAuthFailure(CatalogError):
    code = "remote_auth_failure"
    status_code = 502


class RemoteQuotaExceeded(CatalogError):
    """Provider account suspended, delinquent, or throttled."""
    code = "remote_quota_exceeded"
    status_code = 503


class StoreError(CatalogError):
    code = "store_error"
    status_code = 500


class DuplicateEntry(CatalogError):
    code = "duplicate_entry"
    status_code = 409


class SyncInProgress(CatalogError):
    code = "sync_in_progress"
    status_code = 409
