"""
Hoor error taxonomy (authoritative)

- ValidationError: bad input or a business cap was hit (400). Raised before any write.
- NotFoundError: a referenced invoice, variant, party or shift is missing (404).
- ConflictError: an integrity rule forbids the action, e.g. re-returning a
  returned invoice or opening a second shift (409).
- StorageError: the underlying transaction failed; every write in the
  operation has been rolled back (500).
- BalanceDriftError: a cached party balance disagrees with its ledger.
"""

from __future__ import annotations


class HoorError(Exception):
    """Base class for operator-visible failures."""

    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(HoorError, ValueError):
    """400-level input problem."""


class NotFoundError(HoorError, LookupError):
    """404-level missing reference."""

    status_code = 404


class ConflictError(HoorError):
    """409-level business rule conflict (e.g., invoice already returned)."""

    status_code = 409


class StorageError(HoorError):
    """Transaction failed and was rolled back."""

    status_code = 500


class BalanceDriftError(HoorError):
    """Cached balance does not match the ledger fold."""

    status_code = 500
