# shield/errors.py

from __future__ import annotations
from typing import Optional


class ShieldError(Exception):
    """Base class for every error the CLI reports and exits on."""


class ValidationError(ShieldError):
    """Input was rejected before any network call was made."""


class NotFoundError(ShieldError):
    """A remote object the operation depends on does not exist."""


class UpstreamError(ShieldError):
    """A remote service failed (after retries, where retries apply)."""


class LookupAPIError(UpstreamError):
    """bgpview answered, but with a non-"ok" status in the envelope."""

    def __init__(self, message: str, status: Optional[str] = None):
        super().__init__(f"API error, message: {message}")
        self.status = status
        self.status_message = message


class FirewallError(UpstreamError):
    """An AWS WAF call failed."""

    def __init__(self, operation: str, cause: Exception):
        super().__init__(f"AWS WAF {operation} failed: {cause}")
        self.operation = operation
        self.cause = cause
