# -*- coding: utf-8 -*-
"""errors.py

Typed failures raised by the insights engine.

The API layer maps each class to its own response; callers never need to
inspect message text.
"""

from __future__ import annotations

from typing import Optional


class InsightsError(Exception):
    """Base class for all insights engine failures."""

    retryable: bool = False


class AccessDenied(InsightsError):
    """Subscription tier does not include the requested feature."""

    def __init__(self, feature: str, tier: Optional[str] = None) -> None:
        self.feature = feature
        self.tier = tier
        super().__init__(f"Feature '{feature}' requires a premium subscription (tier={tier or 'free'})")


class UpstreamUnavailable(InsightsError):
    """Event store or insight cache timed out / could not be reached."""

    retryable = True

    def __init__(self, operation: str, cause: Optional[BaseException] = None) -> None:
        self.operation = operation
        self.cause = cause
        detail = f": {type(cause).__name__}" if cause is not None else ""
        super().__init__(f"Upstream unavailable during {operation}{detail}")


class MalformedRecord(InsightsError):
    """A persisted row is missing required fields or carries bad values."""

    def __init__(self, reason: str, row_id: Optional[str] = None) -> None:
        self.reason = reason
        self.row_id = row_id
        super().__init__(f"Malformed record {row_id or '?'}: {reason}")


class InvalidAccessToken(InsightsError):
    """The bearer token could not be resolved to a user."""


class ConfigurationError(InsightsError):
    """Required service configuration (Supabase URL / key) is missing."""
