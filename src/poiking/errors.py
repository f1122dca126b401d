"""Domain exceptions raised by the progression engine and its write paths."""

from __future__ import annotations


class PoikingError(Exception):
    """Base class for all domain errors."""


class ConfigurationMissingError(PoikingError):
    """A required global config document or field is absent."""

    def __init__(self, slug: str, field: str | None = None) -> None:
        self.slug = slug
        self.field = field
        detail = f"{slug}.{field}" if field else slug
        super().__init__(f"Required configuration missing: {detail}")


class InvalidSessionError(PoikingError):
    """A session payload failed validation."""


class SessionLimitExceededError(PoikingError):
    """Recording the session would exceed the daily seconds cap for the POI."""

    def __init__(self, limit: int, already_earned: int, requested: int) -> None:
        self.limit = limit
        self.already_earned = already_earned
        self.requested = requested
        super().__init__(
            f"Daily seconds limit exceeded: {already_earned} + {requested} > {limit}"
        )


class ChallengeNotFoundError(PoikingError):
    """The challenge does not exist."""


class ChallengeOwnershipError(PoikingError):
    """The challenge belongs to a different user."""


class ChallengeStateError(PoikingError):
    """The challenge cannot transition (already completed, expired, not bought out...)."""


class InsufficientCoinsError(PoikingError):
    """The user cannot afford a buyout."""

    def __init__(self, required: int, available: int) -> None:
        self.required = required
        self.available = available
        super().__init__(f"Not enough coins. Required: {required}, Available: {available}")


class RewardNotFoundError(PoikingError):
    """The active reward does not exist for this user."""


class RewardExpiredError(PoikingError):
    """The active reward is no longer usable."""


class UserNotFoundError(PoikingError):
    """The user does not exist."""
