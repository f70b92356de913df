"""Custom exceptions for the leadgen service."""


class LeadGenError(Exception):
    """Base exception for all leadgen-related errors."""

    pass


class ConfigurationError(LeadGenError):
    """Raised when the provider credential is missing.

    Always raised before any network activity.
    """

    pass


class ProviderError(LeadGenError):
    """Raised when the generative provider call fails."""

    pass


class RateLimitError(ProviderError):
    """Raised when the provider signals a rate limit (HTTP 429 / RESOURCE_EXHAUSTED)."""

    pass


class MalformedResponseError(LeadGenError):
    """Raised when a single-shot reply cannot be parsed into the expected shape."""

    pass


class NoDataError(LeadGenError):
    """Raised when a search ends without a single valid lead."""

    pass


class PlanLimitError(LeadGenError):
    """Raised when the requested lead count exceeds the plan's per-search cap."""

    pass
