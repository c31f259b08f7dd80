"""Exception hierarchy for the gateway and RAG pipeline."""

from __future__ import annotations

from dataclasses import dataclass


class GatewayError(Exception):
    """Base exception for orchestration-layer failures."""

    kind = "error"


class ConfigurationError(GatewayError):
    """Raised for missing credentials or malformed registrations. Never retried."""

    kind = "configuration"


class ToolNotFoundError(GatewayError):
    kind = "not_found"

    def __init__(self, name: str) -> None:
        super().__init__(f"Tool not found: {name}")
        self.name = name


class ToolDisabledError(GatewayError):
    kind = "disabled"

    def __init__(self, name: str) -> None:
        super().__init__(f"Tool disabled: {name}")
        self.name = name


@dataclass(frozen=True, slots=True)
class FieldViolation:
    """One offending input field and why it was rejected."""

    field: str
    message: str


class ToolValidationError(GatewayError):
    """Raised with every violation found in the input, not just the first."""

    kind = "validation"

    def __init__(self, name: str, violations: list[FieldViolation]) -> None:
        summary = "; ".join(f"{v.field}: {v.message}" for v in violations)
        super().__init__(f"Validation error for {name}: {summary}")
        self.name = name
        self.violations = violations


class RateLimitExceededError(GatewayError):
    kind = "rate_limited"

    def __init__(self, name: str, limit: int) -> None:
        super().__init__(f"Rate limit exceeded for {name}: {limit} calls/minute")
        self.name = name
        self.limit = limit


class RateLimiterUnavailableError(GatewayError):
    """Raised only when fail-open is switched off and the counter store is down."""

    kind = "limiter_unavailable"


class VectorSearchError(GatewayError):
    kind = "vector_search"


class GenerationError(GatewayError):
    kind = "generation"
