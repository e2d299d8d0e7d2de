"""
Error taxonomy for the generation engine.

Raw OpenAI SDK exceptions never leave the dispatcher: they are translated
into one of the UpstreamError subclasses below (the SDK exception stays
available as __cause__).
"""

import enum
from typing import Dict, Optional


class ErrorKind(str, enum.Enum):
    INVALID_CREDENTIAL = "invalid_credential"
    RATE_LIMITED = "rate_limited"
    SERVICE_UNAVAILABLE = "service_unavailable"
    UNKNOWN = "unknown"


class GenerationError(Exception):
    """Base class for every error raised by question_engine."""


class ConfigurationError(GenerationError):
    """No usable API key could be resolved. Nothing was attempted."""


# ─── Upstream (per-attempt) errors ─────────────────────────────────────────────

class UpstreamError(GenerationError):
    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str, model: Optional[str] = None, key_hint: Optional[str] = None):
        super().__init__(message)
        self.model = model
        self.key_hint = key_hint

    @property
    def retryable(self) -> bool:
        return self.kind is not ErrorKind.UNKNOWN


class InvalidCredentialError(UpstreamError):
    kind = ErrorKind.INVALID_CREDENTIAL


class RateLimitedError(UpstreamError):
    kind = ErrorKind.RATE_LIMITED


class ServiceUnavailableError(UpstreamError):
    kind = ErrorKind.SERVICE_UNAVAILABLE


class UnknownUpstreamError(UpstreamError):
    kind = ErrorKind.UNKNOWN


UPSTREAM_ERRORS = {
    ErrorKind.INVALID_CREDENTIAL: InvalidCredentialError,
    ErrorKind.RATE_LIMITED: RateLimitedError,
    ErrorKind.SERVICE_UNAVAILABLE: ServiceUnavailableError,
    ErrorKind.UNKNOWN: UnknownUpstreamError,
}


# ─── Batch-level errors ────────────────────────────────────────────────────────

class AllAttemptsExhaustedError(GenerationError):
    def __init__(self, last_error: UpstreamError, attempts: int):
        super().__init__(
            f"All {attempts} attempts failed; last error ({last_error.kind.value}): {last_error}"
        )
        self.last_error = last_error
        self.attempts = attempts


class UnparseableResponseError(GenerationError):
    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.preview = (raw_text or "")[:300]


class GenerationFailedError(GenerationError):
    """Every subject of a paper failed: a total outage, not partial degradation."""

    def __init__(self, errors: Dict[str, Exception]):
        summary = "; ".join(f"{subject}: {err}" for subject, err in errors.items())
        super().__init__(f"Generation failed for every subject ({summary})")
        self.errors = errors
