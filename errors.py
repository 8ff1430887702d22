"""Error taxonomy for the deliberation engine."""

from typing import List, Optional


class CouncilError(Exception):
    """Base class for all engine errors."""


# ==============================================
# Provider-level failures (recoverable per call)
# ==============================================

class ProviderError(CouncilError):
    """A single provider call failed."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider


class ProviderNotConfigured(ProviderError):
    """Provider has no credentials or endpoint to talk to."""


class ProviderTimeout(ProviderError):
    """No response within the call's timeout."""

    def __init__(self, timeout_ms: int, provider: Optional[str] = None):
        super().__init__(f"Request timed out after {timeout_ms}ms", provider)
        self.timeout_ms = timeout_ms


class ProviderHttpError(ProviderError):
    """Backend answered with a non-2xx status."""

    def __init__(self, status: int, body: str = "", provider: Optional[str] = None):
        super().__init__(f"HTTP {status}: {body[:500]}", provider)
        self.status = status
        self.body = body

    @property
    def transient(self) -> bool:
        return self.status == 429 or self.status >= 500


class ProviderEmptyResponse(ProviderError):
    """2xx response without usable content."""

    def __init__(self, provider: Optional[str] = None):
        super().__init__("Provider returned an empty response", provider)


class ProviderChainExhausted(ProviderError):
    """Every link of a fallback chain failed."""

    def __init__(self, errors: List[Exception]):
        summary = "; ".join(str(e) for e in errors) or "no providers configured"
        super().__init__(f"All providers failed: {summary}")
        self.errors = errors


# ==============================================
# Output and session-level failures
# ==============================================

class DecodeFailure(CouncilError):
    """A model response could not be decoded into the expected shape."""

    def __init__(self, message: str = "Response could not be decoded", raw: str = ""):
        super().__init__(message)
        self.raw = raw


class QuorumNotMet(CouncilError):
    """Stage 1 produced zero usable opinions."""

    def __init__(self, failures: Optional[dict] = None):
        self.failures = failures or {}
        detail = ", ".join(f"{model}: {err}" for model, err in self.failures.items())
        super().__init__(f"Council stage 1 produced no usable opinions ({detail})" if detail
                         else "Council stage 1 produced no usable opinions")


class ChairmanFailure(CouncilError):
    """No final verdict could be obtained from any chairman provider.

    The stage-1 opinions survive on the exception so callers can fall back to a
    manual decision.
    """

    def __init__(self, message: str, opinions=None, stage1=None, errors=None):
        super().__init__(message)
        self.opinions = list(opinions or [])
        self.stage1 = list(stage1 or [])
        self.errors = list(errors or [])
