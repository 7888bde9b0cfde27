"""
AI Provider Contract

Every AI provider sits behind the same small interface:
- is_available(): can this provider be attempted at all?
- generate(request): produce an AIInsight, raising on any failure
- try_generate(request): the same, but NEVER raises

try_generate() is what the orchestrator calls. It turns every exception
into a ProviderError (or QuotaExceededError) carried in a ProviderResult,
so a failing provider can never break the chain.

Quota detection is deliberately SDK-agnostic. Both the OpenAI and the
Google client libraries expose an HTTP status and/or an error code on
their exceptions; we inspect those attributes and fall back to the
message text.
"""

import json
import re
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from src.models.insight import AIInsight, InsightRequest, ProviderName


QUOTA_STATUS_CODE = 429
QUOTA_ERROR_CODES = frozenset({
    "insufficient_quota",
    "rate_limit_exceeded",
    "resource_exhausted",
})
QUOTA_MESSAGE_MARKERS = (
    "quota",
    "429",
    "rate limit",
    "rate_limit",
    "resource_exhausted",
    "resource exhausted",
)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


# =============================================================================
# ERRORS
# =============================================================================

class ProviderError(Exception):
    """A provider call failed. Never raised past the orchestrator."""

    def __init__(
        self,
        provider: str,
        message: str,
        code: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        self.provider = provider
        self.message = message
        self.code = code
        self.cause = cause
        super().__init__(f"{provider}: {message}")


class QuotaExceededError(ProviderError):
    """The provider rejected the call for quota or rate-limit reasons."""
    pass


def _error_code(exc: BaseException) -> Optional[str]:
    """Best-effort machine-readable code from an SDK exception."""
    for attr in ("code", "status_code", "status"):
        value = getattr(exc, attr, None)
        if value is None:
            continue
        name = getattr(value, "name", None)
        if isinstance(name, str):
            return name
        return str(value)
    return None


def is_quota_error(exc: BaseException) -> bool:
    """
    True if the exception signals quota exhaustion or rate limiting.

    Checks, in order: an HTTP 429 status, a known quota error code,
    then quota wording in the message.
    """
    for attr in ("status_code", "status", "code", "http_status"):
        value = getattr(exc, attr, None)
        if value is None or isinstance(value, bool):
            continue
        if isinstance(value, int) and value == QUOTA_STATUS_CODE:
            return True
        # grpc-style enums expose the symbolic name
        name = getattr(value, "name", value)
        if isinstance(name, str) and name.lower() in QUOTA_ERROR_CODES:
            return True

    message = str(exc).lower()
    return any(marker in message for marker in QUOTA_MESSAGE_MARKERS)


def classify_provider_error(provider: str, exc: BaseException) -> ProviderError:
    """Wrap any exception raised by a provider call."""
    if isinstance(exc, ProviderError):
        return exc

    message = str(exc) or type(exc).__name__
    code = _error_code(exc)
    if is_quota_error(exc):
        return QuotaExceededError(provider, message, code=code, cause=exc)
    return ProviderError(provider, message, code=code, cause=exc)


# =============================================================================
# RESPONSE PARSING
# =============================================================================

def extract_json_object(text: str) -> dict[str, Any]:
    """
    Parse the JSON object in an LLM response.

    Tolerates markdown code fences and prose around the object.

    Raises:
        ValueError: If no JSON object can be parsed.
    """
    cleaned = _CODE_FENCE.sub("", text.strip()).strip()
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        start = cleaned.find("{")
        end = cleaned.rfind("}") + 1
        if start < 0 or end <= start:
            raise ValueError("No JSON object in model response")
        data = json.loads(cleaned[start:end])

    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data


# =============================================================================
# RESULT + INTERFACE
# =============================================================================

class ProviderResult(BaseModel):
    """Outcome of one provider attempt: an insight or a classified error."""
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    provider: ProviderName
    insight: Optional[AIInsight] = None
    error: Optional[ProviderError] = None
    duration_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.insight is not None

    @property
    def quota_exceeded(self) -> bool:
        return isinstance(self.error, QuotaExceededError)


class InsightProvider(ABC):
    """
    Abstract AI provider.

    Subclasses set `name` and implement is_available() and generate().
    """

    name: ProviderName

    @abstractmethod
    def is_available(self) -> bool:
        """Whether this provider can be attempted (configured and initialized)."""
        pass

    @abstractmethod
    async def generate(self, request: InsightRequest) -> AIInsight:
        """
        Produce an insight for the request.

        Raises:
            Exception: Any failure. Callers should use try_generate().
        """
        pass

    async def try_generate(self, request: InsightRequest) -> ProviderResult:
        """Run generate() and capture any failure instead of raising."""
        started = time.perf_counter()
        try:
            insight = await self.generate(request)
        except Exception as e:
            return ProviderResult(
                provider=self.name,
                error=classify_provider_error(self.name.value, e),
                duration_ms=(time.perf_counter() - started) * 1000,
            )
        return ProviderResult(
            provider=self.name,
            insight=insight,
            duration_ms=(time.perf_counter() - started) * 1000,
        )
