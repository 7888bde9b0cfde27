"""
Two-Stage Request Validation

STAGE 1 - PARSING:
- The body must be JSON
- The top-level value must be an object
Failures raise RequestParseError.

STAGE 2 - SCHEMA VALIDATION:
- aggregates and dateRange must be present
- Both must have the right shape (numbers, ISO dates)
- Optional transactions and categories must be well-formed
Failures raise RequestValidationError with per-field details.

Missing or null currency and userId are filled with the configured
defaults. Nothing else is corrected: a malformed request is rejected
with HTTP 400 and never reaches the pipeline.
"""

import json
from typing import Any, Optional, Union

from pydantic import ValidationError

from src.models.insight import (
    DEFAULT_CURRENCY,
    DEFAULT_USER_ID,
    AggregatesRequest,
    InsightRequest,
)


# wire name -> accepted spellings
REQUIRED_FIELDS = {
    "aggregates": ("aggregates",),
    "dateRange": ("dateRange", "date_range"),
}


class InsightRequestError(Exception):
    """Base exception for rejected requests (HTTP 400)."""

    def __init__(self, message: str, details: Optional[list[dict[str, Any]]] = None):
        self.message = message
        self.details = details or []
        super().__init__(message)

    def to_response_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class RequestParseError(InsightRequestError):
    """The body is not a JSON object."""
    pass


class RequestValidationError(InsightRequestError):
    """The body is a JSON object but required data is missing or malformed."""
    pass


def _error_details(error: ValidationError) -> list[dict[str, Any]]:
    """Flatten pydantic errors into {field, message} pairs."""
    return [
        {
            "field": ".".join(str(part) for part in item["loc"]),
            "message": item["msg"],
        }
        for item in error.errors(include_url=False)
    ]


def parse_json_body(raw: Union[str, bytes, dict]) -> dict[str, Any]:
    """
    Stage 1: decode the body into a JSON object.

    Raises:
        RequestParseError: Not JSON, or not an object.
    """
    if isinstance(raw, dict):
        return raw

    # JSONDecodeError and UnicodeDecodeError are ValueErrors; so is an
    # integer literal past the interpreter's digit limit
    try:
        data = json.loads(raw)
    except (ValueError, TypeError) as e:
        raise RequestParseError(f"Invalid JSON body: {e}")
    except RecursionError:
        raise RequestParseError("Invalid JSON body: nested too deeply")

    if not isinstance(data, dict):
        raise RequestParseError("Request body must be a JSON object")
    return data


def parse_insight_request(
    raw: Union[str, bytes, dict],
    default_user_id: str = DEFAULT_USER_ID,
    default_currency: str = DEFAULT_CURRENCY,
) -> InsightRequest:
    """
    Validate a raw request body into an InsightRequest.

    Args:
        raw: Request body (bytes or str), or an already decoded object.
        default_user_id: Used when userId is missing or null.
        default_currency: Used when currency is missing or null.

    Raises:
        RequestParseError: Stage 1 failure.
        RequestValidationError: Stage 2 failure.
    """
    data = dict(parse_json_body(raw))

    missing = [
        name for name, spellings in REQUIRED_FIELDS.items()
        if all(data.get(spelling) is None for spelling in spellings)
    ]
    if missing:
        raise RequestValidationError(
            "Missing required data",
            details=[{"field": name, "message": "Field required"} for name in missing],
        )

    if not data.get("userId") and not data.get("user_id"):
        data["userId"] = default_user_id
    if not data.get("currency"):
        data["currency"] = default_currency

    try:
        return InsightRequest.model_validate(data)
    except ValidationError as e:
        raise RequestValidationError("Invalid request data", details=_error_details(e))


def parse_aggregates_request(raw: Union[str, bytes, dict]) -> AggregatesRequest:
    """
    Validate a raw body for the aggregate-building endpoint.

    Raises:
        RequestParseError: Stage 1 failure.
        RequestValidationError: Stage 2 failure.
    """
    data = parse_json_body(raw)
    try:
        return AggregatesRequest.model_validate(data)
    except ValidationError as e:
        raise RequestValidationError("Invalid transaction data", details=_error_details(e))
