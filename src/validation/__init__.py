"""Request validation package."""

from src.validation.request_validator import (
    InsightRequestError,
    RequestParseError,
    RequestValidationError,
    parse_aggregates_request,
    parse_insight_request,
    parse_json_body,
)

__all__ = [
    "InsightRequestError",
    "RequestParseError",
    "RequestValidationError",
    "parse_aggregates_request",
    "parse_insight_request",
    "parse_json_body",
]
