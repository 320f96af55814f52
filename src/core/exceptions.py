#!/usr/bin/env python3
"""
Standardized exception hierarchy for the mood pulse pipeline.

Only ConfigError is allowed to terminate a run. Every other error is
per-entity and is caught by the orchestrator loop.
"""

from typing import Optional, Dict, Any


class MoodPulseError(Exception):
    """Base exception for all mood pulse errors."""

    def __init__(self, message: str, error_code: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        """
        Initialize base exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            context: Additional error context
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            'error_type': self.__class__.__name__,
            'error_code': self.error_code,
            'message': self.message,
            'context': self.context
        }


class ConfigError(MoodPulseError):
    """Configuration is invalid or a required credential is missing."""

    def __init__(self, config_key: str, issue: str):
        message = f"Configuration error for {config_key}: {issue}"
        context = {
            'config_key': config_key,
            'issue': issue
        }
        super().__init__(message, context=context)


class FetchError(MoodPulseError):
    """Feed unreachable, non-2xx, or yielded no headlines."""

    def __init__(self, url: str, reason: str, original_error: Optional[Exception] = None):
        message = f"Failed to fetch headlines from {url}: {reason}"
        context = {
            'url': url,
            'reason': reason,
        }
        if original_error is not None:
            context['original_error'] = str(original_error)
        super().__init__(message, context=context)
        self.reason = reason


class ApiCallError(MoodPulseError):
    """A single failed call to the analysis API.

    Carries the HTTP status (None for transport failures), the raw body text
    and the body parsed as JSON when possible, so that classification never
    has to search the message string.
    """

    def __init__(self, message: str, status_code: Optional[int] = None,
                 body_text: str = "", body_json: Optional[Any] = None):
        context = {
            'status_code': status_code,
            'body': body_text[:500] if body_text else "",
        }
        super().__init__(message, context=context)
        self.status_code = status_code
        self.body_text = body_text or ""
        self.body_json = body_json


class AnalysisError(MoodPulseError):
    """Remote analysis failed after exhausting retries."""

    def __init__(self, entity_id: str, kind: str, attempts: int, last_error: Optional[Exception] = None):
        message = f"Analysis failed for {entity_id} after {attempts} attempt(s) ({kind})"
        context = {
            'entity_id': entity_id,
            'kind': kind,
            'attempts': attempts,
        }
        if last_error is not None:
            context['last_error'] = str(last_error)
        super().__init__(message, context=context)
        self.kind = kind
        self.attempts = attempts
        self.last_error = last_error


class SchemaError(MoodPulseError):
    """Model output could not be parsed as structured data at all."""

    def __init__(self, entity_id: str, detail: str, raw_preview: str = ""):
        message = f"Unparseable model output for {entity_id}: {detail}"
        context = {
            'entity_id': entity_id,
            'detail': detail,
            'raw_preview': raw_preview[:300],
        }
        super().__init__(message, context=context)


# Errors the orchestrator degrades to "keep previous value"
ENTITY_ERRORS = (FetchError, AnalysisError, SchemaError)
