#!/usr/bin/env python3
"""
Error classification and backoff for the rate-limited analysis API.

classify() is a pure function over the structured ApiCallError (status code
plus parsed body). Text markers are only consulted when no status code is
available or the body is not JSON.
"""

import re
from dataclasses import dataclass
from typing import Any, Optional

from core.exceptions import ApiCallError

RATE_LIMITED = 'rate_limited'
TRANSIENT = 'transient'
FATAL = 'fatal'

FATAL_STATUS_CODES = frozenset({400, 401, 403, 404})
RATE_LIMIT_STATUS = 'RESOURCE_EXHAUSTED'
RETRY_INFO_TYPE = 'type.googleapis.com/google.rpc.RetryInfo'

DURATION_RE = re.compile(r'^\s*(\d+(?:\.\d+)?)\s*s?\s*$')
RETRY_DELAY_TEXT_RE = re.compile(r'"retryDelay"\s*:\s*"(\d+(?:\.\d+)?)s"')
RATE_LIMIT_TEXT_MARKERS = ('429', 'quota', 'resource_exhausted')


@dataclass(frozen=True)
class Classification:
    """Outcome of classifying one failed API call."""
    kind: str
    retry_delay: Optional[float] = None

    @property
    def retryable(self) -> bool:
        return self.kind != FATAL


@dataclass(frozen=True)
class BackoffPolicy:
    """Wait times derived from a classification."""
    rate_limit_margin: float = 5.0
    rate_limit_cooldown: float = 70.0
    transient_delay: float = 5.0


def parse_duration(value: Any) -> Optional[float]:
    """Parse a protobuf duration such as "37s" or "12.5s" into seconds."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str):
        match = DURATION_RE.match(value)
        if match:
            return float(match.group(1))
    return None


def _error_block(body_json: Any) -> dict:
    if isinstance(body_json, list) and body_json:
        body_json = body_json[0]
    if isinstance(body_json, dict) and isinstance(body_json.get('error'), dict):
        return body_json['error']
    return {}


def extract_retry_delay(error: ApiCallError) -> Optional[float]:
    """Server-suggested retry delay in seconds, if the error carries one."""
    details = _error_block(error.body_json).get('details') or []
    for detail in details:
        if not isinstance(detail, dict):
            continue
        if detail.get('@type') == RETRY_INFO_TYPE or 'retryDelay' in detail:
            delay = parse_duration(detail.get('retryDelay'))
            if delay is not None:
                return delay

    match = RETRY_DELAY_TEXT_RE.search(error.body_text or error.message)
    if match:
        return float(match.group(1))
    return None


def classify(error: ApiCallError) -> Classification:
    """Map a failed call to RateLimited(delay?), Transient or Fatal."""
    status_code = error.status_code
    api_status = str(_error_block(error.body_json).get('status', '')).upper()

    if status_code == 429 or api_status == RATE_LIMIT_STATUS:
        return Classification(RATE_LIMITED, extract_retry_delay(error))

    if status_code in FATAL_STATUS_CODES:
        return Classification(FATAL)

    if status_code is None and error.body_json is None:
        text = f"{error.message} {error.body_text}".lower()
        if any(marker in text for marker in RATE_LIMIT_TEXT_MARKERS):
            return Classification(RATE_LIMITED, extract_retry_delay(error))

    return Classification(TRANSIENT)


def backoff_seconds(classification: Classification, policy: Optional[BackoffPolicy] = None) -> Optional[float]:
    """Seconds to wait before the next attempt, or None when retrying is pointless."""
    policy = policy or BackoffPolicy()

    if classification.kind == FATAL:
        return None
    if classification.kind == RATE_LIMITED:
        if classification.retry_delay is not None:
            return classification.retry_delay + policy.rate_limit_margin
        return policy.rate_limit_cooldown
    return policy.transient_delay
