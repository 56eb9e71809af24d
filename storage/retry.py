"""
Retry/backoff and rate-limit-aware HTTP GET helper.
This module centralizes request retry logic so ingest clients share one policy.
"""

import os
import time
import random
import logging
import email.utils
from datetime import datetime, timezone
from typing import Optional, Dict, Any
import requests

logger = logging.getLogger(__name__)

# retry/backoff defaults from environment
DEFAULT_MAX_RETRIES = int(os.getenv("TODO_RANK_MAX_RETRIES", "3"))
DEFAULT_BACKOFF_BASE = float(os.getenv("TODO_RANK_BACKOFF_BASE", "0.5"))
_env_jitter = os.getenv("TODO_RANK_BACKOFF_JITTER")
DEFAULT_BACKOFF_JITTER = float(_env_jitter) if _env_jitter is not None and _env_jitter != "" else None
DEFAULT_MAX_BACKOFF = float(os.getenv("TODO_RANK_MAX_BACKOFF", "120.0"))
DEFAULT_TIMEOUT = float(os.getenv("TODO_RANK_TIMEOUT", "30.0"))

# a single wait never exceeds this, whatever Retry-After says
MAX_SINGLE_WAIT = 300.0

# runtime-overrides
_runtime_max_retries: Optional[int] = None
_runtime_backoff_base: Optional[float] = None
_runtime_backoff_jitter: Optional[float] = None
_runtime_max_backoff: Optional[float] = None


def configure_retry(
    max_retries: Optional[int] = None, backoff_base: Optional[float] = None, backoff_jitter: Optional[float] = None, max_backoff: Optional[float] = None
):
    """Configure retry/backoff defaults at runtime (e.g. from CLI)."""
    global _runtime_max_retries, _runtime_backoff_base, _runtime_backoff_jitter, _runtime_max_backoff
    if max_retries is not None:
        _runtime_max_retries = int(max_retries)
    if backoff_base is not None:
        _runtime_backoff_base = float(backoff_base)
    if backoff_jitter is not None:
        _runtime_backoff_jitter = float(backoff_jitter)
    if max_backoff is not None:
        _runtime_max_backoff = float(max_backoff)


def reset_retry():
    """Drop runtime overrides and fall back to the environment defaults."""
    global _runtime_max_retries, _runtime_backoff_base, _runtime_backoff_jitter, _runtime_max_backoff
    _runtime_max_retries = None
    _runtime_backoff_base = None
    _runtime_backoff_jitter = None
    _runtime_max_backoff = None


def _parse_retry_after(raw_ra: Optional[str]) -> Optional[float]:
    if not raw_ra:
        return None
    try:
        return float(raw_ra)
    except ValueError:
        pass
    try:
        dt = email.utils.parsedate_to_datetime(raw_ra)
    except (TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return max(0.0, (dt - datetime.now(timezone.utc)).total_seconds())


def _header_number(headers, key: str, cast):
    val = headers.get(key)
    if val is None:
        return None
    try:
        return cast(val)
    except (TypeError, ValueError):
        return None


def _parse_rate_headers(resp):
    headers = getattr(resp, 'headers', None) or {}
    ra = _parse_retry_after(headers.get('Retry-After'))
    # GitLab uses RateLimit-*, older proxies still send X-RateLimit-*
    remaining = _header_number(headers, 'RateLimit-Remaining', int)
    if remaining is None:
        remaining = _header_number(headers, 'X-RateLimit-Remaining', int)
    reset = _header_number(headers, 'RateLimit-Reset', float)
    if reset is None:
        reset = _header_number(headers, 'X-RateLimit-Reset', float)
    return ra, remaining, reset


def _resolve_backoff_params(backoff_base: Optional[float], backoff_jitter: Optional[float], max_backoff: Optional[float]):
    if backoff_base is not None:
        base = float(backoff_base)
    elif _runtime_backoff_base is not None:
        base = float(_runtime_backoff_base)
    else:
        base = float(DEFAULT_BACKOFF_BASE)

    if backoff_jitter is not None:
        jitter = float(backoff_jitter)
    elif _runtime_backoff_jitter is not None:
        jitter = float(_runtime_backoff_jitter)
    elif DEFAULT_BACKOFF_JITTER is not None:
        jitter = float(DEFAULT_BACKOFF_JITTER)
    else:
        jitter = base

    if max_backoff is not None:
        cap = float(max_backoff)
    elif _runtime_max_backoff is not None:
        cap = float(_runtime_max_backoff)
    else:
        cap = float(DEFAULT_MAX_BACKOFF)

    return base, jitter, cap


def _should_retry_response(status_code: int, ra: Optional[float], rl_remaining: Optional[int]) -> bool:
    if status_code in (429, 502, 503, 504):
        return True
    if ra is not None:
        return True
    if rl_remaining is not None and rl_remaining <= 0:
        return True
    return False


def _compute_wait_seconds(ra: Optional[float], rl_reset: Optional[float], backoff: float, jitter: float) -> float:
    if ra is not None:
        return min(ra + random.uniform(0, jitter), MAX_SINGLE_WAIT)
    if rl_reset:
        wait = max(0.0, rl_reset - time.time())
        return min(wait + random.uniform(0, jitter), MAX_SINGLE_WAIT)
    return min(backoff + random.uniform(0, jitter), MAX_SINGLE_WAIT)


def _parse_body(resp):
    try:
        return resp.json()
    except ValueError:
        return getattr(resp, 'text', None)


def _attempt_request_once(url: str, headers: Dict[str, str], params: Dict[str, Any], timeout: float):
    try:
        resp = requests.get(url, headers=headers or {}, params=params or {}, timeout=timeout)
    except requests.RequestException as ex:
        return 'error', {'exception': str(ex)}

    status = getattr(resp, 'status_code', 0)
    if status == 200:
        return 'success', {'body': _parse_body(resp), 'status': status, 'headers': getattr(resp, 'headers', None) or {}}

    ra, rl_remaining, rl_reset = _parse_rate_headers(resp)
    if _should_retry_response(status, ra, rl_remaining):
        return 'retry', {'status': status, 'ra': ra, 'rl_reset': rl_reset, 'text': getattr(resp, 'text', None)}

    return 'fail', {'body': _parse_body(resp), 'status': status}


def perform_request_with_retries(
    url: str,
    headers: Optional[Dict[str, str]] = None,
    params: Optional[Dict[str, Any]] = None,
    max_retries: Optional[int] = None,
    backoff_base: Optional[float] = None,
    backoff_jitter: Optional[float] = None,
    max_backoff: Optional[float] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> Dict[str, Any]:
    """Perform a GET, retrying transport errors and rate-limited responses.

    Returns a dict with 'response' (parsed JSON or text), 'status' (0 for transport failure), 'headers'
    and 'timestamp'. Non-retryable failures are returned immediately; callers decide what a failure means.
    """
    base, jitter, cap = _resolve_backoff_params(backoff_base, backoff_jitter, max_backoff)
    if _runtime_max_retries is not None:
        attempts = int(_runtime_max_retries)
    else:
        attempts = int(max_retries or DEFAULT_MAX_RETRIES)
    attempts = max(1, attempts)

    backoff = base
    last_result: Dict[str, Any] = {'response': None, 'status': 0, 'headers': {}, 'timestamp': time.time()}
    for attempt in range(attempts):
        outcome, data = _attempt_request_once(url, headers or {}, params or {}, timeout)

        if outcome == 'success':
            return {'response': data['body'], 'status': data['status'], 'headers': data['headers'], 'timestamp': time.time()}
        if outcome == 'fail':
            return {'response': data['body'], 'status': data['status'], 'headers': {}, 'timestamp': time.time()}

        if outcome == 'error':
            logger.warning("GET %s failed (attempt %d/%d): %s", url, attempt + 1, attempts, data['exception'])
            last_result = {'response': data['exception'], 'status': 0, 'headers': {}, 'timestamp': time.time()}
            wait = min(backoff + random.uniform(0, jitter), cap)
        else:
            logger.warning("GET %s returned %s (attempt %d/%d), backing off", url, data['status'], attempt + 1, attempts)
            last_result = {'response': data['text'], 'status': data['status'], 'headers': {}, 'timestamp': time.time()}
            wait = _compute_wait_seconds(data['ra'], data['rl_reset'], backoff, jitter)
        backoff = min(backoff * 2, cap)

        if attempt + 1 < attempts:
            time.sleep(wait)

    return last_result


__all__ = ["configure_retry", "reset_retry", "perform_request_with_retries"]
