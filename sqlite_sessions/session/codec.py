"""Conversion between session payloads and their persisted text form."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Mapping, Optional

from .constants import ONE_DAY
from .errors import SessionDecodeError, SessionEncodeError


def encode_session(sess: Mapping[str, Any]) -> str:
    if not isinstance(sess, Mapping):
        raise SessionEncodeError(f"Session payload must be an object, got {type(sess).__name__}")
    try:
        return json.dumps(sess, ensure_ascii=False, default=_json_default)
    except (TypeError, ValueError) as exc:
        raise SessionEncodeError(f"Session payload is not JSON serialisable: {exc}") from exc


def decode_session(text: str) -> dict[str, Any]:
    try:
        value = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise SessionDecodeError(f"Malformed session payload: {exc}") from exc
    if not isinstance(value, dict):
        raise SessionDecodeError(f"Session payload must be an object, got {type(value).__name__}")
    return value


def compute_expiry(sess: Mapping[str, Any], now_ms: int) -> int:
    """Return the expiry timestamp for ``sess`` written at ``now_ms``.

    A truthy numeric ``cookie.maxAge`` wins; anything else falls back to one day.
    """
    max_age = _cookie(sess).get("maxAge")
    if isinstance(max_age, (int, float)) and not isinstance(max_age, bool) and max_age:
        return int(now_ms + max_age)
    return now_ms + ONE_DAY


def cookie_expires_ms(sess: Optional[Mapping[str, Any]]) -> Optional[int]:
    """Return ``cookie.expires`` as epoch milliseconds, or ``None`` when unset."""
    if not sess:
        return None
    expires = _cookie(sess).get("expires")
    if not expires:
        return None
    if isinstance(expires, datetime):
        return _datetime_to_ms(expires)
    if isinstance(expires, (int, float)) and not isinstance(expires, bool):
        return int(expires)
    if isinstance(expires, str):
        return _datetime_to_ms(_parse_date(expires))
    raise SessionDecodeError(f"Unsupported cookie.expires value: {expires!r}")


def _cookie(sess: Mapping[str, Any]) -> Mapping[str, Any]:
    cookie = sess.get("cookie") if isinstance(sess, Mapping) else None
    return cookie if isinstance(cookie, Mapping) else {}


def _parse_date(value: str) -> datetime:
    text = value.strip()
    iso = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        return datetime.fromisoformat(iso)
    except ValueError:
        pass
    try:
        return parsedate_to_datetime(text)
    except (TypeError, ValueError) as exc:
        raise SessionDecodeError(f"Unparseable cookie.expires value: {value!r}") from exc


def _datetime_to_ms(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def _json_default(value: Any) -> Any:
    # Cookie dates are the only non-JSON values a session middleware hands us.
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
