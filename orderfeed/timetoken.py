# orderfeed/timetoken.py
"""
Time-window API tokens
======================
Token = b64url( "<window>:<b64url(HMAC-SHA256(secret, "<window>"))>" ), no padding
on either layer. Used as the ``X-API-Token`` header on publish requests.
"""
from __future__ import annotations
import base64, binascii, hashlib, hmac, logging, time
from typing import Callable, Tuple, Union

log = logging.getLogger("timetoken")

DEFAULT_TIME_WINDOW = 3600   # seconds
DEFAULT_ALLOWED_SKEW = 1     # windows either side of "now"

Secret = Union[bytes, str]


class InvalidConfiguration(ValueError):
    """Window size or clock value can't produce a token."""


class InvalidToken(ValueError):
    """Token isn't ``b64url(<int>:<mac>)``."""


# ----- encoding helpers -----
def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64url_decode(s: str) -> bytes:
    s = s.replace("+", "-").replace("/", "_")
    return base64.urlsafe_b64decode(s + "=" * (-len(s) % 4))


def _as_bytes(secret: Secret) -> bytes:
    return secret.encode("utf-8") if isinstance(secret, str) else bytes(secret)


def window_index(window_seconds: int, now_seconds: float) -> int:
    if window_seconds <= 0:
        raise InvalidConfiguration(f"time window must be positive, got {window_seconds}")
    if now_seconds < 0:
        raise InvalidConfiguration(f"timestamp must be non-negative, got {now_seconds}")
    return int(now_seconds // window_seconds)


def window_mac(secret: Secret, window: int) -> str:
    """URL-safe, unpadded HMAC-SHA256 of the decimal window string."""
    digest = hmac.new(_as_bytes(secret), str(window).encode("ascii"), hashlib.sha256).digest()
    return _b64url(digest)


# ----- generation -----
def generate_token(secret: Secret, window_seconds: int, now_seconds: float) -> str:
    window = window_index(window_seconds, now_seconds)
    inner = f"{window}:{window_mac(secret, window)}"
    return _b64url(inner.encode("ascii"))


def current_token(secret: Secret, window_seconds: int,
                  clock: Callable[[], float] = time.time) -> str:
    now = clock()
    token = generate_token(secret, window_seconds, now)
    if log.isEnabledFor(logging.DEBUG):
        window = window_index(window_seconds, now)
        log.debug("Generated token: %s", token)
        log.debug("Window: %s", window)
        log.debug("MAC: %s", window_mac(secret, window))
    return token


# ----- verification -----
def decode_token(token: str) -> Tuple[int, str]:
    """Strip the outer layer and return ``(window, mac)``."""
    try:
        decoded = _b64url_decode(token).decode("ascii")
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise InvalidToken(f"base64 decode error: {e}") from e

    parts = decoded.split(":")
    if len(parts) != 2:
        raise InvalidToken(f"invalid parts count: {len(parts)}")
    try:
        window = int(parts[0])
    except ValueError as e:
        raise InvalidToken(f"window parse error: {parts[0]!r}") from e
    return window, parts[1]


def verify_token(token: str, secret: Secret, window_seconds: int, now_seconds: float,
                 allowed_skew: int = DEFAULT_ALLOWED_SKEW) -> bool:
    current = window_index(window_seconds, now_seconds)
    try:
        window, received = decode_token(token)
    except InvalidToken as e:
        log.debug("Rejected token: %s", e)
        return False

    if window < current - allowed_skew or window > current + allowed_skew:
        log.debug("Window out of range: %d, current: %d, skew: %d", window, current, allowed_skew)
        return False

    # senders may use standard base64 for the mac
    received = received.replace("+", "-").replace("/", "_").rstrip("=")
    expected = window_mac(secret, window)
    return hmac.compare_digest(expected, received)
