"""
Header Translation
==================

Maps headers between the browser-facing side of the gateway and the origin.

Request side (browser -> origin):
    - Only a fixed whitelist of headers is forwarded as-is.
    - Any header named ``tun-<X>`` is forwarded as ``<x>``. This is how a
      browser client smuggles headers it is not allowed to set itself
      (Cookie, Referer, Authorization for the origin...).
    - When both ``tun-X`` and a whitelisted ``X`` are present, only the
      ``tun-`` version is sent.

Response side (origin -> browser):
    - ``Access-Control-*`` headers from the origin are dropped; the gateway's
      own CORS headers are the only ones the browser sees.
    - ``Set-Cookie`` is renamed to ``tun-set-cookie`` so the browser does not
      store the origin's cookies under the gateway's domain.
    - A 3xx status is recorded in ``tun-status`` because the client always
      receives 200 for redirects.

Header pairs that are not valid wire-format data are skipped one by one;
a single bad header never fails the request.
"""

import enum
import re
from typing import Iterable, Set, Tuple

from ..models import HeaderList

TUN_PREFIX = "tun-"

DEFAULT_FORWARD_HEADERS = frozenset({
    "content-type",
    "content-length",
    "user-agent",
    "accept",
    "accept-encoding",
    "keep-alive",
})

CORS_HEADER_PREFIX = "access-control-"

TUN_STATUS = "tun-status"
TUN_SET_COOKIE = "tun-set-cookie"

# RFC 7230 token
_HEADER_NAME_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")


class HeaderRule(enum.Enum):
    """Outcome of classifying a single header name."""

    WHITELISTED = "whitelisted"
    ESCAPED = "escaped"
    CORS_STRIPPED = "cors-stripped"
    RENAMED = "renamed"
    PASS_THROUGH = "pass-through"
    DROPPED = "dropped"


# ============================================================================
# Validation
# ============================================================================

def is_valid_header_name(name: str) -> bool:
    return bool(_HEADER_NAME_RE.match(name))


def is_valid_header_value(value: str) -> bool:
    """
    Visible Latin-1 characters, space and HTAB only.

    Latin-1 is the range Starlette and httpx can put on the wire; CR, LF,
    NUL and the other control characters would split or corrupt the message.
    """
    for ch in value:
        code = ord(ch)
        if code == 0x09:
            continue
        if code < 0x20 or code == 0x7F or code > 0xFF:
            return False
    return True


def _is_valid_pair(name: str, value: str) -> bool:
    return is_valid_header_name(name) and is_valid_header_value(value)


# ============================================================================
# Request Side
# ============================================================================

def has_tun_prefix(name: str) -> bool:
    """True for ``tun-<something>`` (case-insensitive, non-empty suffix)."""
    return len(name) > len(TUN_PREFIX) and name[:len(TUN_PREFIX)].lower() == TUN_PREFIX


def overridden_header_names(headers: Iterable[Tuple[str, str]]) -> Set[str]:
    """Lowercase names supplied through the ``tun-`` escape prefix."""
    return {
        name[len(TUN_PREFIX):].lower()
        for name, _ in headers
        if has_tun_prefix(name)
    }


def classify_request_header(name: str, overridden: Set[str]) -> HeaderRule:
    """
    Classify an inbound header name.

    Args:
        name: Inbound header name
        overridden: Result of ``overridden_header_names`` for the same request

    Returns:
        ESCAPED, WHITELISTED or DROPPED
    """
    if has_tun_prefix(name):
        return HeaderRule.ESCAPED

    lowered = name.lower()
    if lowered in DEFAULT_FORWARD_HEADERS and lowered not in overridden:
        return HeaderRule.WHITELISTED

    return HeaderRule.DROPPED


def translate_request_headers(headers: Iterable[Tuple[str, str]]) -> HeaderList:
    """
    Build the header list for the forwarded call.

    Args:
        headers: Inbound ``(name, value)`` pairs in arrival order

    Returns:
        Outbound ``(name, value)`` pairs; multi-valued headers keep every value
    """
    headers = list(headers)
    overridden = overridden_header_names(headers)

    forwarded: HeaderList = []
    for name, value in headers:
        rule = classify_request_header(name, overridden)

        if rule is HeaderRule.ESCAPED:
            out_name = name[len(TUN_PREFIX):].lower()
        elif rule is HeaderRule.WHITELISTED:
            out_name = name
        else:
            continue

        if not _is_valid_pair(out_name, value):
            continue

        forwarded.append((out_name, value))

    return forwarded


# ============================================================================
# Response Side
# ============================================================================

def is_cors_header(name: str) -> bool:
    return name.lower().startswith(CORS_HEADER_PREFIX)


def is_redirect_status(status_code: int) -> bool:
    return 300 <= status_code < 400


def classify_response_header(name: str) -> HeaderRule:
    """Classify an origin response header name."""
    if is_cors_header(name):
        return HeaderRule.CORS_STRIPPED

    if name.lower() == "set-cookie":
        return HeaderRule.RENAMED

    return HeaderRule.PASS_THROUGH


def translate_response_headers(
    headers: Iterable[Tuple[str, str]],
    status_code: int,
) -> HeaderList:
    """
    Build the client-facing header list from the origin's response headers.

    Args:
        headers: Origin ``(name, value)`` pairs
        status_code: Origin status code

    Returns:
        Translated ``(name, value)`` pairs, ``tun-status`` first for redirects
    """
    translated: HeaderList = []

    if is_redirect_status(status_code):
        translated.append((TUN_STATUS, str(status_code)))

    for name, value in headers:
        rule = classify_response_header(name)

        if rule is HeaderRule.CORS_STRIPPED:
            continue

        out_name = TUN_SET_COOKIE if rule is HeaderRule.RENAMED else name

        if not _is_valid_pair(out_name, value):
            continue

        translated.append((out_name, value))

    return translated
