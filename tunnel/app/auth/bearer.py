"""
Bearer Credential Check
=======================

Validates the single shared-secret credential presented on every proxied
request as ``Authorization: Bearer <token>``.

There are no sessions, no expiry and no claims: the credential is an opaque
string configured once at startup (``Settings.token``).
"""

import logging
import secrets
from typing import Optional

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "


def valid_bearer(authorization: Optional[str], credential: str) -> bool:
    """
    Check an Authorization header value against the configured credential.

    The scheme is matched case-insensitively and must be followed by at
    least one space; surrounding whitespace around the token is ignored.

    Args:
        authorization: Raw Authorization header value (None if absent)
        credential: Configured shared secret

    Returns:
        True iff the header carries exactly ``credential`` as a bearer token

    Example:
        >>> valid_bearer("bearer  s3cret ", "s3cret")
        True
        >>> valid_bearer("Basic s3cret", "s3cret")
        False
    """
    if not authorization:
        return False

    if authorization[:len(BEARER_PREFIX)].lower() != BEARER_PREFIX:
        return False

    token = authorization[len(BEARER_PREFIX):].strip()
    return secrets.compare_digest(token.encode("utf-8"), credential.encode("utf-8"))
