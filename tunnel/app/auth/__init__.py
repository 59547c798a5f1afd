"""
Authentication Package

The gateway authenticates callers with a single shared bearer credential.

Modules:
- bearer: ``valid_bearer`` check of the Authorization header value
"""

from .bearer import valid_bearer

__all__ = [
    "valid_bearer",
]
