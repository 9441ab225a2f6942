"""
Token authentication for the clinic API.

Subclass of DRF's ``TokenAuthentication`` kept in its own module so the
settings can reference a stable import path without pulling in views.
JWT bearer tokens are handled by simplejwt's ``JWTAuthentication``,
which is listed first in ``DEFAULT_AUTHENTICATION_CLASSES``.
"""
from __future__ import annotations

from rest_framework import authentication


class TokenAuthentication(authentication.TokenAuthentication):
    """Accept ``Authorization: Token <key>`` headers issued at login."""

    keyword = 'Token'
