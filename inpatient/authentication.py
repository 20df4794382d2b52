"""
Token authentication for the bed management API.

Kept apart from the login views so that DRF can import the
authentication classes named in ``REST_FRAMEWORK`` without pulling in
view modules (and their model imports) during start-up.
"""
from __future__ import annotations

from rest_framework import authentication, exceptions


class TokenAuthentication(authentication.TokenAuthentication):
    """``Authorization: Token <key>`` authentication.

    Tokens of accounts without an application role are refused with the
    same message as unknown tokens.
    """

    keyword = 'Token'

    def authenticate_credentials(self, key):
        user, token = super().authenticate_credentials(key)
        if not getattr(user, 'role', None):
            raise exceptions.AuthenticationFailed('Invalid token.')
        return user, token
