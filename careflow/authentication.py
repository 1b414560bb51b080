"""
Token authentication with role normalisation.

Accounts imported from older systems may carry roles like ``'DOCTOR'`` or
``' Pharmacy'``.  The role is canonicalised here, once, so every view and
service downstream compares against :class:`careflow.models.Role` values.
"""
from __future__ import annotations

from rest_framework import authentication, exceptions

from careflow.models import Role, normalize_choice


class TokenAuthentication(authentication.TokenAuthentication):
    """``Authorization: Token <key>``; rejects accounts with an unknown role."""

    keyword = 'Token'

    def authenticate_credentials(self, key):
        user, token = super().authenticate_credentials(key)
        role = normalize_choice(user.role)
        if role not in Role.values:
            raise exceptions.AuthenticationFailed('This account has no recognised role.')
        user.role = role
        return user, token
