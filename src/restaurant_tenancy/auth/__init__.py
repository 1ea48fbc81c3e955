"""Verified actor identity and access token handling.

The API dependency that turns an ``Authorization`` header into an
``Actor`` lives in ``api.deps`` to avoid a circular import
(auth → api.deps → tenancy → auth).
"""

from restaurant_tenancy.auth.actor import Actor, Role
from restaurant_tenancy.auth.tokens import decode_access_token, issue_access_token

__all__ = ["Actor", "Role", "decode_access_token", "issue_access_token"]
