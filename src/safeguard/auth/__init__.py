"""認証器とトークン管理の公開API。"""

from __future__ import annotations

from safeguard.auth.access_token import AccessTokenAuthenticator
from safeguard.auth.anonymous import AnonymousAuthenticator
from safeguard.auth.base import Authenticator, ConnectionTarget
from safeguard.auth.certificate import CertificateAuthenticator
from safeguard.auth.federation import FederationClient, match_provider_scope
from safeguard.auth.password import PasswordAuthenticator
from safeguard.auth.secret import SecretBuffer
from safeguard.auth.token_store import TokenStore

__all__ = [
    "AccessTokenAuthenticator",
    "AnonymousAuthenticator",
    "Authenticator",
    "CertificateAuthenticator",
    "ConnectionTarget",
    "FederationClient",
    "PasswordAuthenticator",
    "SecretBuffer",
    "TokenStore",
    "match_provider_scope",
]
