"""Safeguard API セッションクライアント

認証方式ごとの接続関数を提供する。各関数はアクセストークンを取得済みの
SessionConnection を返す（匿名接続を除く）。
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from safeguard.auth import (
    AccessTokenAuthenticator,
    AnonymousAuthenticator,
    Authenticator,
    CertificateAuthenticator,
    ConnectionTarget,
    PasswordAuthenticator,
    SecretBuffer,
)
from safeguard.auth.secret import SecretLike
from safeguard.config import SafeguardSettings, load_settings
from safeguard.connection import SessionConnection
from safeguard.errors import (
    ArgumentError,
    DisposedError,
    ErrorCode,
    FederationError,
    SafeguardError,
    SafeguardException,
    SessionError,
    create_argument_error,
)
from safeguard.events import EventListener, PersistentEventListener
from safeguard.models import FullResponse, Method, Service

__version__ = "0.1.0"

__all__ = [
    "AccessTokenAuthenticator",
    "AnonymousAuthenticator",
    "ArgumentError",
    "Authenticator",
    "CertificateAuthenticator",
    "ConnectionTarget",
    "DisposedError",
    "ErrorCode",
    "EventListener",
    "FederationError",
    "FullResponse",
    "Method",
    "PasswordAuthenticator",
    "PersistentEventListener",
    "SafeguardError",
    "SafeguardException",
    "SafeguardSettings",
    "SecretBuffer",
    "Service",
    "SessionConnection",
    "SessionError",
    "connect",
    "connect_access_token",
    "connect_anonymous",
    "connect_certificate",
    "connect_password",
    "load_settings",
]


def _open(
    authenticator: Authenticator,
    *,
    refresh: bool,
    logger: Optional[logging.Logger],
) -> SessionConnection:
    connection = SessionConnection(authenticator, logger=logger)
    if refresh:
        try:
            connection.refresh_access_token()
        except Exception:
            connection.dispose()
            raise
    return connection


def connect_password(
    network_address: str,
    username: str,
    password: SecretLike,
    provider: Optional[str] = None,
    *,
    api_version: int = 4,
    ignore_ssl: bool = False,
    timeout: float = 30.0,
    http_client: Optional[httpx.Client] = None,
    logger: Optional[logging.Logger] = None,
) -> SessionConnection:
    """ユーザー名・パスワードで接続する"""
    target = ConnectionTarget(network_address, api_version, ignore_ssl, timeout)
    authenticator = PasswordAuthenticator(
        target, username, password, provider, http_client=http_client, logger=logger
    )
    return _open(authenticator, refresh=True, logger=logger)


def connect_certificate(
    network_address: str,
    certificate_file: str,
    key_file: Optional[str] = None,
    *,
    api_version: int = 4,
    ignore_ssl: bool = False,
    timeout: float = 30.0,
    http_client: Optional[httpx.Client] = None,
    logger: Optional[logging.Logger] = None,
) -> SessionConnection:
    """クライアント証明書で接続する"""
    target = ConnectionTarget(network_address, api_version, ignore_ssl, timeout)
    authenticator = CertificateAuthenticator(
        target, certificate_file, key_file, http_client=http_client, logger=logger
    )
    return _open(authenticator, refresh=True, logger=logger)


def connect_access_token(
    network_address: str,
    access_token: SecretLike,
    *,
    api_version: int = 4,
    ignore_ssl: bool = False,
    timeout: float = 30.0,
    http_client: Optional[httpx.Client] = None,
    logger: Optional[logging.Logger] = None,
) -> SessionConnection:
    """発行済みのアクセストークンで接続する"""
    target = ConnectionTarget(network_address, api_version, ignore_ssl, timeout)
    authenticator = AccessTokenAuthenticator(target, access_token, http_client=http_client, logger=logger)
    return _open(authenticator, refresh=False, logger=logger)


def connect_anonymous(
    network_address: str,
    *,
    api_version: int = 4,
    ignore_ssl: bool = False,
    timeout: float = 30.0,
    http_client: Optional[httpx.Client] = None,
    logger: Optional[logging.Logger] = None,
) -> SessionConnection:
    """認証なしで接続する（Notification サービスの状態確認など）"""
    target = ConnectionTarget(network_address, api_version, ignore_ssl, timeout)
    authenticator = AnonymousAuthenticator(target, http_client=http_client, logger=logger)
    return _open(authenticator, refresh=False, logger=logger)


def connect(
    settings: SafeguardSettings,
    *,
    http_client: Optional[httpx.Client] = None,
    logger: Optional[logging.Logger] = None,
) -> SessionConnection:
    """設定内容から認証方式を選んで接続する

    優先順位は アクセストークン > 証明書 > パスワード > 匿名。
    """
    common = dict(
        api_version=settings.api_version,
        ignore_ssl=settings.ignore_ssl,
        timeout=settings.timeout,
        http_client=http_client,
        logger=logger,
    )
    if settings.access_token is not None:
        return connect_access_token(
            settings.network_address, settings.access_token.get_secret_value(), **common
        )
    if settings.certificate_file is not None:
        return connect_certificate(
            settings.network_address,
            str(settings.certificate_file),
            str(settings.key_file) if settings.key_file else None,
            **common,
        )
    if settings.username:
        if settings.password is None:
            raise ArgumentError(create_argument_error("password is required when username is configured"))
        return connect_password(
            settings.network_address,
            settings.username,
            settings.password.get_secret_value(),
            settings.provider,
            **common,
        )
    return connect_anonymous(settings.network_address, **common)
