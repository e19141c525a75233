"""ユーザー名・パスワードによる認証器。"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from safeguard.auth.base import Authenticator, ConnectionTarget
from safeguard.auth.federation import LOCAL_PROVIDER, LOCAL_SCOPE
from safeguard.auth.secret import SecretBuffer, SecretLike
from safeguard.errors import ArgumentError, create_argument_error


class PasswordAuthenticator(Authenticator):
    """RSTSのパスワードグラントでトークンを取得する。

    プロバイダが ``local`` 以外の場合、初回のトークン取得時にRSTSへ問い合わせて
    スコープを解決し、このインスタンスの間は再利用する。
    """

    name = "Password"
    can_reauthenticate = True

    def __init__(
        self,
        target: ConnectionTarget,
        username: str,
        password: Optional[SecretLike],
        provider: Optional[str] = None,
        *,
        http_client: Optional[httpx.Client] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        """PasswordAuthenticatorを初期化する。

        Args:
            target: 接続先。
            username: ユーザー名。
            password: パスワード。消去可能なバッファに複製して保持する。
            provider: 識別プロバイダ名。未指定なら ``local``。
            http_client: 注入する httpx.Client。
            logger: ログ出力先。

        Raises:
            ArgumentError: パスワードが None の場合。
        """

        if password is None:
            raise ArgumentError(create_argument_error("the password parameter can not be None"))
        super().__init__(target, http_client=http_client, logger=logger)
        self._username = username
        self._password = SecretBuffer(password)
        self._provider = provider or ""
        self._provider_scope: Optional[str] = None
        if not self._provider or self._provider.casefold() == LOCAL_PROVIDER:
            self._provider_scope = LOCAL_SCOPE

    @property
    def username(self) -> str:
        return self._username

    @property
    def provider(self) -> str:
        return self._provider

    @property
    def provider_scope(self) -> Optional[str]:
        return self._provider_scope

    def _get_federation_token(self) -> SecretBuffer:
        self._ensure_not_disposed()
        if self._provider_scope is None:
            self._provider_scope = self._federation.resolve_provider_scope(self._provider)
        return self._federation.password_grant(self._username, self._password, self._provider_scope)

    def clone(self) -> PasswordAuthenticator:
        self._ensure_not_disposed()
        clone = PasswordAuthenticator(
            self._target,
            self._username,
            self._password,
            self._provider,
            http_client=self._http_client,
            logger=self._logger,
        )
        return self._copy_token_into(clone)

    def dispose(self) -> None:
        super().dispose()
        self._password.wipe()
