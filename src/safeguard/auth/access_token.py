"""発行済みアクセストークンをそのまま使う認証器。"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from safeguard.auth.base import Authenticator, ConnectionTarget
from safeguard.auth.secret import SecretBuffer, SecretLike
from safeguard.errors import (
    ArgumentError,
    ErrorCode,
    SessionError,
    create_argument_error,
    create_session_error,
)


class AccessTokenAuthenticator(Authenticator):
    """外部で取得済みのリソースAPIトークンを保持する。

    元の資格情報を持たないため、トークンの更新はできない。
    """

    name = "AccessToken"

    def __init__(
        self,
        target: ConnectionTarget,
        access_token: SecretLike,
        *,
        http_client: Optional[httpx.Client] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if not access_token:
            raise ArgumentError(create_argument_error("the access_token parameter can not be empty"))
        super().__init__(target, http_client=http_client, logger=logger)
        self._tokens.set(access_token)

    def _get_federation_token(self) -> SecretBuffer:
        raise SessionError(
            create_session_error(
                ErrorCode.SESSION_UNSUPPORTED_OPERATION,
                "original authentication was with an access token, unable to refresh",
            )
        )

    def clone(self) -> AccessTokenAuthenticator:
        token = self.get_access_token()
        if token is None:
            raise SessionError(
                create_session_error(
                    ErrorCode.SESSION_TOKEN_MISSING,
                    "access token was cleared, unable to clone an access token authenticator",
                )
            )
        return AccessTokenAuthenticator(
            self._target,
            token,
            http_client=self._http_client,
            logger=self._logger,
        )
