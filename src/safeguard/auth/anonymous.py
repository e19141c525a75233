"""匿名接続用の認証器。"""

from __future__ import annotations

from safeguard.auth.base import Authenticator
from safeguard.auth.secret import SecretBuffer
from safeguard.errors import ErrorCode, SessionError, create_session_error


class AnonymousAuthenticator(Authenticator):
    """トークンを持たず、Authorization ヘッダーを付けない。"""

    name = "Anonymous"

    def is_anonymous(self) -> bool:
        return True

    def _get_federation_token(self) -> SecretBuffer:
        raise SessionError(
            create_session_error(
                ErrorCode.SESSION_UNSUPPORTED_OPERATION,
                "anonymous authenticators are not authenticated, unable to refresh",
            )
        )

    def clone(self) -> AnonymousAuthenticator:
        self._ensure_not_disposed()
        return AnonymousAuthenticator(self._target, http_client=self._http_client, logger=self._logger)
