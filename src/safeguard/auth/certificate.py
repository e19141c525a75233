"""クライアント証明書による認証器。"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from safeguard.auth.base import Authenticator, ConnectionTarget
from safeguard.auth.federation import CERTIFICATE_SCOPE
from safeguard.auth.secret import SecretBuffer
from safeguard.errors import ArgumentError, create_argument_error
from safeguard.transport import CertSpec


class CertificateAuthenticator(Authenticator):
    """TLSクライアント証明書を提示し、client_credentials グラントでトークンを取得する。"""

    name = "Certificate"
    can_reauthenticate = True

    def __init__(
        self,
        target: ConnectionTarget,
        certificate_file: str,
        key_file: Optional[str] = None,
        *,
        http_client: Optional[httpx.Client] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        """CertificateAuthenticatorを初期化する。

        Args:
            target: 接続先。
            certificate_file: PEM形式のクライアント証明書のパス。
            key_file: 秘密鍵のパス。証明書ファイルに含まれる場合は省略可。
            http_client: 注入する httpx.Client。指定時は証明書の設定はそちらに委ねる。
            logger: ログ出力先。
        """

        if not certificate_file:
            raise ArgumentError(create_argument_error("the certificate_file parameter can not be empty"))
        # 基底クラスの初期化中に _client_cert() が参照する
        self._certificate_file = certificate_file
        self._key_file = key_file
        super().__init__(target, http_client=http_client, logger=logger)

    @property
    def certificate_file(self) -> str:
        return self._certificate_file

    def _client_cert(self) -> Optional[CertSpec]:
        if self._key_file:
            return (self._certificate_file, self._key_file)
        return self._certificate_file

    def _get_federation_token(self) -> SecretBuffer:
        self._ensure_not_disposed()
        return self._federation.client_credentials_grant(CERTIFICATE_SCOPE)

    def clone(self) -> CertificateAuthenticator:
        self._ensure_not_disposed()
        clone = CertificateAuthenticator(
            self._target,
            self._certificate_file,
            self._key_file,
            http_client=self._http_client,
            logger=self._logger,
        )
        return self._copy_token_into(clone)
