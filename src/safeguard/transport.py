"""
HTTP送信クライアント

1つのベースURLに対してHTTPメソッドを実行する薄いラッパー。
送受信に失敗した場合は例外ではなく None を返し、判定は呼び出し側に委ねる。
"""

from __future__ import annotations

import logging
import ssl
from typing import Any, Mapping, Optional, Tuple, Union

import httpx

from safeguard.models import Method

CertSpec = Union[str, Tuple[str, str]]

LOGGER = logging.getLogger(__name__)


def create_ssl_context(verify: bool, cert: CertSpec) -> ssl.SSLContext:
    """クライアント証明書を読み込んだTLSコンテキストを作る

    Args:
        verify: サーバー証明書を検証するかどうか
        cert: 証明書ファイル、または (証明書ファイル, 秘密鍵ファイル)

    Returns:
        ssl.SSLContext: httpx の verify に渡すコンテキスト
    """
    context = ssl.create_default_context()
    if not verify:
        # check_hostname は verify_mode より先に無効化する必要がある
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    if isinstance(cert, tuple):
        context.load_cert_chain(cert[0], cert[1])
    else:
        context.load_cert_chain(cert)
    return context


class RestClient:
    """ベースURL単位のHTTP送信クライアント"""

    def __init__(
        self,
        base_url: str,
        *,
        verify: bool = True,
        timeout: float = 30.0,
        cert: Optional[CertSpec] = None,
        client: Optional[httpx.Client] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        """RestClientを初期化

        Args:
            base_url: 送信先のベースURL（末尾スラッシュなし）
            verify: TLS証明書を検証するかどうか
            timeout: タイムアウト秒数
            cert: クライアント証明書（証明書認証用）
            client: 注入する httpx.Client。指定時はクローズしない
            logger: ログ出力先
        """
        self.base_url = base_url.rstrip("/")
        self.verify = verify
        self.timeout = timeout
        self._logger = logger or LOGGER
        # 外部から渡されたクライアントは呼び出し側が閉じる
        self._owns_client = client is None
        if client is None:
            tls = create_ssl_context(verify, cert) if cert is not None else verify
            client = httpx.Client(verify=tls, timeout=timeout)
        self._client = client

    def url_for(self, relative_url: str) -> str:
        return f"{self.base_url}/{relative_url.lstrip('/')}"

    def execute(
        self,
        method: Method,
        relative_url: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        body: Optional[Union[str, bytes]] = None,
    ) -> Optional[httpx.Response]:
        """リクエストを送信する

        Returns:
            httpx.Response。送受信に失敗した場合（接続不可・応答の復号失敗など）は None
        """
        url = self.url_for(relative_url)
        try:
            return self._client.request(
                method.value,
                url,
                params=dict(params) if params else None,
                headers=dict(headers) if headers else None,
                content=body,
            )
        except httpx.RequestError as exc:
            self._logger.warning("unable to reach %s %s: %s", method.value, url, exc)
            return None

    def get(self, relative_url: str, params=None, headers=None) -> Optional[httpx.Response]:
        return self.execute(Method.GET, relative_url, params, headers)

    def post(self, relative_url: str, params=None, headers=None, body=None) -> Optional[httpx.Response]:
        return self.execute(Method.POST, relative_url, params, headers, body)

    def put(self, relative_url: str, params=None, headers=None, body=None) -> Optional[httpx.Response]:
        return self.execute(Method.PUT, relative_url, params, headers, body)

    def delete(self, relative_url: str, params=None, headers=None) -> Optional[httpx.Response]:
        return self.execute(Method.DELETE, relative_url, params, headers)

    def close(self) -> None:
        """所有しているクライアントのみクローズする"""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "RestClient":
        return self

    def __exit__(self, *_exc: Any) -> None:
        self.close()
