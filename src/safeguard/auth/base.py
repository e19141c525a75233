"""認証器の基盤。

各認証方式はフェデレーショントークンの取得方法だけが異なる。
取得したトークンをリソースAPIのアクセストークンへ交換し、保持・破棄する
処理はこの基底クラスが共通で担う。
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import httpx

from safeguard.auth.federation import FederationClient, parse_json_map
from safeguard.auth.secret import SecretBuffer
from safeguard.auth.token_store import TokenStore
from safeguard.errors import (
    DisposedError,
    ErrorCode,
    SessionError,
    create_disposed_error,
    create_session_error,
)
from safeguard.models import Service, is_successful
from safeguard.transport import CertSpec, RestClient

LOGGER = logging.getLogger(__name__)

DEFAULT_API_VERSION = 4

LOGIN_RESPONSE_PATH = "Token/LoginResponse"
LIFETIME_PATH = "LoginMessage"
LIFETIME_HEADER = "X-TokenLifetimeRemaining"

# 応答は成功したが残り時間ヘッダーが無い場合の値。「有効だが残り時間不明」を表す。
UNKNOWN_LIFETIME_REMAINING = 10


@dataclass(frozen=True)
class ConnectionTarget:
    """接続先アプライアンスの情報。

    Attributes:
        network_address: ホスト名またはIPアドレス。
        api_version: リソースAPIのバージョン。
        ignore_ssl: TLS証明書の検証を無効にするかどうか。
        timeout: HTTPタイムアウト秒数。
    """

    network_address: str
    api_version: int = DEFAULT_API_VERSION
    ignore_ssl: bool = False
    timeout: float = 30.0

    @property
    def verify(self) -> bool:
        return not self.ignore_ssl

    @property
    def rsts_url(self) -> str:
        return f"https://{self.network_address}/RSTS"

    @property
    def event_url(self) -> str:
        return f"https://{self.network_address}/service/event"

    def service_url(self, service: Service) -> str:
        return f"https://{self.network_address}/service/{service.value}/v{self.api_version}"


class Authenticator(ABC):
    """認証器の抽象基底クラス。

    状態はトークンの有無のみで、``refresh_access_token()`` で取得し
    ``clear_access_token()`` で破棄する。内部ロックは持たないため、
    同一インスタンスを複数スレッドから使う場合は呼び出し側で排他する。
    """

    name = "Authenticator"
    # 資格情報を使って透過的に再認証できる方式かどうか
    can_reauthenticate = False

    def __init__(
        self,
        target: ConnectionTarget,
        *,
        http_client: Optional[httpx.Client] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        """Authenticatorを初期化する。

        Args:
            target: 接続先。
            http_client: 注入する httpx.Client（テストやプロキシ設定用）。
            logger: ログ出力先。
        """

        self._target = target
        self._http_client = http_client
        self._logger = logger or LOGGER
        self._disposed = False
        self._tokens = TokenStore(owner=type(self).__name__, logger=self._logger)
        self._rsts = self._build_client(target.rsts_url, cert=self._client_cert())
        self._core = self._build_client(target.service_url(Service.CORE))
        self._federation = FederationClient(self._rsts, logger=self._logger)

    @property
    def target(self) -> ConnectionTarget:
        return self._target

    @property
    def network_address(self) -> str:
        return self._target.network_address

    @property
    def api_version(self) -> int:
        return self._target.api_version

    @property
    def ignore_ssl(self) -> bool:
        return self._target.ignore_ssl

    @property
    def http_client(self) -> Optional[httpx.Client]:
        return self._http_client

    @property
    def disposed(self) -> bool:
        return self._disposed

    def is_anonymous(self) -> bool:
        return False

    def has_access_token(self) -> bool:
        return self._tokens.has()

    def get_access_token(self) -> Optional[SecretBuffer]:
        """保持中のアクセストークンを返す。

        Raises:
            DisposedError: 破棄済みの場合。
        """

        self._ensure_not_disposed()
        return self._tokens.get()

    def clear_access_token(self) -> None:
        self._tokens.clear()

    def refresh_access_token(self) -> None:
        """フェデレーショントークンを取得し、リソースAPIのトークンに交換する。

        交換に失敗した場合、保持中のトークンは変更しない。

        Raises:
            DisposedError: 破棄済みの場合。
            FederationError: STSでの認証に失敗した場合。
            SessionError: リソースAPIでの交換に失敗した場合。
        """

        self._ensure_not_disposed()
        with self._get_federation_token() as federation_token:
            user_token = self._exchange_federation_token(federation_token)
        with user_token:
            self._tokens.set(user_token)
        self._logger.debug("access token obtained: authenticator=%s", self.name)

    def get_access_token_lifetime_remaining(self) -> int:
        """アクセストークンの残り有効時間（分）を返す。

        トークンが無い場合は通信せず 0 を返す。サーバーがトークンを拒否した場合も 0。

        Raises:
            DisposedError: 破棄済みの場合。
            SessionError: サーバーに接続できない場合。
        """

        self._ensure_not_disposed()
        token = self._tokens.get()
        if token is None:
            return 0

        headers = {
            "Authorization": f"Bearer {token.reveal()}",
            LIFETIME_HEADER: "",
        }
        response = self._core.get(LIFETIME_PATH, headers=headers)
        if response is None:
            raise SessionError(
                create_session_error(
                    ErrorCode.SESSION_CONNECT_FAILED,
                    f"unable to connect to {self._core.base_url}",
                    details={"url": self._core.url_for(LIFETIME_PATH)},
                )
            )
        if not is_successful(response.status_code):
            return 0

        raw = response.headers.get(LIFETIME_HEADER)
        if raw is None:
            return UNKNOWN_LIFETIME_REMAINING
        try:
            return int(raw.strip())
        except ValueError:
            self._logger.debug("malformed %s header value ignored", LIFETIME_HEADER)
            return UNKNOWN_LIFETIME_REMAINING

    @abstractmethod
    def _get_federation_token(self) -> SecretBuffer:
        """方式固有の手順でフェデレーショントークンを取得する。"""

    @abstractmethod
    def clone(self) -> Authenticator:
        """同じ接続先・資格情報を持ち、状態を共有しない認証器を返す。"""

    def dispose(self) -> None:
        """トークンを消去し、以後の操作を禁止する。何度呼んでもよい。"""

        if self._disposed:
            return
        self._tokens.dispose()
        self._rsts.close()
        self._core.close()
        self._disposed = True

    def _exchange_federation_token(self, federation_token: SecretBuffer) -> SecretBuffer:
        body = json.dumps({"StsAccessToken": federation_token.reveal()})
        response = self._core.post(
            LOGIN_RESPONSE_PATH,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            body=body,
        )
        if response is None:
            raise SessionError(
                create_session_error(
                    ErrorCode.SESSION_CONNECT_FAILED,
                    f"unable to connect to {self._core.base_url}",
                    details={"url": self._core.url_for(LOGIN_RESPONSE_PATH)},
                )
            )
        if not is_successful(response.status_code):
            raise SessionError(
                create_session_error(
                    ErrorCode.SESSION_API_ERROR,
                    f"error exchanging RSTS token from {self.name} authenticator for API access token, "
                    f"Error: {response.status_code} {response.text}",
                    details={"body": response.text},
                    status_code=response.status_code,
                )
            )

        user_token = parse_json_map(response.text).get("UserToken")
        if not user_token:
            raise SessionError(
                create_session_error(
                    ErrorCode.SESSION_TOKEN_MISSING,
                    "UserToken missing from token exchange response",
                    status_code=response.status_code,
                )
            )
        return SecretBuffer(str(user_token))

    def _copy_token_into(self, other: Authenticator) -> Authenticator:
        fresh = other._tokens
        other._tokens = self._tokens.copy(owner=type(other).__name__)
        fresh.dispose()
        return other

    def _build_client(self, base_url: str, cert: Optional[CertSpec] = None) -> RestClient:
        return RestClient(
            base_url,
            verify=self._target.verify,
            timeout=self._target.timeout,
            cert=cert,
            client=self._http_client,
            logger=self._logger,
        )

    def _client_cert(self) -> Optional[CertSpec]:
        return None

    def _ensure_not_disposed(self) -> None:
        if self._disposed:
            raise DisposedError(create_disposed_error(type(self).__name__))

    def __enter__(self) -> Authenticator:
        return self

    def __exit__(self, *_exc: object) -> None:
        self.dispose()

    def __del__(self) -> None:
        tokens = getattr(self, "_tokens", None)
        if tokens is not None:
            tokens.clear()
