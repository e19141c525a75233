"""
Safeguardセッション接続

1つの認証器と、サービスごとのHTTP送信クライアント（core / appliance / notification）を
束ね、アクセストークンを付与してリソースAPIを呼び出す。
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

import httpx

from safeguard.auth.base import Authenticator
from safeguard.errors import (
    ArgumentError,
    DisposedError,
    ErrorCode,
    SessionError,
    create_argument_error,
    create_disposed_error,
    create_session_error,
)
from safeguard.events import DefaultEventListenerFactory, EventListenerFactory
from safeguard.models import FullResponse, Method, Service, is_successful
from safeguard.transport import RestClient

LOGGER = logging.getLogger(__name__)

LOGOUT_PATH = "Token/Logout"

JSON_CONTENT_TYPE = "application/json"
CSV_CONTENT_TYPE = "text/csv"


def _find_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    """大文字小文字を無視してヘッダー名を探す"""
    lowered = name.lower()
    for key in headers:
        if key.lower() == lowered:
            return key
    return None


def _describe_keys(items: Mapping[str, Any]) -> str:
    """ログ用にキー名のみを並べる（値は出さない）"""
    if not items:
        return "None"
    return "{" + ", ".join(sorted(items)) + "}"


class SessionConnection:
    """認証済みセッションでリソースAPIを呼び出す接続

    認証器とサービスごとの送信クライアントはこの接続が所有し、
    ``dispose()`` でまとめて破棄する。
    """

    def __init__(
        self,
        authenticator: Authenticator,
        *,
        http_client: Optional[httpx.Client] = None,
        event_listener_factory: Optional[EventListenerFactory] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        """SessionConnectionを初期化

        Args:
            authenticator: 所有する認証器
            http_client: 注入する httpx.Client。未指定時は認証器と同じものを使う
            event_listener_factory: イベント購読オブジェクトの生成口
            logger: ログ出力先
        """
        self._authenticator = authenticator
        self._http_client = http_client if http_client is not None else authenticator.http_client
        self._event_listener_factory = event_listener_factory or DefaultEventListenerFactory()
        self._logger = logger or LOGGER
        self._disposed = False

        target = authenticator.target
        self._clients: Dict[Service, RestClient] = {
            service: RestClient(
                target.service_url(service),
                verify=target.verify,
                timeout=target.timeout,
                client=self._http_client,
                logger=self._logger,
            )
            for service in (Service.CORE, Service.APPLIANCE, Service.NOTIFICATION)
        }

    @property
    def authenticator(self) -> Authenticator:
        return self._authenticator

    @property
    def disposed(self) -> bool:
        return self._disposed

    def get_access_token_lifetime_remaining(self) -> int:
        """アクセストークンの残り有効時間（分）"""
        self._ensure_not_disposed()
        lifetime = self._authenticator.get_access_token_lifetime_remaining()
        if lifetime > 0:
            self._logger.debug("access token lifetime remaining (in minutes): %d", lifetime)
        else:
            self._logger.debug("access token invalid or server unavailable")
        return lifetime

    def refresh_access_token(self) -> None:
        """認証器に新しいアクセストークンを取得させる"""
        self._ensure_not_disposed()
        self._authenticator.refresh_access_token()
        self._logger.debug("successfully obtained a new access token")

    def invoke_method(
        self,
        service: Service,
        method: Method,
        relative_url: str,
        body: Optional[str] = None,
        parameters: Optional[Mapping[str, Any]] = None,
        additional_headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[str]:
        """リソースAPIを呼び出し、応答本文を返す"""
        self._ensure_not_disposed()
        return self.invoke_method_full(
            service, method, relative_url, body, parameters, additional_headers
        ).body

    def invoke_method_csv(
        self,
        service: Service,
        method: Method,
        relative_url: str,
        body: Optional[str] = None,
        parameters: Optional[Mapping[str, Any]] = None,
        additional_headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[str]:
        """CSV形式で応答を要求し、本文を返す

        呼び出し側が指定した Accept ヘッダーは text/csv で上書きする。
        """
        self._ensure_not_disposed()
        headers = dict(additional_headers or {})
        existing = _find_header(headers, "Accept")
        if existing is not None:
            del headers[existing]
        headers["Accept"] = CSV_CONTENT_TYPE
        return self.invoke_method_full(service, method, relative_url, body, parameters, headers).body

    def invoke_method_full(
        self,
        service: Service,
        method: Method,
        relative_url: str,
        body: Optional[str] = None,
        parameters: Optional[Mapping[str, Any]] = None,
        additional_headers: Optional[Mapping[str, str]] = None,
    ) -> FullResponse:
        """リソースAPIを呼び出し、ステータス・ヘッダー・本文を返す

        Args:
            service: 呼び出し先サービス（A2A は不可）
            method: HTTPメソッド
            relative_url: サービスのベースURLからの相対パス
            body: リクエスト本文（通常はJSON）
            parameters: クエリパラメータ
            additional_headers: 追加ヘッダー。既定ヘッダーより優先される

        Returns:
            FullResponse: 2xx 応答

        Raises:
            DisposedError: 破棄済みの場合
            ArgumentError: relative_url が空の場合
            SessionError: 未対応サービス・トークン欠如・接続不可・非2xx応答の場合
        """
        self._ensure_not_disposed()
        if not relative_url:
            raise ArgumentError(create_argument_error("parameter relative_url may not be None or empty"))

        client = self._client_for_service(service)
        if not self._authenticator.is_anonymous() and not self._authenticator.has_access_token():
            raise SessionError(
                create_session_error(
                    ErrorCode.SESSION_TOKEN_MISSING,
                    "missing access token, refresh required",
                    details={"authenticator": self._authenticator.name},
                )
            )

        headers = self._prepare_headers(additional_headers, body)
        self._logger.debug("invoking method: %s %s", method.value, client.url_for(relative_url))
        self._logger.debug("  query parameters: %s", _describe_keys(parameters or {}))
        self._logger.debug("  headers: %s", _describe_keys(headers))

        response = client.execute(method, relative_url, parameters, headers, body)
        if response is None:
            raise SessionError(
                create_session_error(
                    ErrorCode.SESSION_CONNECT_FAILED,
                    f"unable to connect to {client.base_url}",
                    details={"url": client.url_for(relative_url)},
                )
            )
        if not is_successful(response.status_code):
            raise SessionError(
                create_session_error(
                    ErrorCode.SESSION_API_ERROR,
                    f"error returned from Safeguard API, Error: {response.status_code} {response.text}",
                    details={
                        "url": client.url_for(relative_url),
                        "method": method.value,
                        "body": response.text,
                    },
                    status_code=response.status_code,
                )
            )

        full_response = FullResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            body=response.text,
        )
        self._logger.debug("response status code: %d", full_response.status_code)
        self._logger.debug("  response header count: %d", len(full_response.headers))
        self._logger.debug("  body size: %d", len(full_response.body or ""))
        return full_response

    def get_event_listener(self) -> Any:
        """現在のトークンでイベント購読オブジェクトを作る"""
        self._ensure_not_disposed()
        listener = self._event_listener_factory.create(
            self._authenticator.target.event_url,
            self._authenticator.get_access_token(),
            self._authenticator.target.verify,
        )
        self._logger.debug("event listener successfully created for Safeguard connection")
        return listener

    def get_persistent_event_listener(self) -> Any:
        """自力で再認証できるイベント購読オブジェクトを作る

        パスワード認証・証明書認証の接続でのみ利用できる。
        """
        self._ensure_not_disposed()
        if not self._authenticator.can_reauthenticate:
            raise SessionError(
                create_session_error(
                    ErrorCode.SESSION_UNSUPPORTED_OPERATION,
                    f"unable to create persistent event listener from {type(self._authenticator).__name__}",
                )
            )
        return self._event_listener_factory.create_persistent(self.clone())

    def log_out(self) -> None:
        """サーバー側のトークンを失効させ、手元のトークンを消去する

        ログアウト要求の失敗は記録のみで呼び出し側には伝えない。
        """
        self._ensure_not_disposed()
        if not self._authenticator.has_access_token():
            return
        try:
            self.invoke_method_full(Service.CORE, Method.POST, LOGOUT_PATH)
            self._logger.debug("successfully logged out")
        except Exception:
            self._logger.debug("exception occurred during logout", exc_info=True)
        finally:
            self._authenticator.clear_access_token()
            self._logger.debug("cleared access token")

    def clone(self) -> SessionConnection:
        """認証器を複製した独立の接続を返す"""
        self._ensure_not_disposed()
        return SessionConnection(
            self._authenticator.clone(),
            http_client=self._http_client,
            event_listener_factory=self._event_listener_factory,
            logger=self._logger,
        )

    def dispose(self) -> None:
        """認証器と送信クライアントを破棄する。何度呼んでもよい"""
        if self._disposed:
            return
        self._authenticator.dispose()
        for client in self._clients.values():
            client.close()
        self._disposed = True

    def _client_for_service(self, service: Service) -> RestClient:
        if service is Service.A2A:
            raise SessionError(
                create_session_error(
                    ErrorCode.SESSION_UNSUPPORTED_SERVICE,
                    "you must call the A2A service using the A2A specific method, Error: Unsupported operation",
                )
            )
        client = self._clients.get(service)
        if client is None:
            raise SessionError(
                create_session_error(
                    ErrorCode.SESSION_UNSUPPORTED_SERVICE,
                    "unknown or unsupported service specified",
                    details={"service": str(service)},
                )
            )
        return client

    def _prepare_headers(
        self,
        additional_headers: Optional[Mapping[str, str]],
        body: Optional[str],
    ) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if not self._authenticator.is_anonymous():
            token = self._authenticator.get_access_token()
            if token is not None:
                headers["Authorization"] = f"Bearer {token.reveal()}"

        for key, value in (additional_headers or {}).items():
            existing = _find_header(headers, key)
            if existing is not None:
                del headers[existing]
            headers[key] = value

        if _find_header(headers, "Accept") is None:
            headers["Accept"] = JSON_CONTENT_TYPE
        if body is not None and _find_header(headers, "Content-Type") is None:
            headers["Content-Type"] = JSON_CONTENT_TYPE
        return headers

    def _ensure_not_disposed(self) -> None:
        if self._disposed:
            raise DisposedError(create_disposed_error("SessionConnection"))

    def __enter__(self) -> SessionConnection:
        return self

    def __exit__(self, *_exc: Any) -> None:
        self.dispose()

    def __del__(self) -> None:
        authenticator = getattr(self, "_authenticator", None)
        if authenticator is not None and not getattr(self, "_disposed", True):
            authenticator.dispose()
