"""RSTS (STS) とのフェデレーションプロトコル。

1. ログイン開始要求で識別プロバイダ一覧を取得し、設定名に一致するスコープを決める。
2. OAuth 風のトークン要求でフェデレーショントークンを受け取る。
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Mapping, Optional

from safeguard.auth.secret import SecretBuffer
from safeguard.errors import ErrorCode, FederationError, create_federation_error
from safeguard.models import is_successful
from safeguard.transport import RestClient

LOGGER = logging.getLogger(__name__)

SCOPE_PREFIX = "rsts:sts:primaryproviderid:"
LOCAL_PROVIDER = "local"
LOCAL_SCOPE = f"{SCOPE_PREFIX}{LOCAL_PROVIDER}"
CERTIFICATE_SCOPE = f"{SCOPE_PREFIX}certificate"

LOGIN_CONTROLLER_PATH = "UserLogin/LoginController"
TOKEN_PATH = "oauth2/token"

LOGIN_REQUEST_PARAMS = {
    "response_type": "token",
    "redirect_uri": "urn:InstalledApplication",
    "loginRequestStep": "1",
}
LOGIN_REQUEST_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}
LOGIN_REQUEST_BODY = "RelayState="


def format_scope(scope_id: str) -> str:
    return f"{SCOPE_PREFIX}{scope_id}"


def match_provider_scope(provider: str, known_scopes: Iterable[str]) -> Optional[str]:
    """プロバイダ名に一致するスコープIDを選ぶ。

    まず大文字小文字を無視した完全一致を探し、見つからなければ部分一致を探す。

    Args:
        provider: 設定されたプロバイダ名。
        known_scopes: RSTSが返したスコープIDの一覧。

    Returns:
        一致したスコープID。どちらでも見つからなければ None。
    """

    scopes = [scope for scope in known_scopes if scope]
    needle = provider.casefold()
    for scope in scopes:
        if scope.casefold() == needle:
            return scope
    for scope in scopes:
        if needle in scope.casefold():
            return scope
    return None


def parse_json_map(reply: str) -> dict[str, Any]:
    """応答本文をキー・値のマップとして解釈する。解釈できなければ空。"""

    try:
        payload = json.loads(reply) if reply else {}
    except json.JSONDecodeError:
        return {}
    if not isinstance(payload, dict):
        return {}
    return payload


class FederationClient:
    """RSTSに対するスコープ解決とトークン要求を行う。"""

    def __init__(self, rsts: RestClient, logger: Optional[logging.Logger] = None) -> None:
        """FederationClientを初期化する。

        Args:
            rsts: ``https://<host>/RSTS`` 向けの送信クライアント。
            logger: ログ出力先。
        """

        self._rsts = rsts
        self._logger = logger or LOGGER

    @property
    def base_url(self) -> str:
        return self._rsts.base_url

    def resolve_provider_scope(self, provider: str) -> str:
        """プロバイダ名をRSTSのスコープ文字列に解決する。

        Returns:
            ``rsts:sts:primaryproviderid:<scope>`` 形式のスコープ。

        Raises:
            FederationError: スコープ一覧が取得できない、または一致しない場合。
        """

        if not provider or provider.casefold() == LOCAL_PROVIDER:
            return LOCAL_SCOPE

        known_scopes = self.fetch_provider_scopes()
        scope = match_provider_scope(provider, known_scopes)
        if scope is None:
            message = f"unable to find scope matching '{provider}' in [{','.join(known_scopes)}]"
            self._logger.warning("federation scope resolution failed: %s", message)
            raise FederationError(
                create_federation_error(
                    ErrorCode.FEDERATION_SCOPE_NOT_FOUND,
                    message,
                    details={"provider": provider, "known_scopes": list(known_scopes)},
                )
            )

        self._logger.debug("resolved identity provider '%s' to scope '%s'", provider, scope)
        return format_scope(scope)

    def fetch_provider_scopes(self) -> list[str]:
        """ログイン開始要求を送り、既知のスコープID一覧を返す。"""

        response = self._rsts.post(
            LOGIN_CONTROLLER_PATH,
            params=LOGIN_REQUEST_PARAMS,
            headers=LOGIN_REQUEST_HEADERS,
            body=LOGIN_REQUEST_BODY,
        )
        if response is None or not is_successful(response.status_code):
            # 古いRSTSはPOSTを受け付けないためGETで再試行する
            self._logger.debug("login controller POST failed, retrying with GET")
            response = self._rsts.get(
                LOGIN_CONTROLLER_PATH,
                params=LOGIN_REQUEST_PARAMS,
                headers=LOGIN_REQUEST_HEADERS,
            )

        if response is None:
            raise self._failure(
                ErrorCode.FEDERATION_CONNECT_FAILED,
                "unable to find identity provider scopes",
                {"url": self._rsts.url_for(LOGIN_CONTROLLER_PATH)},
            )
        if not is_successful(response.status_code):
            raise self._failure(
                ErrorCode.FEDERATION_CONNECT_FAILED,
                f"unable to find identity provider scopes, Error: {response.status_code} {response.text}",
                {"body": response.text},
                status_code=response.status_code,
            )

        providers = parse_json_map(response.text).get("Providers")
        if not isinstance(providers, list):
            return []
        scopes: list[str] = []
        for entry in providers:
            if isinstance(entry, Mapping) and entry.get("Id") is not None:
                scopes.append(str(entry["Id"]))
        return scopes

    def password_grant(self, username: str, password: SecretBuffer, scope: str) -> SecretBuffer:
        """パスワードグラントでフェデレーショントークンを取得する。"""

        body = json.dumps(
            {
                "grant_type": "password",
                "username": username,
                "password": password.reveal(),
                "scope": scope,
            }
        )
        return self._request_token(body, scope, "password")

    def client_credentials_grant(self, scope: str = CERTIFICATE_SCOPE) -> SecretBuffer:
        """クライアント証明書によるグラントでフェデレーショントークンを取得する。"""

        body = json.dumps({"grant_type": "client_credentials", "scope": scope})
        return self._request_token(body, scope, "client_credentials")

    def _request_token(self, body: str, scope: str, grant_type: str) -> SecretBuffer:
        response = self._rsts.post(
            TOKEN_PATH,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            body=body,
        )
        if response is None:
            raise self._failure(
                ErrorCode.FEDERATION_CONNECT_FAILED,
                f"unable to connect to RSTS service {self._rsts.base_url}",
                {"url": self._rsts.url_for(TOKEN_PATH)},
            )
        if not is_successful(response.status_code):
            raise self._failure(
                ErrorCode.FEDERATION_TOKEN_FAILED,
                f"error using {grant_type} grant_type with scope {scope}, Error: "
                f"{response.status_code} {response.text}",
                {"scope": scope, "body": response.text},
                status_code=response.status_code,
            )

        access_token = parse_json_map(response.text).get("access_token")
        if not access_token:
            raise self._failure(
                ErrorCode.FEDERATION_TOKEN_FAILED,
                f"error retrieving the access token for scope: {scope}",
                {"scope": scope},
                status_code=response.status_code,
            )
        self._logger.debug("federation token obtained: grant_type=%s scope=%s", grant_type, scope)
        return SecretBuffer(str(access_token))

    def _failure(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any],
        status_code: Optional[int] = None,
    ) -> FederationError:
        self._logger.warning("federation failure: %s", message)
        return FederationError(create_federation_error(code, message, details=details, status_code=status_code))
