"""
イベント通知の受け口

プッシュ通知の購読そのものは外部に委ね、ここでは確立済みセッションから
購読に必要な情報（イベントURL・トークン・TLS検証方針）を受け渡す型を定義する。
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional, Protocol

from safeguard.auth.secret import SecretBuffer

if TYPE_CHECKING:
    from safeguard.connection import SessionConnection


class EventListener:
    """単一トークンに紐づくイベント購読の設定

    Attributes:
        event_url: ``https://<host>/service/event``
        verify: TLS証明書を検証するかどうか
    """

    def __init__(self, event_url: str, access_token: Optional[SecretBuffer], verify: bool = True) -> None:
        self.event_url = event_url
        self.verify = verify
        # 呼び出し元のトークンが消去されても影響を受けないよう複製する
        self._access_token = access_token.copy() if access_token is not None else None

    @property
    def access_token(self) -> Optional[SecretBuffer]:
        return self._access_token

    def dispose(self) -> None:
        if self._access_token is not None:
            self._access_token.wipe()
            self._access_token = None

    def __repr__(self) -> str:
        return f"EventListener(event_url={self.event_url}, verify={self.verify}, access_token=<redacted>)"


class PersistentEventListener:
    """トークン失効時に自力で再認証できるイベント購読

    複製された専用の接続を所有し、元の接続のログアウトや破棄の影響を受けない。
    """

    def __init__(self, connection: SessionConnection) -> None:
        self._connection = connection

    @property
    def connection(self) -> SessionConnection:
        return self._connection

    def current_listener(self) -> EventListener:
        """有効なトークンで購読設定を作る。失効していれば更新する。"""
        if self._connection.get_access_token_lifetime_remaining() <= 0:
            self._connection.refresh_access_token()
        return self._connection.get_event_listener()

    def dispose(self) -> None:
        self._connection.dispose()


class EventListenerFactory(Protocol):
    """イベント購読オブジェクトの生成口"""

    def create(self, event_url: str, access_token: Optional[SecretBuffer], verify: bool) -> Any: ...

    def create_persistent(self, connection: SessionConnection) -> Any: ...


class DefaultEventListenerFactory:
    """EventListener / PersistentEventListener を生成する既定実装"""

    def create(self, event_url: str, access_token: Optional[SecretBuffer], verify: bool) -> EventListener:
        return EventListener(event_url, access_token, verify)

    def create_persistent(self, connection: SessionConnection) -> PersistentEventListener:
        return PersistentEventListener(connection)
