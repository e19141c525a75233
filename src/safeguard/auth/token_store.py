"""アクセストークンの保持と消去を行うストア。"""

from __future__ import annotations

import logging
from typing import Optional

from safeguard.auth.secret import SecretBuffer, SecretLike
from safeguard.errors import DisposedError, create_disposed_error

LOGGER = logging.getLogger(__name__)


class TokenStore:
    """現在のベアラートークンを1つだけ保持する。

    トークンはメモリ上にのみ存在し、永続化されない。置き換え・消去の際は
    古いバッファを必ずゼロ埋めしてから手放す。
    """

    def __init__(self, owner: str = "TokenStore", logger: Optional[logging.Logger] = None) -> None:
        """TokenStoreを初期化する。

        Args:
            owner: 破棄済みエラーに表示する所有者名。
            logger: ライフサイクルイベントの出力先。
        """

        self._owner = owner
        self._logger = logger or LOGGER
        self._token: Optional[SecretBuffer] = None
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def set(self, token: Optional[SecretLike]) -> None:
        """トークンを置き換える。空のトークンは「なし」として扱う。"""

        self._ensure_not_disposed()
        previous = self._token
        self._token = SecretBuffer(token) if token else None
        if previous is not None:
            previous.wipe()
        if self._token is not None:
            self._logger.debug("access token stored: owner=%s", self._owner)

    def get(self) -> Optional[SecretBuffer]:
        """保持中のトークンを返す。未取得なら None。

        Raises:
            DisposedError: 破棄済みの場合。
        """

        self._ensure_not_disposed()
        return self._token

    def has(self) -> bool:
        return self._token is not None

    def clear(self) -> None:
        """トークンをゼロ埋めして破棄する。"""

        token = self._token
        self._token = None
        if token is not None:
            token.wipe()
            self._logger.debug("access token cleared: owner=%s", self._owner)

    def dispose(self) -> None:
        """トークンを消去し、以後の利用を禁止する。"""

        self.clear()
        if not self._disposed:
            self._disposed = True
            self._logger.debug("token store disposed: owner=%s", self._owner)

    def copy(self, owner: Optional[str] = None) -> TokenStore:
        """トークンを複製した独立のストアを返す。"""

        self._ensure_not_disposed()
        clone = TokenStore(owner or self._owner, logger=self._logger)
        if self._token is not None:
            clone._token = self._token.copy()
        return clone

    def _ensure_not_disposed(self) -> None:
        if self._disposed:
            raise DisposedError(create_disposed_error(self._owner))

    def __del__(self) -> None:
        token = getattr(self, "_token", None)
        if token is not None:
            token.wipe()
