"""消去可能な秘密情報バッファ。

トークンやパスワードを不変の ``str`` として保持せず、
ゼロ埋め可能な ``bytearray`` に閉じ込めるための型を提供する。
"""

from __future__ import annotations

import hmac
from typing import Union

SecretLike = Union[str, bytes, bytearray, "SecretBuffer"]


class SecretBuffer:
    """ゼロ埋めで破棄できる秘密情報。

    ``wipe()`` が明示的な解放手段であり、``__del__`` は呼び出し忘れに対する
    ベストエフォートの後始末にすぎない。
    """

    __slots__ = ("_data",)

    def __init__(self, value: SecretLike) -> None:
        if isinstance(value, SecretBuffer):
            self._data = bytearray(value._data)
        elif isinstance(value, str):
            self._data = bytearray(value.encode("utf-8"))
        elif isinstance(value, (bytes, bytearray)):
            self._data = bytearray(value)
        else:
            raise TypeError(f"unsupported secret type: {type(value).__name__}")

    def reveal(self) -> str:
        """平文を返す。ヘッダーやリクエスト本文の組み立て直前にのみ使う。"""
        return self._data.decode("utf-8")

    def copy(self) -> SecretBuffer:
        """独立したバッファを持つ複製を返す。"""
        return SecretBuffer(self)

    def wipe(self) -> None:
        """バッファをゼロ埋めし、空にする。何度呼んでもよい。"""
        data = self._data
        for index in range(len(data)):
            data[index] = 0
        self._data = bytearray()

    @property
    def wiped(self) -> bool:
        return not self._data

    def __len__(self) -> int:
        return len(self._data)

    def __bool__(self) -> bool:
        return bool(self._data)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SecretBuffer):
            return hmac.compare_digest(self._data, other._data)
        if isinstance(other, str):
            return hmac.compare_digest(self._data, other.encode("utf-8"))
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return "SecretBuffer(***)"

    __str__ = __repr__

    def __reduce__(self):
        raise TypeError("SecretBuffer cannot be serialized")

    def __enter__(self) -> SecretBuffer:
        return self

    def __exit__(self, *_exc: object) -> None:
        self.wipe()

    def __del__(self) -> None:
        try:
            self.wipe()
        except AttributeError:
            # __init__ が途中で失敗した場合
            pass
