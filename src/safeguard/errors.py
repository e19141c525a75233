"""
エラー定義

Safeguardセッション層で使用されるエラーコードと例外クラス
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """エラーコード

    カテゴリ別にエラーコードを定義:
    - DISPOSED_xxx: 破棄済みオブジェクトへの操作
    - ARGUMENT_xxx: 呼び出し側の引数エラー
    - FEDERATION_xxx: STS (RSTS) 側のエラー
    - SESSION_xxx: リソースAPI側のエラー
    """
    # 破棄済みエラー
    OBJECT_DISPOSED = "DISPOSED_001"

    # 引数エラー
    ARGUMENT_INVALID = "ARGUMENT_001"

    # フェデレーションエラー
    FEDERATION_CONNECT_FAILED = "FEDERATION_001"
    FEDERATION_SCOPE_NOT_FOUND = "FEDERATION_002"
    FEDERATION_TOKEN_FAILED = "FEDERATION_003"

    # セッションエラー
    SESSION_CONNECT_FAILED = "SESSION_001"
    SESSION_API_ERROR = "SESSION_002"
    SESSION_TOKEN_MISSING = "SESSION_003"
    SESSION_UNSUPPORTED_SERVICE = "SESSION_004"
    SESSION_UNSUPPORTED_OPERATION = "SESSION_005"


@dataclass
class SafeguardError:
    """Safeguardエラー情報

    Attributes:
        code: エラーコード文字列
        message: エラーメッセージ
        details: 追加のエラー詳細情報（秘密情報は含めない）
        status_code: HTTPステータスコード（応答があった場合）
        log_level: 推奨ログレベル
    """
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None
    status_code: Optional[int] = None
    log_level: int = logging.ERROR


class SafeguardException(Exception):
    """Safeguard例外の基底クラス

    SafeguardErrorをラップする
    """

    def __init__(self, error: SafeguardError):
        """SafeguardExceptionを初期化

        Args:
            error: SafeguardErrorインスタンス
        """
        self.error = error
        self.log_level = error.log_level
        super().__init__(f"[{error.code}] {error.message}")

    @property
    def status_code(self) -> Optional[int]:
        return self.error.status_code


class DisposedError(SafeguardException):
    """破棄済みのセッション・認証器に対する操作"""


class ArgumentError(SafeguardException):
    """呼び出し側から渡された引数が不正"""


class FederationError(SafeguardException):
    """STS (RSTS) での認証・スコープ解決の失敗"""


class SessionError(SafeguardException):
    """リソースAPI側の失敗（接続不可・非2xx・トークン欠如・未対応サービス）"""


def create_disposed_error(object_name: str) -> SafeguardError:
    """破棄済みエラーを作成

    Args:
        object_name: 破棄済みのオブジェクト名

    Returns:
        SafeguardError: 破棄済みエラー
    """
    return SafeguardError(
        code=ErrorCode.OBJECT_DISPOSED.value,
        message=f"{object_name} has been disposed",
        details={"object": object_name},
    )


def create_argument_error(message: str, details: Optional[Dict[str, Any]] = None) -> SafeguardError:
    """引数エラーを作成"""
    return SafeguardError(
        code=ErrorCode.ARGUMENT_INVALID.value,
        message=message,
        details=details,
    )


def create_federation_error(
    code: ErrorCode,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    status_code: Optional[int] = None,
) -> SafeguardError:
    """フェデレーションエラーを作成

    Args:
        code: エラーコード
        message: エラーメッセージ
        details: 追加詳細
        status_code: STSが返したHTTPステータス

    Returns:
        SafeguardError: フェデレーションエラー
    """
    return SafeguardError(
        code=code.value,
        message=message,
        details=details,
        status_code=status_code,
        log_level=logging.WARNING,
    )


def create_session_error(
    code: ErrorCode,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    status_code: Optional[int] = None,
) -> SafeguardError:
    """セッションエラーを作成

    Args:
        code: エラーコード
        message: エラーメッセージ
        details: 追加詳細
        status_code: リソースAPIが返したHTTPステータス

    Returns:
        SafeguardError: セッションエラー
    """
    return SafeguardError(
        code=code.value,
        message=message,
        details=details,
        status_code=status_code,
    )
