"""
共通データモデル

セッション層全体で使用されるデータ構造を定義
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional


class Service(Enum):
    """呼び出し先のバックエンドサービス"""
    CORE = "core"
    APPLIANCE = "appliance"
    NOTIFICATION = "notification"
    A2A = "a2a"


class Method(Enum):
    """HTTPメソッド"""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


@dataclass
class FullResponse:
    """リソースAPIからの応答

    Attributes:
        status_code: HTTPステータスコード
        headers: 応答ヘッダー
        body: 応答本文（テキスト）
    """
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None


def is_successful(status_code: int) -> bool:
    """2xx 応答かどうか"""
    return 200 <= status_code < 300
