"""Pydantic V2 ベースの接続設定モデル"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

SECRET_FIELDS = ("password", "access_token")


def mask_secret(value: str) -> str:
    """パスワードやトークンをマスクしてログ出力を避ける"""
    if not value:
        return "***"
    if len(value) <= 4:
        return "*" * len(value)
    return f"***{value[-4:]}"


class SafeguardSettings(BaseSettings):
    """Safeguard 接続設定"""

    model_config = SettingsConfigDict(
        env_prefix="SAFEGUARD_",
        env_file=".env",
        extra="forbid",
    )

    # 接続先
    network_address: str = Field(..., min_length=1, description="アプライアンスのホスト名またはIP")
    api_version: int = Field(default=4, ge=2)
    ignore_ssl: bool = False
    timeout: float = Field(default=30.0, gt=0)

    # パスワード認証
    provider: str = Field(default="local")
    username: Optional[str] = None
    password: Optional[SecretStr] = None

    # 証明書認証
    certificate_file: Optional[Path] = None
    key_file: Optional[Path] = None

    # 発行済みトークン
    access_token: Optional[SecretStr] = None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ) -> Tuple[Any, ...]:
        """設定ソースの優先順位をカスタマイズ（env > dotenv > init）"""
        return (
            env_settings,
            dotenv_settings,
            init_settings,
            file_secret_settings,
        )

    @field_validator("network_address")
    @classmethod
    def strip_scheme(cls, value: str) -> str:
        """URL形式で渡された場合はホスト部分だけを残す"""
        for prefix in ("https://", "http://"):
            if value.lower().startswith(prefix):
                value = value[len(prefix):]
        return value.rstrip("/")

    def dump_masked(self) -> dict:
        """機微情報をマスクした設定を返却する"""
        data = self.model_dump()
        for key in SECRET_FIELDS:
            secret = getattr(self, key)
            if secret is not None:
                data[key] = mask_secret(secret.get_secret_value())
        return data


def find_default_config() -> Optional[Path]:
    """既定の設定ファイルを探す"""
    candidates = [
        Path.cwd() / "safeguard.yaml",
        Path.home() / ".safeguard.yaml",
        Path.home() / ".config" / "safeguard" / "config.yaml",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def _load_yaml(path: Optional[Path]) -> Dict[str, Any]:
    """YAML設定ファイルを読み込む。壊れている場合は記録して無視する"""
    if path is None or not path.exists():
        return {}

    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError) as e:
        logger.error(
            "Failed to load config file: path=%s error=%s",
            path,
            e,
            exc_info=True,
        )
        return {}

    if not isinstance(data, dict):
        logger.error(
            "Invalid config structure: expected mapping but got %s at %s",
            type(data).__name__,
            path,
        )
        return {}

    # 旧形式の "safeguard:" セクションにも対応する
    section = data.get("safeguard")
    if isinstance(section, dict):
        data = section
    return {str(key): value for key, value in data.items()}


def load_settings(config_path: Optional[Path] = None, **overrides: Any) -> SafeguardSettings:
    """設定ファイル・環境変数から接続設定を読み込む

    優先順位は 環境変数 > .env > 引数 > 設定ファイル。

    Args:
        config_path: YAML設定ファイル。未指定時は既定の場所を探す
        **overrides: 追加で指定する設定値

    Returns:
        SafeguardSettings: 読み込んだ設定
    """
    resolved = config_path or find_default_config()
    data = _load_yaml(resolved)
    data.update(overrides)
    return SafeguardSettings(**data)
