"""設定管理 - 接続設定の読み込み"""

from safeguard.config.settings import (
    SafeguardSettings,
    find_default_config,
    load_settings,
    mask_secret,
)

__all__ = [
    "SafeguardSettings",
    "find_default_config",
    "load_settings",
    "mask_secret",
]
