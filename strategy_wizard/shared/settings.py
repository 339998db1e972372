from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class WizardEnvSettings(BaseSettings):
    """環境変数からAPI接続・デバウンス・ドラフト保存先を取得（.env対応）"""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="", extra="ignore")

    API__BASE_URL: str = Field(default="http://localhost:8000")
    API__READ_TIMEOUT_SEC: float = Field(default=5.0, gt=0)
    API__HEALTH_TIMEOUT_SEC: float = Field(default=2.0, gt=0)
    API__CACHE_TTL_SEC: float = Field(default=600.0, gt=0)  # 条件付き再検証を送る鮮度上限

    ADVISORY__DEBOUNCE_SEC: float = Field(default=0.3, ge=0)
    DRAFT__PATH: str = Field(default="strategy_draft.json")
