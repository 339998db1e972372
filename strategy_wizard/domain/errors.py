from __future__ import annotations


class IndicatorApiError(Exception):
    """インジケータAPI呼び出し失敗のラップ例外。"""

    __responsibility__ = "外部例外（httpx等）のドメイン例外への変換"

    offline: bool = False

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class ApiTimeoutError(IndicatorApiError):
    """ハードタイムアウト超過。オフライン扱い。"""

    offline = True

    def __init__(self, message: str = "Request timeout") -> None:
        super().__init__(message, status=408)


class ApiConnectionError(IndicatorApiError):
    """到達不能（DNS/接続拒否など）。オフライン扱い。"""

    offline = True


class ApiStatusError(IndicatorApiError):
    """2xx/304 以外のHTTPステータス。"""


class DefinitionUnavailableError(LookupError):
    """リモート・キャッシュ・フォールバックのいずれにも定義が無い。"""

    def __init__(self, indicator_id: str) -> None:
        super().__init__(f"Indicator definition not available offline: {indicator_id}")
        self.indicator_id = indicator_id
