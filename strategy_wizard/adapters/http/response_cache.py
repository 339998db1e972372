"""
条件付き再検証用のレスポンスキャッシュ（トランスポート非依存）。

key -> CacheEntry(etag, payload, raw, fetched_at) の明示的なマップ。
エントリは常に丸ごと置き換え、部分更新はしない。
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

DEFAULT_TTL_SEC = 600.0


@dataclass(frozen=True, slots=True)
class CacheEntry:
    etag: str | None
    payload: Any  # パース済みJSON（304時はこれをそのまま返す）
    raw: bytes
    fetched_at: float


def is_fresh(entry: CacheEntry, now: float, ttl_sec: float = DEFAULT_TTL_SEC) -> bool:
    """純関数: 取得からの経過が ttl 未満なら新鮮"""
    return (now - entry.fetched_at) < ttl_sec


class ResponseCache:
    def __init__(
        self,
        *,
        ttl_sec: float = DEFAULT_TTL_SEC,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_sec = ttl_sec
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def now(self) -> float:
        return self._clock()

    def get(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    def get_fresh(self, key: str) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is not None and is_fresh(entry, self.now(), self.ttl_sec):
            return entry
        return None

    def put(self, key: str, *, etag: str | None, payload: Any, raw: bytes) -> CacheEntry:
        entry = CacheEntry(etag=etag, payload=payload, raw=raw, fetched_at=self.now())
        self._entries[key] = entry
        return entry

    def touch(self, key: str) -> CacheEntry | None:
        """304 応答時: 本体はそのまま、取得時刻だけ延長"""
        entry = self._entries.get(key)
        if entry is None:
            return None
        renewed = CacheEntry(
            etag=entry.etag, payload=entry.payload, raw=entry.raw, fetched_at=self.now()
        )
        self._entries[key] = renewed
        return renewed

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
