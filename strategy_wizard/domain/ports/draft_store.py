from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol


class DraftStorePort(Protocol):
    """固定ストレージキー配下の単一JSONドキュメントを読み書きする永続化I/F"""

    __responsibility__ = "ボット設定ドラフト（不透明なJSON）の保存境界"

    def load(self) -> Mapping[str, Any] | None: ...

    def save(self, document: Mapping[str, Any]) -> None: ...

    def clear(self) -> None: ...
