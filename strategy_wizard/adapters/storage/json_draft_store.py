from __future__ import annotations

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, ClassVar

from strategy_wizard.config.defaults import STORAGE_KEY
from strategy_wizard.domain.ports.draft_store import DraftStorePort


class JsonFileDraftStore(DraftStorePort):
    """
    JSONファイルを localStorage 相当として使う最小実装:
      - ファイル全体は {storage_key: document} のマップ
      - 書き込みは一時ファイル経由の置換（途中状態を残さない）
    """

    __responsibility__: ClassVar[str] = "ドラフトドキュメントのファイル永続化"

    def __init__(self, path: Path | str, *, storage_key: str = STORAGE_KEY) -> None:
        self.path = Path(path)
        self.storage_key = storage_key

    def _read_all(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        text = self.path.read_text(encoding="utf-8")
        if not text.strip():
            return {}
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError(f"draft file must hold a JSON object: {self.path}")
        return data

    def _write_all(self, data: Mapping[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp, self.path)

    def load(self) -> Mapping[str, Any] | None:
        doc = self._read_all().get(self.storage_key)
        if doc is None:
            return None
        if not isinstance(doc, dict):
            raise ValueError(f"draft '{self.storage_key}' must be a JSON object")
        return doc

    def save(self, document: Mapping[str, Any]) -> None:
        data = self._read_all()
        data[self.storage_key] = dict(document)
        self._write_all(data)

    def clear(self) -> None:
        data = self._read_all()
        if data.pop(self.storage_key, None) is not None:
            self._write_all(data)
