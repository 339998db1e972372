from __future__ import annotations

import json

import pytest

from strategy_wizard.adapters.storage.json_draft_store import JsonFileDraftStore


def test_missing_or_empty_file_loads_nothing(tmp_path):
    store = JsonFileDraftStore(tmp_path / "draft.json")
    assert store.load() is None
    store.path.write_text("  ", encoding="utf-8")
    assert store.load() is None


def test_save_keeps_other_storage_keys(tmp_path):
    path = tmp_path / "nested" / "draft.json"
    path.parent.mkdir()
    path.write_text(json.dumps({"otherTool": {"x": 1}}), encoding="utf-8")
    store = JsonFileDraftStore(path)

    store.save({"entryV2": {"notes": "日本語もそのまま"}, "symbols": ["NIFTY"]})

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["otherTool"] == {"x": 1}
    assert store.load() == {"entryV2": {"notes": "日本語もそのまま"}, "symbols": ["NIFTY"]}
    assert not path.with_suffix(".json.tmp").exists()

    store.clear()
    assert store.load() is None
    assert json.loads(path.read_text(encoding="utf-8")) == {"otherTool": {"x": 1}}


def test_custom_storage_key(tmp_path):
    a = JsonFileDraftStore(tmp_path / "d.json", storage_key="a")
    b = JsonFileDraftStore(tmp_path / "d.json", storage_key="b")
    a.save({"v": 1})
    assert b.load() is None
    assert a.load() == {"v": 1}


@pytest.mark.parametrize(
    "content",
    ["[1, 2]", '{"strategyDraft": [1]}', "{not json"],
)
def test_malformed_content_raises_value_error(tmp_path, content):
    store = JsonFileDraftStore(tmp_path / "draft.json")
    store.path.write_text(content, encoding="utf-8")
    with pytest.raises(ValueError):
        store.load()
