"""テスト共通のフィクスチャ."""

from __future__ import annotations

import json
import threading
from datetime import datetime
from pathlib import Path

import pytest

from rfcache.cache import CacheIndex
from rfcache.models import IdKind, ProductData
from rfcache.store import ProductStore

FIXTURES_DIR = Path(__file__).parent / "fixtures"

# 2026-10 パーティションに固定する
FIXED_NOW = datetime(2026, 10, 18, 12, 0, 0)


def load_fixture(name: str) -> dict:
    return json.loads((FIXTURES_DIR / name).read_text(encoding="utf-8"))


class FakeFetcher:
    """API の代わりに登録済みレスポンスを返す. 呼び出しを記録する."""

    def __init__(self, responses: dict[str, dict] | None = None):
        self.responses = responses or {}
        self.calls: list[tuple[IdKind, str]] = []
        self.error: Exception | None = None
        self.gate: threading.Event | None = None
        self._lock = threading.Lock()

    def fetch(self, id_kind: IdKind, product_id: str) -> ProductData:
        with self._lock:
            self.calls.append((id_kind, product_id))
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.error is not None:
            raise self.error
        return ProductData.model_validate(self.responses.get(product_id, {"product": {"asin": ""}}))


@pytest.fixture
def store(tmp_path):
    return ProductStore(tmp_path / "amazon", clock=lambda: FIXED_NOW)


@pytest.fixture
def index():
    return CacheIndex()


@pytest.fixture
def fetcher():
    return FakeFetcher({
        "B000TEST": {"product": {"asin": "B000TEST", "title": "Example Book"}},
        "0316769487": load_fixture("product_0316769487.json"),
    })
