"""商品取得モジュール. キャッシュ参照と API 取得をまとめる.

処理フロー:
  1. インデックスを参照
  2. MISSING なら空レコードを返す (API は呼ばない)
  3. パスがあればキャッシュファイルを読み込んで返す
  4. 未登録なら API で取得し、見つかればファイル保存 + インデックス登録
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from concurrent.futures import Future
from pathlib import Path
from typing import Protocol

from rfcache.cache import MISSING, CacheIndex
from rfcache.client import RainforestClient
from rfcache.config import (
    CACHE_DIR,
    MARK_MISSING_ASIN,
    MARK_MISSING_GTIN,
    RAINFOREST_API_KEY,
    SCAN_ALL_PARTITIONS,
)
from rfcache.models import IdKind, ProductData
from rfcache.store import ProductStore, check_product_id

logger = logging.getLogger(__name__)

DEFAULT_MARK_MISSING = {
    IdKind.ASIN: MARK_MISSING_ASIN,
    IdKind.GTIN: MARK_MISSING_GTIN,
}


class Fetcher(Protocol):
    def fetch(self, id_kind: IdKind, product_id: str) -> ProductData: ...


class Retriever:
    """キャッシュ付きの商品取得.

    同じ未キャッシュ ID への同時リクエストは 1 回の API 呼び出しにまとめる。
    """

    def __init__(
        self,
        store: ProductStore,
        index: CacheIndex,
        fetcher: Fetcher,
        mark_missing: dict[IdKind, bool] | None = None,
    ):
        self.store = store
        self.index = index
        self.fetcher = fetcher
        self.mark_missing = dict(DEFAULT_MARK_MISSING)
        if mark_missing:
            self.mark_missing.update({IdKind(k): v for k, v in mark_missing.items()})
        self.stats: Counter[str] = Counter()
        self._stats_lock = threading.Lock()
        self._inflight: dict[str, Future] = {}
        self._inflight_lock = threading.Lock()

    def retrieve_by_asin(self, product_id: str) -> ProductData:
        return self.retrieve(product_id, IdKind.ASIN)

    def retrieve_by_gtin(self, product_id: str) -> ProductData:
        return self.retrieve(product_id, IdKind.GTIN)

    def retrieve(self, product_id: str, id_kind: IdKind) -> ProductData:
        """商品レコードを取得する.

        Args:
            product_id: ASIN または GTIN
            id_kind: IdKind.ASIN or IdKind.GTIN

        Returns:
            商品レコード。未発見なら空レコード (found == False)。

        Raises:
            TransportFailure, DecodeFailure, FilesystemFailure, InvalidProductId
        """
        check_product_id(product_id)
        id_kind = IdKind(id_kind)
        record = self._from_cache(product_id)
        if record is not None:
            return record
        return self._fetch_once(product_id, id_kind)

    def save_missing_manifest(self) -> Path:
        """MISSING の ID をマニフェストに書き出す. 終了時に呼ぶこと."""
        return self.store.save_missing(self.index.missing_ids())

    def invalidate(self, product_id: str) -> bool:
        """インデックスから ID を外す. 次回の取得で API を呼び直す.

        ディスク上の missing マニフェストは save_missing_manifest() まで変わらない。
        """
        removed = self.index.invalidate(product_id)
        if removed:
            logger.info("インデックス削除: %s", product_id)
        return removed

    def force_refetch(self, product_id: str, id_kind: IdKind) -> ProductData:
        self.invalidate(product_id)
        return self.retrieve(product_id, id_kind)

    def _count(self, name: str) -> None:
        with self._stats_lock:
            self.stats[name] += 1

    def _from_cache(self, product_id: str) -> ProductData | None:
        """キャッシュから引く. 未登録なら None."""
        location, ok = self.index.lookup(product_id)
        if not ok:
            return None

        logger.info("キャッシュ済み: %s", product_id)
        if location == MISSING:
            self._count("missing_hits")
            return ProductData.empty()

        self._count("hits")
        return self.store.load(location, product_id)

    def _fetch_once(self, product_id: str, id_kind: IdKind) -> ProductData:
        with self._inflight_lock:
            future = self._inflight.get(product_id)
            owner = future is None
            if owner:
                future = Future()
                self._inflight[product_id] = future

        if not owner:
            logger.info("取得待ち: %s", product_id)
            return future.result()

        try:
            # 待ち合わせに間に合わなかった呼び出しのために再確認する
            record = self._from_cache(product_id)
            if record is None:
                record = self._fetch_and_store(product_id, id_kind)
        except BaseException as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(record)
            return record
        finally:
            with self._inflight_lock:
                del self._inflight[product_id]

    def _fetch_and_store(self, product_id: str, id_kind: IdKind) -> ProductData:
        logger.info("取得中: %s=%s", id_kind.value, product_id)
        self._count("fetches")
        pd = self.fetcher.fetch(id_kind, product_id)

        if not pd.found:
            logger.info("未発見: %s", product_id)
            self._count("not_found")
            if self.mark_missing.get(id_kind, False):
                self.index.upsert(product_id, MISSING)
            return ProductData.empty()

        with self.index.write_lock() as index:
            path = self.store.save(product_id, pd)
            index.set_locked(product_id, path)
        return pd


def open_retriever(
    api_key: str = RAINFOREST_API_KEY,
    root: Path | str = CACHE_DIR,
    all_partitions: bool = SCAN_ALL_PARTITIONS,
) -> Retriever:
    """設定値からストア・インデックス・クライアントを組み立てる."""
    store = ProductStore(root)
    index = CacheIndex.build(store, all_partitions=all_partitions)
    return Retriever(store, index, RainforestClient(api_key))
