"""キャッシュインデックス: ID からキャッシュファイルへの対応表.

起動時に ProductStore の内容から構築し、以降はメモリ上で参照・更新する。
値はファイルパスか MISSING (存在しないと分かっている ID) のどちらか。
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from rfcache.store import ProductStore

logger = logging.getLogger(__name__)

MISSING = "missing"


class ReadWriteLock:
    """読み込みは並行、書き込みは排他のロック. 待機中の書き込みを優先する."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class CacheIndex:
    """ID → (パス | MISSING) の対応表. 1 つのロックで全体を保護する."""

    def __init__(self):
        self._entries: dict[str, Path | str] = {}
        self._lock = ReadWriteLock()

    @classmethod
    def build(cls, store: ProductStore, all_partitions: bool = True) -> CacheIndex:
        """ストアを走査してインデックスを構築する.

        パーティション内のファイルを登録したあと、missing マニフェストの ID を
        MISSING で上書き登録する。

        Args:
            store: 走査対象のストア
            all_partitions: False なら当月パーティションのみ走査する
        """
        index = cls()
        entries = store.scan(all_partitions=all_partitions)
        missing = store.load_missing()

        with index._lock.write():
            index._entries.update(entries)
            for product_id in missing:
                index._entries[product_id] = MISSING

        logger.info(
            "インデックス構築: キャッシュ %d 件, missing %d 件",
            len(entries), len(missing),
        )
        return index

    def lookup(self, product_id: str) -> tuple[Path | str | None, bool]:
        """ID を引く.

        Returns:
            (パス or MISSING, 見つかったか)。未登録なら (None, False)。
        """
        with self._lock.read():
            if product_id in self._entries:
                return self._entries[product_id], True
            return None, False

    def upsert(self, product_id: str, location: Path | str) -> None:
        with self._lock.write():
            self._entries[product_id] = location

    @contextmanager
    def write_lock(self) -> Iterator[CacheIndex]:
        """書き込みロックを保持したまま複数の操作を行う.

        ブロック内では upsert ではなく set_locked を使う。
        """
        with self._lock.write():
            yield self

    def set_locked(self, product_id: str, location: Path | str) -> None:
        """write_lock() 保持中に登録する."""
        self._entries[product_id] = location

    def invalidate(self, product_id: str) -> bool:
        """エントリを削除する. 削除したら True."""
        with self._lock.write():
            return self._entries.pop(product_id, None) is not None

    def missing_ids(self) -> list[str]:
        with self._lock.read():
            return sorted(k for k, v in self._entries.items() if v == MISSING)

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._entries)

    def __contains__(self, product_id: str) -> bool:
        with self._lock.read():
            return product_id in self._entries
