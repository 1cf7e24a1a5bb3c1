"""キャッシュファイルの永続化モジュール.

ディレクトリ構成:
  <root>/<YYYY-MM>/<id>.json  初回取得月ごとのパーティションに 1 商品 1 ファイル
  <root>/missing.json         存在しないと分かっている ID の JSON 配列
"""

from __future__ import annotations

import json
import logging
import os
import re
from collections.abc import Callable, Iterable
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from rfcache.config import CACHE_DIR, MISSING_FILENAME, PARTITION_FORMAT
from rfcache.errors import DecodeFailure, FilesystemFailure, InvalidProductId
from rfcache.models import ProductData

logger = logging.getLogger(__name__)

_PARTITION_PATTERN = re.compile(r"^\d{4}-\d{2}$")


def partition_name(now: datetime) -> str:
    """日時からパーティション名 (YYYY-MM) を作る."""
    return now.strftime(PARTITION_FORMAT)


def check_product_id(product_id: str) -> str:
    """ID がパーティション内のファイル名として使えるか確認する.

    Raises:
        InvalidProductId: 空、パス区切り文字や ".." を含む場合
    """
    if not product_id or "/" in product_id or "\\" in product_id or ".." in product_id:
        raise InvalidProductId(f"invalid product id: {product_id!r}")
    return product_id


class ProductStore:
    """月別パーティションに商品レコードを JSON で保存する.

    ロックは持たない。保存とインデックス更新の排他は呼び出し側
    (Retriever) が CacheIndex の書き込みロックで行う。
    """

    def __init__(self, root: Path | str = CACHE_DIR, clock: Callable[[], datetime] = datetime.now):
        self.root = Path(root)
        self._clock = clock

    @property
    def missing_path(self) -> Path:
        return self.root / MISSING_FILENAME

    def current_partition(self) -> Path:
        return self.root / partition_name(self._clock())

    def path_for(self, product_id: str) -> Path:
        return self.current_partition() / f"{check_product_id(product_id)}.json"

    def save(self, product_id: str, record: ProductData) -> Path:
        """レコードを当月パーティションに書き込む.

        一時ファイルに書いてから rename するため、読み手が書きかけの
        ファイルを見ることはない。

        Returns:
            保存先のパス

        Raises:
            FilesystemFailure: ディレクトリ作成・書き込みに失敗した場合
        """
        path = self.path_for(product_id)
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(record.model_dump(mode="json"), f, ensure_ascii=False)
                f.write("\n")
            os.replace(tmp_path, path)
        except OSError as e:
            logger.error("キャッシュ書き込み失敗: path=%s, error=%s", path, e)
            raise FilesystemFailure(f"cannot write {path}: {e}", product_id) from e

        logger.info("キャッシュ保存: %s", path)
        return path

    def load(self, path: Path | str, product_id: str | None = None) -> ProductData:
        """キャッシュファイルを読み込む.

        Raises:
            FilesystemFailure: ファイルを開けない場合
            DecodeFailure: JSON が壊れている場合
        """
        path = Path(path)
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error("キャッシュ JSON パースエラー: path=%s, error=%s", path, e)
            raise DecodeFailure(f"corrupt cache file {path}: {e}", product_id) from e
        except OSError as e:
            logger.error("キャッシュ読み込み失敗: path=%s, error=%s", path, e)
            raise FilesystemFailure(f"cannot read {path}: {e}", product_id) from e

        try:
            return ProductData.model_validate(data)
        except ValidationError as e:
            raise DecodeFailure(f"unexpected cache file shape {path}: {e}", product_id) from e

    def partitions(self) -> list[Path]:
        """存在するパーティションディレクトリを古い順に返す."""
        if not self.root.is_dir():
            return []
        return sorted(
            p for p in self.root.iterdir()
            if p.is_dir() and _PARTITION_PATTERN.match(p.name)
        )

    def scan(self, all_partitions: bool = True) -> dict[str, Path]:
        """キャッシュ済みファイルを列挙する.

        Args:
            all_partitions: False なら当月パーティションのみ

        Returns:
            {id: path}。複数パーティションに同じ ID があれば新しい月が優先。
        """
        if all_partitions:
            folders = self.partitions()
        else:
            folders = [self.current_partition()]

        entries: dict[str, Path] = {}
        for folder in folders:
            if not folder.is_dir():
                continue
            for path in sorted(folder.glob("*.json")):
                entries[path.stem] = path
        return entries

    def load_missing(self) -> list[str]:
        """missing マニフェストを読み込む. ファイルがなければ空リスト.

        Raises:
            DecodeFailure: JSON 配列として読めない場合
        """
        path = self.missing_path
        if not path.exists():
            return []
        try:
            with open(path, encoding="utf-8") as f:
                missing = json.load(f)
        except json.JSONDecodeError as e:
            raise DecodeFailure(f"corrupt missing manifest {path}: {e}") from e
        except OSError as e:
            raise FilesystemFailure(f"cannot read {path}: {e}") from e

        if missing is None:
            return []
        if not isinstance(missing, list):
            raise DecodeFailure(f"missing manifest {path} is not a JSON array")
        return [str(i) for i in missing]

    def save_missing(self, ids: Iterable[str]) -> Path:
        """missing マニフェストを上書き保存する.

        Raises:
            FilesystemFailure: 書き込みに失敗した場合
        """
        path = self.missing_path
        tmp_path = path.with_name(path.name + ".tmp")
        missing = list(ids)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(missing, f, ensure_ascii=False)
                f.write("\n")
            os.replace(tmp_path, path)
        except OSError as e:
            logger.error("missing マニフェスト書き込み失敗: path=%s, error=%s", path, e)
            raise FilesystemFailure(f"cannot write {path}: {e}") from e

        logger.info("missing マニフェスト保存: %d 件", len(missing))
        return path
