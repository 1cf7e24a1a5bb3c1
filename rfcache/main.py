"""Amazon 商品情報取得 — メインエントリーポイント.

処理フロー:
  1. キャッシュディレクトリを走査してインデックスを構築
  2. 指定された ID を順に取得 (キャッシュ優先、なければ API)
  3. 商品名と、形態指定があればそのバリアント価格を記録
  4. missing マニフェストを保存
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from datetime import datetime
from pathlib import Path

from rfcache.config import FORMAT_TYPES, LOG_DIR, RAINFOREST_API_KEY
from rfcache.errors import ProductCacheError
from rfcache.models import IdKind
from rfcache.retriever import open_retriever


def setup_logging() -> None:
    """ロギングの初期設定."""
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    log_file = LOG_DIR / f"rfcache_{datetime.now().strftime('%Y%m%d')}.log"
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file, encoding="utf-8"),
        ],
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Amazon 商品情報をキャッシュ付きで取得する.")
    parser.add_argument("ids", nargs="*", help="ASIN (--gtin 指定時は GTIN)")
    parser.add_argument("--gtin", action="store_true", help="ID を GTIN として扱う")
    parser.add_argument("--file", type=Path, help="1 行 1 ID のファイル")
    parser.add_argument("--format", choices=sorted(FORMAT_TYPES), help="価格を表示するバリアント形態")
    return parser.parse_args(argv)


def _read_ids(args: argparse.Namespace) -> list[str]:
    ids = list(args.ids)
    if args.file:
        for line in args.file.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if line and not line.startswith("#"):
                ids.append(line)
    return ids


def run(argv: list[str] | None = None) -> int:
    """メイン処理. 終了コードを返す."""
    setup_logging()
    logger = logging.getLogger(__name__)
    args = parse_args(argv)

    ids = _read_ids(args)
    if not ids:
        logger.warning("ID が指定されていません。終了します。")
        return 0
    if not RAINFOREST_API_KEY:
        logger.warning("RAINFOREST_API_KEY が未設定です。キャッシュ外の ID は取得できません。")

    logger.info("=== 商品情報取得 開始 (%d 件) ===", len(ids))
    start_time = time.time()
    id_kind = IdKind.GTIN if args.gtin else IdKind.ASIN
    candidates = FORMAT_TYPES.get(args.format, [])

    try:
        retriever = open_retriever()
    except ProductCacheError as e:
        logger.error("インデックス構築失敗: %s", e)
        return 1

    exit_code = 0
    try:
        for product_id in ids:
            pd = retriever.retrieve(product_id, id_kind)
            if not pd.found:
                logger.info("  %s → 未発見", product_id)
                continue

            logger.info("  %s → %s", product_id, pd.product.title)
            if candidates:
                variant, ok = pd.lookup_variant(*candidates)
                if ok:
                    logger.info("    %s: %s (%s)", variant.title, variant.price.raw, variant.asin)
                else:
                    logger.info("    %s: なし", args.format)
    except ProductCacheError as e:
        logger.error("取得中断: %s", e)
        exit_code = 1

    try:
        retriever.save_missing_manifest()
    except ProductCacheError as e:
        logger.error("missing マニフェスト保存失敗: %s", e)
        exit_code = 1

    elapsed = time.time() - start_time
    stats = retriever.stats
    logger.info("=== 商品情報取得 完了 ===")
    logger.info(
        "キャッシュ: %d 件, missing: %d 件, API 取得: %d 回 (未発見 %d), 所要時間: %.1f 秒",
        stats["hits"], stats["missing_hits"], stats["fetches"], stats["not_found"], elapsed,
    )
    return exit_code


if __name__ == "__main__":
    sys.exit(run())
