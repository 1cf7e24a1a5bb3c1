"""設定モジュール — 環境変数・定数定義."""

import os
from pathlib import Path

from dotenv import load_dotenv

# .env はプロジェクトルートに配置
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJECT_ROOT / ".env")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# --- Rainforest API ---
# キャッシュのみで動かす場合もあるため import 時には必須にしない
RAINFOREST_API_KEY: str = os.getenv("RAINFOREST_API_KEY", "")
RAINFOREST_URL = "https://api.rainforestapi.com/request"
AMAZON_DOMAIN = os.getenv("AMAZON_DOMAIN", "amazon.com")

# --- リクエスト設定 ---
REQUEST_TIMEOUT = int(os.getenv("REQUEST_TIMEOUT", "60"))  # 秒

# --- キャッシュ ---
CACHE_DIR = Path(os.getenv("CACHE_DIR", str(_PROJECT_ROOT / "amazon")))
MISSING_FILENAME = "missing.json"
PARTITION_FORMAT = "%Y-%m"

# False にすると当月パーティションのみを起動時に読み込む
SCAN_ALL_PARTITIONS = _env_bool("SCAN_ALL_PARTITIONS", True)

# 未発見レスポンスを missing として記録するか (ID 種別ごと)
MARK_MISSING_ASIN = _env_bool("MARK_MISSING_ASIN", False)
MARK_MISSING_GTIN = _env_bool("MARK_MISSING_GTIN", True)

# --- 形態別のバリアント名 ---
PAPERBACK_TYPES = ["Paperback", "Mass Market Paperback", "Perfect Paperback", "Pocket Book"]
HARDCOVER_TYPES = ["Hardcover", "Leather Bound", "Library Binding", "Flexibound"]
DIGITAL_TYPES = ["Kindle", "Kindle & Comixology", "Digital"]
AUDIOBOOK_TYPES = ["Audiobook", "Audible Audiobook", "Audio CD", "MP3 CD"]

FORMAT_TYPES = {
    "paperback": PAPERBACK_TYPES,
    "hardcover": HARDCOVER_TYPES,
    "digital": DIGITAL_TYPES,
    "audiobook": AUDIOBOOK_TYPES,
}

# --- ログ ---
LOG_DIR = Path(os.getenv("LOG_DIR", str(_PROJECT_ROOT / "logs")))
