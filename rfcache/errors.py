"""例外定義.

未発見 (NotFound) は例外ではなく空レコードで表現する。
"""

from __future__ import annotations


class ProductCacheError(Exception):
    """rfcache の全例外の基底クラス."""

    def __init__(self, message: str, product_id: str | None = None):
        super().__init__(message)
        self.product_id = product_id

    def __str__(self) -> str:
        message = super().__str__()
        if self.product_id:
            return f"{message} (id={self.product_id})"
        return message


class TransportFailure(ProductCacheError):
    """API への HTTP リクエスト失敗."""


class DecodeFailure(ProductCacheError):
    """API レスポンスまたはキャッシュファイルの JSON が不正."""


class FilesystemFailure(ProductCacheError):
    """キャッシュディレクトリ・ファイルの作成や読み書きに失敗."""


class InvalidProductId(ProductCacheError):
    """ファイル名に使えない商品 ID."""
