"""Rainforest API クライアント.

1 回の GET で商品詳細を取得する。リトライ・バックオフは行わない。
"""

from __future__ import annotations

import logging

import requests
from pydantic import ValidationError

from rfcache.config import AMAZON_DOMAIN, RAINFOREST_URL, REQUEST_TIMEOUT
from rfcache.errors import DecodeFailure, TransportFailure
from rfcache.models import IdKind, ProductData

logger = logging.getLogger(__name__)


class RainforestClient:
    """Rainforest API (type=product) の取得クライアント."""

    def __init__(
        self,
        api_key: str,
        amazon_domain: str = AMAZON_DOMAIN,
        timeout: float = REQUEST_TIMEOUT,
        base_url: str = RAINFOREST_URL,
    ):
        self.api_key = api_key
        self.amazon_domain = amazon_domain
        self.timeout = timeout
        self.base_url = base_url

    def _build_params(self, id_kind: IdKind, product_id: str) -> dict:
        return {
            "api_key": self.api_key,
            "amazon_domain": self.amazon_domain,
            "type": "product",
            IdKind(id_kind).value: product_id,
        }

    def fetch(self, id_kind: IdKind, product_id: str) -> ProductData:
        """商品詳細を取得する.

        Args:
            id_kind: IdKind.ASIN or IdKind.GTIN
            product_id: ASIN または GTIN

        Returns:
            デコード済みレコード。未発見時は product.asin が空。

        Raises:
            TransportFailure: 通信エラー・HTTP エラー
            DecodeFailure: レスポンスが不正な JSON
        """
        params = self._build_params(id_kind, product_id)

        try:
            resp = requests.get(self.base_url, params=params, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.error("商品取得失敗: %s=%s, error=%s", IdKind(id_kind).value, product_id, e)
            raise TransportFailure(f"request failed: {e}", product_id) from e

        try:
            payload = resp.json()
        except ValueError as e:
            # requests の JSONDecodeError も ValueError のサブクラス
            logger.error("レスポンス JSON パースエラー: id=%s, error=%s", product_id, e)
            raise DecodeFailure(f"invalid response body: {e}", product_id) from e

        try:
            pd = ProductData.model_validate(payload)
        except ValidationError as e:
            logger.error("レスポンス形式エラー: id=%s, error=%s", product_id, e)
            raise DecodeFailure(f"unexpected response shape: {e}", product_id) from e

        info = pd.request_info
        logger.info(
            "クレジット: 今回 %d, 残り %d",
            info.credits_used_this_request, info.credits_remaining,
        )
        return pd
