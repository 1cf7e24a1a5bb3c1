"""データモデル定義.

Rainforest API (type=product) のレスポンス JSON をそのまま写したモデル群。
フィールド名は JSON のキー名と一致させている。
"""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator


class IdKind(str, Enum):
    """商品 ID の種別. 値はそのままクエリパラメータ名になる."""

    ASIN = "asin"
    GTIN = "gtin"


# 秒の小数部は 7 桁目以降を切り捨てる (datetime はマイクロ秒精度)
_SUBMICRO_PATTERN = re.compile(r"(\.\d{6})\d+")


def _normalize_time(value: Any) -> Any:
    if isinstance(value, str):
        if value == "":
            return None
        return _SUBMICRO_PATTERN.sub(r"\1", value)
    return value


# RFC 3339 文字列。タイムゾーンなしの値はそのまま naive で保持する
Timestamp = Annotated[Annotated[datetime, Field(strict=False)] | None, BeforeValidator(_normalize_time)]


class _Model(BaseModel):
    """型の合わない値は変換せず ValidationError にする. 未知のキーは無視."""

    model_config = ConfigDict(strict=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        # null は既定値扱い
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


# --- 共通 ---


class Price(_Model):
    """価格表現."""

    symbol: str = ""
    value: float = 0.0
    currency: str = ""
    raw: str = ""  # 表示用文字列 (例: "$12.99")


class Attribute(_Model):
    """名前と値の組 (attributes / specifications)."""

    name: str = ""
    value: str = ""


class Image(_Model):
    link: str = ""


# --- リクエスト情報 ---


class RequestInfo(_Model):
    """クレジット消費などのリクエスト情報."""

    success: bool = False
    credits_used: int = 0
    credits_used_this_request: int = 0
    credits_remaining: int = 0
    credits_reset_at: Timestamp = None


class RequestParameters(_Model):
    """リクエストパラメータのエコー."""

    amazon_domain: str = ""
    type: str = ""
    asin: str = ""
    gtin: str = ""


class RequestMetadata(_Model):
    created_at: Timestamp = None
    processed_at: Timestamp = None
    total_time_taken: float = 0.0
    amazon_url: str = ""


# --- 商品詳細 ---


class SearchAlias(_Model):
    title: str = ""
    value: str = ""


class Author(_Model):
    name: str = ""
    link: str = ""
    asin: str = ""


class Category(_Model):
    name: str = ""
    link: str = ""
    category_id: str = ""


class SubTitle(_Model):
    text: str = ""
    link: str = ""


class StarBreakdown(_Model):
    percentage: float = 0.0
    count: int = 0


class RatingBreakdown(_Model):
    """星ごとのレビュー内訳."""

    five_star: StarBreakdown = Field(default_factory=StarBreakdown)
    four_star: StarBreakdown = Field(default_factory=StarBreakdown)
    three_star: StarBreakdown = Field(default_factory=StarBreakdown)
    two_star: StarBreakdown = Field(default_factory=StarBreakdown)
    one_star: StarBreakdown = Field(default_factory=StarBreakdown)


class EditorialReview(_Model):
    title: str = ""
    body: str = ""


class ReviewDate(_Model):
    raw: str = ""
    utc: Timestamp = None


class ReviewProfile(_Model):
    name: str = ""
    link: str = ""
    id: str = ""
    image: str = ""


class Review(_Model):
    """上位レビュー 1 件."""

    id: str = ""
    title: str = ""
    body: str = ""
    body_html: str = ""
    link: str = ""
    rating: int = 0
    date: ReviewDate = Field(default_factory=ReviewDate)
    profile: ReviewProfile = Field(default_factory=ReviewProfile)
    vine_program: bool = False
    verified_purchase: bool = False
    review_country: str = ""
    is_global_review: bool = False
    helpful_votes: int = 0


class MaximumOrderQuantity(_Model):
    value: int = 0
    hard_maximum: bool = False


class Availability(_Model):
    type: str = ""
    raw: str = ""
    dispatch_days: int = 0
    stock_level: int = 0


class SecondaryBuybox(_Model):
    offer_id: str = ""
    caption: str = ""
    price: Price = Field(default_factory=Price)
    availability: Availability = Field(default_factory=Availability)


class Delivery(_Model):
    date: str = ""
    name: str = ""


class Fulfillment(_Model):
    type: str = ""
    standard_delivery: Delivery = Field(default_factory=Delivery)
    fastest_delivery: Delivery = Field(default_factory=Delivery)
    is_sold_by_amazon: bool = False
    is_fulfilled_by_amazon: bool = False
    is_fulfilled_by_third_party: bool = False
    is_sold_by_third_party: bool = False


class Condition(_Model):
    is_new: bool = False


class Shipping(_Model):
    raw: str = ""


class BuyboxWinner(_Model):
    """カートボックス獲得オファー."""

    maximum_order_quantity: MaximumOrderQuantity = Field(default_factory=MaximumOrderQuantity)
    secondary_buybox: SecondaryBuybox = Field(default_factory=SecondaryBuybox)
    offer_id: str = ""
    new_offers_count: int = 0
    new_offers_from: Price = Field(default_factory=Price)
    used_offers_count: int = 0
    used_offers_from: Price = Field(default_factory=Price)
    is_prime: bool = False
    is_amazon_fresh: bool = False
    condition: Condition = Field(default_factory=Condition)
    availability: Availability = Field(default_factory=Availability)
    fulfillment: Fulfillment = Field(default_factory=Fulfillment)
    price: Price = Field(default_factory=Price)
    shipping: Shipping = Field(default_factory=Shipping)


class BuyingChoice(_Model):
    price: Price = Field(default_factory=Price)
    seller_name: str = ""
    seller_link: str = ""
    free_shipping: bool = False
    position: int = 0


class BestsellerRank(_Model):
    category: str = ""
    rank: int = 0
    link: str = ""


class Variant(_Model):
    """同一商品の別形態 (ハードカバー、Kindle 版など)."""

    asin: str = ""
    link: str = ""
    is_current_product: bool = False
    title: str = ""  # 形態名 (例: "Paperback")
    price: Price = Field(default_factory=Price)


class Product(_Model):
    """商品詳細ペイロード. asin が空なら未発見."""

    title: str = ""
    search_alias: SearchAlias = Field(default_factory=SearchAlias)
    keywords: str = ""
    keywords_list: list[str] = Field(default_factory=list)
    asin: str = ""
    link: str = ""
    sell_on_amazon: bool = False
    variants: list[Variant] = Field(default_factory=list)
    variant_asins_flat: str = ""
    authors: list[Author] = Field(default_factory=list)
    format: str = ""
    categories: list[Category] = Field(default_factory=list)
    categories_flat: str = ""
    sub_title: SubTitle = Field(default_factory=SubTitle)
    marketplace_id: str = ""
    rating: float = 0.0
    rating_breakdown: RatingBreakdown = Field(default_factory=RatingBreakdown)
    ratings_total: int = 0
    book_description: str = ""
    editorial_reviews: list[EditorialReview] = Field(default_factory=list)
    editorial_reviews_flat: str = ""
    main_image: Image = Field(default_factory=Image)
    images: list[Image] = Field(default_factory=list)
    images_count: int = 0
    images_flat: str = ""
    is_bundle: bool = False
    attributes: list[Attribute] = Field(default_factory=list)
    top_reviews: list[Review] = Field(default_factory=list)
    buybox_winner: BuyboxWinner = Field(default_factory=BuyboxWinner)
    more_buying_choices: list[BuyingChoice] = Field(default_factory=list)
    specifications: list[Attribute] = Field(default_factory=list)
    specifications_flat: str = ""
    bestsellers_rank: list[BestsellerRank] = Field(default_factory=list)
    publication_date: str = ""
    publisher: str = ""
    isbn_10: str = ""
    isbn_13: str = ""
    language: str = ""
    weight: str = ""
    bestsellers_rank_flat: str = ""


# --- 関連商品 ---


class BoughtTogetherProduct(_Model):
    asin: str = ""
    title: str = ""
    link: str = ""
    price: Price = Field(default_factory=Price)
    image: str = ""


class FrequentlyBoughtTogether(_Model):
    total_price: Price = Field(default_factory=Price)
    products: list[BoughtTogetherProduct] = Field(default_factory=list)


class AlsoBought(_Model):
    title: str = ""
    asin: str = ""
    link: str = ""
    image: str = ""
    rating: float = 0.0
    ratings_total: float = 0.0
    price: Price = Field(default_factory=Price)


class ProductData(_Model):
    """API レスポンス全体 = キャッシュ 1 ファイル分のレコード.

    デコードは ProductData.model_validate、エンコードは model_dump(mode="json")。
    """

    request_info: RequestInfo = Field(default_factory=RequestInfo)
    request_parameters: RequestParameters = Field(default_factory=RequestParameters)
    request_metadata: RequestMetadata = Field(default_factory=RequestMetadata)
    product: Product = Field(default_factory=Product)
    frequently_bought_together: FrequentlyBoughtTogether = Field(
        default_factory=FrequentlyBoughtTogether
    )
    also_bought: list[AlsoBought] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> ProductData:
        """未発見を表す空レコード."""
        return cls()

    @property
    def found(self) -> bool:
        return self.product.asin != ""

    def lookup_variant(self, *titles: str) -> tuple[Variant | None, bool]:
        return lookup_variant(self, *titles)


def lookup_variant(record: ProductData, *titles: str) -> tuple[Variant | None, bool]:
    """候補タイトルの順にバリアントを探す.

    Args:
        record: 商品レコード
        titles: 候補の形態名。先に並んだものが優先される

    Returns:
        (バリアント, 見つかったか) のタプル。見つからなければ (None, False)。
    """
    for title in titles:
        for v in record.product.variants:
            if v.title == title:
                return v, True
    return None, False
