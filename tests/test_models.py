"""models モジュールのユニットテスト."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from rfcache.config import AUDIOBOOK_TYPES, DIGITAL_TYPES, PAPERBACK_TYPES
from rfcache.models import Price, Product, ProductData, Variant, lookup_variant

from conftest import load_fixture


def _record_with_variants(*titles: str) -> ProductData:
    variants = [
        Variant(asin=f"ASIN{i}", title=t, price=Price(value=10.0 + i))
        for i, t in enumerate(titles)
    ]
    return ProductData(product=Product(asin="B000TEST", variants=variants))


class TestModelValidate:
    """ProductData.model_validate のテスト."""

    def test_product_fields(self):
        """商品の基本項目が取り出せること."""
        pd = ProductData.model_validate(load_fixture("product_0316769487.json"))

        assert pd.found
        assert pd.product.asin == "0316769487"
        assert pd.product.title == "The Catcher in the Rye"
        assert pd.product.authors[0].name == "J.D. Salinger"
        assert pd.product.rating_breakdown.five_star.count == 21512
        assert pd.product.rating_breakdown.five_star.percentage == 65.0
        assert pd.product.buybox_winner.price.value == 8.99
        assert pd.product.buybox_winner.fulfillment.is_sold_by_amazon is True
        assert pd.also_bought[0].ratings_total == 4210.0

    def test_variants(self):
        pd = ProductData.model_validate(load_fixture("product_0316769487.json"))

        titles = [v.title for v in pd.product.variants]
        assert titles == ["Hardcover", "Mass Market Paperback", "Kindle"]
        assert pd.product.variants[2].price.raw == "$7.99"

    def test_timestamps(self):
        """RFC 3339 の日時が UTC の datetime になること."""
        pd = ProductData.model_validate(load_fixture("product_0316769487.json"))

        assert pd.request_info.credits_reset_at == datetime(2026, 11, 1, tzinfo=timezone.utc)
        assert pd.product.top_reviews[0].date.utc == datetime(2026, 3, 2, tzinfo=timezone.utc)

    def test_naive_timestamp_stays_naive(self):
        pd = ProductData.model_validate({"request_metadata": {"created_at": "2026-10-18T09:12:03"}})
        assert pd.request_metadata.created_at == datetime(2026, 10, 18, 9, 12, 3)

    def test_nanosecond_timestamp(self):
        """9 桁の小数秒はマイクロ秒に切り捨てること."""
        pd = ProductData.model_validate(
            {"request_metadata": {"created_at": "2021-03-01T13:32:45.964123456Z"}}
        )
        assert pd.request_metadata.created_at == datetime(
            2021, 3, 1, 13, 32, 45, 964123, tzinfo=timezone.utc
        )

    def test_empty_timestamp(self):
        pd = ProductData.model_validate({"request_info": {"credits_reset_at": ""}})
        assert pd.request_info.credits_reset_at is None

    def test_missing_and_null_keys(self):
        """欠けたキー・null は既定値になること."""
        pd = ProductData.model_validate({"product": {"asin": "X1", "title": None}})

        assert pd.product.asin == "X1"
        assert pd.product.title == ""
        assert pd.product.variants == []
        assert pd.request_metadata.created_at is None

    def test_not_found(self):
        pd = ProductData.model_validate(load_fixture("product_not_found.json"))
        assert not pd.found
        assert pd.request_info.credits_remaining == 587

    def test_reject_non_object(self):
        with pytest.raises(ValidationError):
            ProductData.model_validate(["not", "an", "object"])

    def test_reject_bool_as_string(self):
        """文字列の "false" を真偽値に変換しないこと."""
        with pytest.raises(ValidationError):
            ProductData.model_validate({"product": {"asin": "B1", "is_bundle": "false"}})

    def test_reject_fractional_int(self):
        with pytest.raises(ValidationError):
            ProductData.model_validate({"product": {"asin": "B1", "ratings_total": 12.7}})

    def test_reject_object_as_string(self):
        with pytest.raises(ValidationError):
            ProductData.model_validate({"product": {"asin": "B1", "title": {"a": 1}}})

    def test_reject_bad_number(self):
        with pytest.raises(ValidationError):
            ProductData.model_validate({"product": {"ratings_total": "many"}})


class TestModelDump:
    """ProductData.model_dump(mode="json") のテスト."""

    def test_round_trip(self):
        pd = ProductData.model_validate(load_fixture("product_0316769487.json"))
        assert ProductData.model_validate(pd.model_dump(mode="json")) == pd

    def test_timestamp_format(self):
        pd = ProductData.model_validate(load_fixture("product_0316769487.json"))
        data = pd.model_dump(mode="json")

        assert data["request_info"]["credits_reset_at"] == "2026-11-01T00:00:00Z"
        assert data["request_metadata"]["created_at"].startswith("2026-10-18T09:12:03.118")

    def test_naive_timestamp_has_no_zone(self):
        pd = ProductData.model_validate({"request_metadata": {"created_at": "2026-10-18T09:12:03"}})
        data = pd.model_dump(mode="json")

        assert data["request_metadata"]["created_at"] == "2026-10-18T09:12:03"

    def test_unknown_keys_dropped(self):
        pd = ProductData.model_validate(load_fixture("product_0316769487.json"))
        assert "unexpected_top_level_key" not in pd.model_dump(mode="json")

    def test_empty_record(self):
        data = ProductData.empty().model_dump(mode="json")
        assert data["product"]["asin"] == ""
        assert data["request_info"]["credits_reset_at"] is None


class TestLookupVariant:
    """lookup_variant のテスト."""

    def test_second_candidate_matches(self):
        pd = _record_with_variants("Hardcover", "Paperback")

        variant, ok = lookup_variant(pd, "Kindle", "Paperback")
        assert ok
        assert variant.title == "Paperback"
        assert variant.asin == "ASIN1"

    def test_no_match(self):
        pd = _record_with_variants("Hardcover", "Paperback")

        variant, ok = lookup_variant(pd, "Kindle")
        assert not ok
        assert variant is None

    def test_candidate_order_wins(self):
        """バリアントの並びではなく候補の並びが優先されること."""
        pd = _record_with_variants("Hardcover", "Paperback")

        variant, ok = pd.lookup_variant("Paperback", "Hardcover")
        assert ok
        assert variant.title == "Paperback"

    def test_no_candidates(self):
        pd = _record_with_variants("Hardcover")
        assert lookup_variant(pd) == (None, False)

    def test_format_groups(self):
        pd = ProductData.model_validate(load_fixture("product_0316769487.json"))

        paperback, ok = pd.lookup_variant(*PAPERBACK_TYPES)
        assert ok
        assert paperback.price.value == 8.99

        kindle, ok = pd.lookup_variant(*DIGITAL_TYPES)
        assert ok
        assert kindle.asin == "B003JTHWKU"

        _, ok = pd.lookup_variant(*AUDIOBOOK_TYPES)
        assert not ok
