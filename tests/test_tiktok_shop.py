"""Tests for TikTok Shop products, reviews and search."""
import httpx
import respx

from reachstream.scrapers.tiktok_scraper import REHYDRATION_ID
from reachstream.scrapers.tiktok_shop import (
    SHOP_API,
    amount,
    discount_of,
    extract_product,
    extract_reviews,
    extract_shop_search,
    scrape_product,
    scrape_reviews,
    search_shop,
)
from pages import script_page

PRODUCT = {
    "id": "123",
    "name": "Desk Lamp",
    "price": {"amount": "30", "currency": "EUR"},
    "original_price": {"amount": "40", "currency": "EUR"},
    "image_url": "https://cdn/lamp.jpg",
    "available": True,
    "skus": [{"sku_id": "s1", "title": "White", "price": 30, "available_stock": 4}],
    "seller": {"id": "shop9", "name": "Lights", "verified": True},
    "sales": 500,
}

REVIEWS = [
    {"id": "r1", "stars": 5, "verified_purchase": True, "photos": ["https://cdn/p.jpg"], "text": "Great"},
    {"review_id": "r2", "rating": 4, "user": {"username": "bob"}, "seller_response": {"text": "Thanks"}},
]


class TestShopHelpers:

    def test_amount(self):
        """Test price amounts from numbers and objects."""
        assert amount({"amount": "9.99", "currency": "USD"}) == "9.99"
        assert amount(5) == 5
        assert amount(None) is None

    def test_discount_of(self):
        """Test discount from price objects."""
        assert discount_of({"amount": "40"}, {"amount": "30"}) == 25
        assert discount_of("abc", 10) == 0
        assert discount_of(None, None) == 0


class TestShopExtraction:

    def test_product_from_api(self):
        """Test product extraction from the API shape."""
        product = extract_product({"data": {"product": PRODUCT}}, "123")
        assert product["title"] == "Desk Lamp"
        assert product["price"] == "30"
        assert product["currency"] == "EUR"
        assert product["discount_percentage"] == 25
        assert product["images"] == ["https://cdn/lamp.jpg"]
        assert product["stock_status"] == "in_stock"
        assert product["sold_count"] == 500
        assert product["variants"][0] == {
            "variant_id": "s1", "name": "White", "price": 30, "original_price": None,
            "stock": 4, "image_url": None, "attributes": {},
        }
        assert product["seller"]["shop_name"] == "Lights"
        assert product["seller"]["verified"] is True
        assert product["url"] == "https://shop.tiktok.com/product/123"

    def test_product_missing(self):
        """Test missing product data raises."""
        result = scrape_product("")
        assert result["error"] == "Invalid product ID provided"

    def test_reviews(self):
        """Test reviews extraction."""
        result = extract_reviews({"reviews": REVIEWS, "pagination": {"has_more": True, "cursor": "c2"}}, "123")
        first, second = result["reviews"]
        assert first["username"] == "Anonymous"
        assert first["comment"] == "Great"
        assert first["verified_purchase"] is True
        assert first["seller_response"] is None
        assert second["seller_response"] == {"comment": "Thanks", "created_at": None}
        stats = result["statistics"]
        assert stats["total_reviews"] == 2
        assert stats["average_rating"] == 4.5
        assert stats["rating_distribution"] == {"5": 0, "4": 0, "3": 0, "2": 0, "1": 0}
        assert stats["verified_purchases"] == 1
        assert stats["with_images"] == 1
        assert result["has_more"] is True
        assert result["cursor"] == "c2"

    def test_search(self):
        """Test product search extraction."""
        data = {"data": {"products": [dict(PRODUCT, is_ad=True)]}, "total": 40}
        result = extract_shop_search(data)
        assert result["total_results"] == 40
        product = result["products"][0]
        assert product["product_id"] == "123"
        assert product["shop_name"] is None
        assert product["is_sponsored"] is True
        assert result["has_more"] is False


class TestShopScraper:

    @respx.mock
    def test_product_api(self, client):
        """Test product scrape through the API."""
        respx.get(f"{SHOP_API}/product/123").mock(return_value=httpx.Response(200, json={"product": PRODUCT}))
        result = scrape_product("123", client=client)
        assert result["success"] is True
        assert result["metadata"]["api_used"] is True

    @respx.mock
    def test_product_falls_back_to_page(self, client):
        """Test product falls back to the page when the API fails."""
        respx.get(f"{SHOP_API}/product/123").mock(return_value=httpx.Response(403))
        page = script_page(REHYDRATION_ID, {"__DEFAULT_SCOPE__": {"shop.product": {"product": PRODUCT}}})
        respx.get("https://shop.tiktok.com/product/123").mock(return_value=httpx.Response(200, text=page))
        result = scrape_product("123", client=client)
        assert result["success"] is True
        assert result["data"]["title"] == "Desk Lamp"
        assert result["metadata"]["api_used"] is False

    @respx.mock
    def test_reviews_params(self, client):
        """Test reviews parameters and metadata."""
        route = respx.get(url__startswith=f"{SHOP_API}/product/123/reviews").mock(
            return_value=httpx.Response(200, json={"reviews": REVIEWS})
        )
        result = scrape_reviews("123", limit=10, cursor="c1", filter="with_photos", client=client)
        assert result["metadata"]["filter_applied"] == "with_photos"
        assert result["metadata"]["api_used"] is True
        params = route.calls.last.request.url.params
        assert params["limit"] == "10"
        assert params["cursor"] == "c1"
        assert params["filter"] == "with_photos"

    @respx.mock
    def test_reviews_all_sends_no_filter(self, client):
        """Test the all filter sends no filter parameter."""
        route = respx.get(url__startswith=f"{SHOP_API}/product/123/reviews").mock(
            return_value=httpx.Response(200, json={"reviews": []})
        )
        scrape_reviews("123", client=client)
        assert "filter" not in route.calls.last.request.url.params

    @respx.mock
    def test_search(self, client):
        """Test product search end to end."""
        route = respx.get(url__startswith=f"{SHOP_API}/search/product").mock(
            return_value=httpx.Response(200, json={"products": [PRODUCT]})
        )
        result = search_shop("lamp", client=client)
        assert result["data"]["query"] == "lamp"
        assert result["data"]["total_results"] == 1
        assert route.calls.last.request.url.params["q"] == "lamp"

    def test_search_requires_query(self):
        """Test an empty search query is rejected."""
        assert search_shop("")["error"] == "Invalid search query provided"
