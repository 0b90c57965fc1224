"""
TikTok Shop: product details, product reviews and product search.

The shop API answers JSON; product and review pages fall back to the web
page when the API refuses the request.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

from reachstream.scrapers.base import JSON_ACCEPT, BaseScraper, require_text
from reachstream.scrapers.errors import ExtractionError, InvalidInputError, UpstreamHTTPError
from reachstream.scrapers.extract import (
    as_float,
    calculate_average_rating,
    calculate_discount,
    dig,
    first,
    utc_now_iso,
)
from reachstream.scrapers.tiktok_scraper import parse_json_or_blob, scope

logger = logging.getLogger(__name__)

SHOP_BASE = "https://shop.tiktok.com"
SHOP_API = f"{SHOP_BASE}/api/v1"


def amount(value: Any) -> Any:
    """Shop prices are either plain numbers or ``{"amount", "currency"}`` objects."""
    if isinstance(value, dict):
        return value.get("amount")
    return value


def discount_of(original: Any, current: Any) -> int:
    return calculate_discount(as_float(amount(original)), as_float(amount(current)))


def _currency(product: Dict[str, Any]) -> str:
    return dig(product, "price", "currency") or "USD"


def _stock_status(product: Dict[str, Any]) -> str:
    return product.get("stock_status") or ("in_stock" if product.get("available") else "out_of_stock")


def _has_more(data: Dict[str, Any]) -> bool:
    return bool(data.get("has_more") or dig(data, "pagination", "has_more"))


def _cursor(data: Dict[str, Any]) -> Optional[str]:
    return data.get("cursor") or dig(data, "pagination", "cursor")


def extract_product(data: Dict[str, Any], product_id: str) -> Dict[str, Any]:
    product = first(scope(data, "shop.product", "product"), dig(data, "data", "product"), data.get("product"))
    if not product:
        raise ExtractionError("Product data structure not found")

    shop = product.get("shop") or {}
    seller = product.get("seller") or {}
    variants = [
        {
            "variant_id": first(v.get("id"), v.get("sku_id")),
            "name": first(v.get("name"), v.get("title")),
            "price": amount(v.get("price")),
            "original_price": amount(v.get("original_price")),
            "stock": first(v.get("stock"), v.get("available_stock")),
            "image_url": first(v.get("image_url"), v.get("image")),
            "attributes": v.get("attributes") or {},
        }
        for v in first(product.get("variants"), product.get("skus"), default=[])
    ]

    return {
        "product_id": first(product.get("product_id"), product.get("id"), product_id),
        "title": first(product.get("title"), product.get("name")),
        "description": product.get("description"),
        "price": amount(product.get("price")),
        "currency": _currency(product),
        "original_price": amount(product.get("original_price")),
        "discount_percentage": (
            product.get("discount_percentage")
            or discount_of(product.get("original_price"), product.get("price"))
        ),
        "images": product.get("images") or [product.get("image_url")],
        "video_url": first(product.get("video_url"), product.get("video")),
        "category": first(product.get("category"), product.get("category_name")),
        "brand": product.get("brand"),
        "tags": product.get("tags") or [],
        "rating": first(product.get("rating"), product.get("avg_rating")),
        "review_count": first(product.get("review_count"), product.get("reviews")),
        "sold_count": first(product.get("sold_count"), product.get("sales"), product.get("total_sold")),
        "stock_status": _stock_status(product),
        "total_stock": first(product.get("total_stock"), product.get("available_stock")),
        "variants": variants,
        "shipping": {
            "free_shipping": product.get("free_shipping") or False,
            "shipping_fee": dig(product, "shipping_fee", "amount", default=0),
            "shipping_time": first(product.get("shipping_time"), product.get("delivery_days")),
            "ships_from": first(product.get("ships_from"), product.get("warehouse_location")),
        },
        "seller": {
            "shop_id": first(shop.get("id"), seller.get("id")),
            "shop_name": first(shop.get("name"), seller.get("name")),
            "shop_url": shop.get("url") or f"{SHOP_BASE}/shop/{shop.get('id')}",
            "shop_rating": first(shop.get("rating"), seller.get("rating")),
            "shop_followers": first(shop.get("followers"), seller.get("followers")),
            "verified": bool(shop.get("verified") or seller.get("verified")),
        },
        "specifications": first(product.get("specifications"), product.get("specs"), default={}),
        "warranty": product.get("warranty"),
        "return_policy": first(product.get("return_policy"), product.get("returns")),
        "url": product.get("url") or f"{SHOP_BASE}/product/{product_id}",
        "created_at": first(product.get("created_at"), product.get("publish_time")),
        "updated_at": first(product.get("updated_at"), product.get("last_update")),
    }


def _review(review: Dict[str, Any]) -> Dict[str, Any]:
    response = review.get("seller_response")
    return {
        "review_id": first(review.get("review_id"), review.get("id")),
        "user_id": first(dig(review, "user", "id"), review.get("user_id")),
        "username": first(dig(review, "user", "username"), review.get("username"), default="Anonymous"),
        "user_avatar": first(dig(review, "user", "avatar_url"), review.get("avatar")),
        "rating": first(review.get("rating"), review.get("stars")),
        "title": first(review.get("title"), review.get("subject")),
        "comment": first(review.get("comment"), review.get("text"), review.get("content")),
        "likes": first(review.get("likes"), review.get("helpful_count"), default=0),
        "created_at": first(review.get("created_at"), review.get("review_time"), review.get("timestamp")),
        "verified_purchase": bool(review.get("verified_purchase") or review.get("is_verified")),
        "images": first(review.get("images"), review.get("photos"), default=[]),
        "videos": review.get("videos") or [],
        "variant": first(review.get("variant"), review.get("sku_name")),
        "seller_response": {
            "comment": first(response.get("comment"), response.get("text")),
            "created_at": first(response.get("created_at"), response.get("timestamp")),
        } if response else None,
        "helpful": bool(review.get("helpful") or review.get("is_helpful")),
    }


def extract_reviews(data: Dict[str, Any], product_id: str) -> Dict[str, Any]:
    raw = first(
        scope(data, "shop.reviews", "reviews"),
        dig(data, "data", "reviews"),
        data.get("reviews"),
        default=[],
    )
    reviews = [_review(r) for r in raw]
    distribution = first(
        data.get("rating_distribution"),
        dig(data, "stats", "rating_distribution"),
        default={"5": 0, "4": 0, "3": 0, "2": 0, "1": 0},
    )
    return {
        "product_id": product_id,
        "statistics": {
            "total_reviews": first(data.get("total_reviews"), data.get("total"), len(reviews)),
            "average_rating": first(
                data.get("average_rating"), data.get("avg_rating"), calculate_average_rating(reviews),
            ),
            "rating_distribution": distribution,
            "verified_purchases": sum(1 for r in reviews if r["verified_purchase"]),
            "with_images": sum(1 for r in reviews if r["images"]),
            "with_videos": sum(1 for r in reviews if r["videos"]),
        },
        "reviews": reviews,
        "has_more": _has_more(data),
        "cursor": _cursor(data),
    }


def extract_shop_search(data: Dict[str, Any]) -> Dict[str, Any]:
    raw = first(
        scope(data, "shop.search", "products"),
        dig(data, "data", "products"),
        data.get("products"),
        default=[],
    )
    products: List[Dict[str, Any]] = []
    for product in raw:
        product_id = first(product.get("product_id"), product.get("id"))
        products.append({
            "product_id": product_id,
            "title": first(product.get("title"), product.get("name")),
            "price": amount(product.get("price")),
            "currency": _currency(product),
            "original_price": amount(product.get("original_price")),
            "discount_percentage": (
                product.get("discount_percentage")
                or discount_of(product.get("original_price"), product.get("price"))
            ),
            "image_url": first(product.get("image_url"), dig(product, "images", 0), product.get("cover_image")),
            "images": product.get("images") or [product.get("image_url")],
            "shop_name": first(dig(product, "shop", "name"), product.get("seller_name")),
            "shop_id": first(dig(product, "shop", "id"), product.get("seller_id")),
            "rating": first(product.get("rating"), product.get("avg_rating")),
            "review_count": first(product.get("review_count"), product.get("reviews")),
            "sold_count": first(product.get("sold_count"), product.get("sales")),
            "url": product.get("url") or f"{SHOP_BASE}/product/{product_id}",
            "tags": product.get("tags") or [],
            "is_sponsored": bool(product.get("is_ad") or product.get("sponsored")),
            "stock_status": _stock_status(product),
        })

    return {
        "total_results": first(data.get("total"), data.get("total_results"), len(products)),
        "products": products,
        "has_more": _has_more(data),
        "cursor": _cursor(data),
    }


class TikTokShopScraper(BaseScraper):
    """Scraper for TikTok Shop products, reviews and search."""

    platform = "TikTok Shop"

    def _api_or_page(
        self,
        api_url: str,
        page_url: str,
        what: str,
        referer: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Dict[str, Any], bool]:
        """
        Fetch from the shop API, falling back to the web page.

        Returns:
            (parsed data, whether the API answered)
        """
        try:
            response = self.fetch(
                api_url,
                headers=self.get_headers({"Referer": referer}, accept=JSON_ACCEPT),
                params=params,
            )
            body = self._checked(response).text
            api_used = True
        except UpstreamHTTPError as e:
            logger.info(f"Shop API unavailable ({e}), falling back to {page_url}")
            body = self.fetch_html(page_url)
            api_used = False
        return parse_json_or_blob(body, what), api_used

    def product(self, product_id: str) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        require_text(product_id, "product ID")
        data, api_used = self._api_or_page(
            f"{SHOP_API}/product/{product_id}",
            f"{SHOP_BASE}/product/{product_id}",
            "product data",
            referer=f"{SHOP_BASE}/",
        )
        result = extract_product(data, product_id)
        result["scraped_at"] = utc_now_iso()
        return result, {"api_used": api_used}

    def reviews(
        self,
        product_id: str,
        limit: int = 50,
        cursor: Optional[str] = None,
        filter: str = "all",
    ) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        require_text(product_id, "product ID")
        params: Dict[str, Any] = {"limit": str(limit)}
        if cursor:
            params["cursor"] = cursor
        if filter != "all":
            params["filter"] = filter

        product_page = f"{SHOP_BASE}/product/{product_id}"
        data, api_used = self._api_or_page(
            f"{SHOP_API}/product/{product_id}/reviews",
            product_page,
            "reviews data",
            referer=product_page,
            params=params,
        )
        result = extract_reviews(data, product_id)
        result["scraped_at"] = utc_now_iso()
        return result, {"api_used": api_used}

    def search(self, query: str, limit: int = 20, cursor: Optional[str] = None) -> Dict[str, Any]:
        if not query or not isinstance(query, str):
            raise InvalidInputError("Invalid search query provided")
        params: Dict[str, Any] = {"q": query, "limit": str(limit)}
        if cursor:
            params["cursor"] = cursor

        response = self.fetch(
            f"{SHOP_API}/search/product",
            headers=self.get_headers({"Referer": f"{SHOP_BASE}/"}, accept=JSON_ACCEPT),
            params=params,
        )
        data = parse_json_or_blob(self._checked(response).text, "shop search data")
        result = {"query": query, **extract_shop_search(data)}
        result["scraped_at"] = utc_now_iso()
        return result


def scrape_product(product_id: str, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """
    Scrape a shop product.

    Metadata ``api_used`` tells whether the API answered or the web page was read.
    """
    scraper = TikTokShopScraper(client=client)
    return scraper.run(scraper.product, product_id)


def scrape_reviews(
    product_id: str,
    limit: int = 50,
    cursor: Optional[str] = None,
    filter: str = "all",
    client: Optional[httpx.Client] = None,
) -> Dict[str, Any]:
    """
    Scrape product reviews.

    Args:
        product_id: Shop product id
        limit: Page size requested from the API
        cursor: Cursor from a previous page
        filter: Review filter passed to the API ("all" sends none)
        client: Optional httpx client
    """
    scraper = TikTokShopScraper(client=client)
    return scraper.run(
        scraper.reviews, product_id, limit=limit, cursor=cursor, filter=filter,
        metadata={"filter_applied": filter},
    )


def search_shop(
    query: str,
    limit: int = 20,
    cursor: Optional[str] = None,
    client: Optional[httpx.Client] = None,
) -> Dict[str, Any]:
    """Search shop products."""
    scraper = TikTokShopScraper(client=client)
    return scraper.run(scraper.search, query, limit=limit, cursor=cursor)
