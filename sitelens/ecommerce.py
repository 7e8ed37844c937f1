from __future__ import annotations

import json
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from bs4 import BeautifulSoup

PRODUCT_SELECTORS = (
    ".product", ".item", ".product-item", ".product-card", ".product-tile",
    ".woocommerce-product", ".shopify-product", ".magento-product",
    "[data-product]", "[data-product-id]", "[data-item]",
    "article", ".card", ".listing", ".result",
    ".grid-item", ".list-item", ".catalog-item",
)
NAME_SELECTORS = (
    ".product-title", ".product-name", ".title", ".name",
    "h1", "h2", "h3", "h4", ".heading",
    "[data-product-title]", "[data-name]", ".item-title", ".card-title",
)
PRICE_SELECTORS = (
    ".price", ".product-price", ".cost", ".amount", "[data-price]",
    ".price-current", ".price-now", ".sale-price", ".regular-price",
    ".final-price", ".money", ".currency",
)
RATING_SELECTOR = ".rating, .stars, [data-rating], .review-stars, .star-rating"
REVIEW_SELECTOR = ".reviews, .review-count, [data-reviews], .review-total"
AVAILABILITY_SELECTOR = ".stock, .availability, .in-stock, .out-of-stock"

PAGE_PRICE_PATTERN = re.compile(r"\$\d+|€\d+|£\d+|¥\d+|₹\d+|\d+\.\d+\s*\$|\d+,\d+\s*€")
INLINE_PRICE_PATTERN = re.compile(r"\$\d+|€\d+|£\d+|¥\d+|₹\d+")
CURRENCY_PATTERN = re.compile(r"[$€£¥₹]")
MAX_FALLBACK_PRODUCTS = 5

PAYMENT_KEYWORDS = {
    "PayPal": ("paypal", "pp-logo", "paypal-button"),
    "Stripe": ("stripe", "stripe-button", "stripe-checkout"),
    "Visa": ("visa", "visa-card"),
    "Mastercard": ("mastercard", "master-card", "mc-card"),
    "American Express": ("amex", "american-express", "americanexpress"),
    "Apple Pay": ("apple-pay", "applepay", "apple-payment"),
    "Google Pay": ("google-pay", "googlepay", "gpay"),
    "Bitcoin": ("bitcoin", "btc", "crypto"),
    "Mercado Pago": ("mercadopago", "mercado-pago", "mp-payment"),
}

# Entries starting with ".", "#", "[" or "input" are CSS selectors, the rest page text.
CART_PATTERNS = (
    ".cart", "#cart", ".shopping-cart", ".basket", ".bag", ".cart-icon",
    ".cart-button", ".add-to-cart", ".buy-now", "[data-cart]", ".minicart",
    ".cart-container", "add to cart", "añadir al carrito", "agregar al carrito",
    "comprar ahora", "buy now", "add to bag", "añadir a la bolsa",
)
WISHLIST_PATTERNS = (
    ".wishlist", ".favorites", ".favourite", ".wish-list", "[data-wishlist]",
    ".save-for-later", ".add-to-wishlist", "wishlist", "lista de deseos",
    "favoritos", "guardar para después",
)
SEARCH_PATTERNS = (
    'input[type="search"]', ".search-box", "#search", ".search-input",
    ".search-form", '[placeholder*="search"]', '[placeholder*="buscar"]',
    "buscar producto", "search products", "find products",
)
FILTER_PATTERNS = (
    ".filter", ".filters", "[data-filter]", ".facet", ".facets", ".sort",
    ".sorting", ".category-filter", ".price-filter", "filtrar", "filter",
    "ordenar", "sort by",
)


@dataclass
class Product:
    name: str
    price: Optional[str] = None
    currency: Optional[str] = None
    availability: Optional[str] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None


@dataclass
class StructuredData:
    has_product_schema: bool = False
    has_organization_schema: bool = False
    has_review_schema: bool = False


@dataclass
class ShoppingFeatures:
    has_cart: bool = False
    has_wishlist: bool = False
    has_search: bool = False
    has_filters: bool = False


@dataclass
class EcommerceData:
    products: List[Product] = field(default_factory=list)
    structured_data: StructuredData = field(default_factory=StructuredData)
    payment_methods: List[str] = field(default_factory=list)
    shopping_features: ShoppingFeatures = field(default_factory=ShoppingFeatures)

    @property
    def total_products(self) -> int:
        return len(self.products)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["total_products"] = self.total_products
        return payload


def _first_text(element, selectors: Sequence[str]) -> Optional[str]:
    for css in selectors:
        found = element.select_one(css)
        if found is not None:
            text = found.get_text(strip=True)
            if text:
                return text
    return None


def _first_number(text: Optional[str], pattern: str) -> Optional[str]:
    if not text:
        return None
    match = re.search(pattern, text)
    return match.group(0) if match else None


def _product_from(element) -> Optional[Product]:
    name = _first_text(element, NAME_SELECTORS)
    price = _first_text(element, PRICE_SELECTORS)
    if price is None:
        inline = INLINE_PRICE_PATTERN.search(element.get_text(" "))
        price = inline.group(0) if inline else None
    if name is None and price is None:
        return None

    currency = CURRENCY_PATTERN.search(price) if price else None
    rating_el = element.select_one(RATING_SELECTOR)
    review_el = element.select_one(REVIEW_SELECTOR)
    availability_el = element.select_one(AVAILABILITY_SELECTOR)
    availability = availability_el.get_text(strip=True) if availability_el else ""
    rating = float(_first_number(rating_el.get_text() if rating_el else None, r"\d+\.?\d*") or 0)
    reviews = int(_first_number(review_el.get_text() if review_el else None, r"\d+") or 0)
    return Product(
        name=name or "Detected product",
        price=price,
        currency=currency.group(0) if currency else None,
        availability=availability or None,
        rating=rating or None,
        review_count=reviews or None,
    )


def _has_feature(soup: BeautifulSoup, html_lower: str, patterns: Sequence[str]) -> bool:
    for pattern in patterns:
        if pattern.startswith((".", "#", "[", "input")):
            if soup.select_one(pattern) is not None:
                return True
        elif pattern in html_lower:
            return True
    return False


def _structured_data(soup: BeautifulSoup) -> StructuredData:
    flags = StructuredData()
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        try:
            data = json.loads(script.string or script.get_text() or "")
        except ValueError:
            continue
        for entry in data if isinstance(data, list) else [data]:
            if not isinstance(entry, dict) or "@type" not in entry:
                continue
            kind = entry["@type"]
            kind = " ".join(map(str, kind)) if isinstance(kind, list) else str(kind)
            flags.has_product_schema |= "Product" in kind
            flags.has_organization_schema |= "Organization" in kind
            flags.has_review_schema |= "Review" in kind
    return flags


def _payment_methods(soup: BeautifulSoup, html_lower: str) -> List[str]:
    methods = []
    for method, keywords in PAYMENT_KEYWORDS.items():
        for keyword in keywords:
            css = f'[class*="{keyword}"], [id*="{keyword}"], [alt*="{keyword}"]'
            if keyword in html_lower or soup.select_one(css) is not None:
                methods.append(method)
                break
    return methods


def analyze_ecommerce(html: str, soup: Optional[BeautifulSoup] = None) -> EcommerceData:
    soup = soup if soup is not None else BeautifulSoup(html or "", "html.parser")
    html_lower = (html or "").lower()

    products: List[Product] = []
    seen = set()
    for css in PRODUCT_SELECTORS:
        for element in soup.select(css):
            if id(element) in seen:
                continue
            seen.add(id(element))
            product = _product_from(element)
            if product is not None:
                products.append(product)

    if not products:
        for index, price in enumerate(PAGE_PRICE_PATTERN.findall(html or "")[:MAX_FALLBACK_PRODUCTS], start=1):
            currency = CURRENCY_PATTERN.search(price)
            products.append(
                Product(
                    name=f"Product {index}",
                    price=price,
                    currency=currency.group(0) if currency else None,
                )
            )

    return EcommerceData(
        products=products,
        structured_data=_structured_data(soup),
        payment_methods=_payment_methods(soup, html_lower),
        shopping_features=ShoppingFeatures(
            has_cart=_has_feature(soup, html_lower, CART_PATTERNS),
            has_wishlist=_has_feature(soup, html_lower, WISHLIST_PATTERNS),
            has_search=_has_feature(soup, html_lower, SEARCH_PATTERNS),
            has_filters=_has_feature(soup, html_lower, FILTER_PATTERNS),
        ),
    )
