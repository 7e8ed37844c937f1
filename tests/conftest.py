import threading

import pytest

from sitelens.fetching import FetchResponse


class FakeFetcher:
    """Serves canned pages by exact URL; anything else answers 404."""

    def __init__(self, pages=None, errors=None):
        self.pages = dict(pages or {})
        self.errors = dict(errors or {})
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, url, timeout=12):
        with self._lock:
            self.calls.append(url)
        if url in self.errors:
            raise self.errors[url]
        page = self.pages.get(url)
        if page is None:
            return FetchResponse(url=url, status_code=404, text="Not found")
        if isinstance(page, FetchResponse):
            return page
        return FetchResponse(
            url=url, status_code=200, headers={"Content-Type": "text/html"}, text=page
        )


SHOP_HEADERS = {
    "Content-Type": "text/html; charset=utf-8",
    "Content-Security-Policy": "default-src 'self'; script-src 'self'",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Server": "nginx/1.18.0",
}

SHOP_HTML = """<!doctype html>
<html>
<head>
  <title>Mug Shop</title>
  <meta name="description" content="Handmade mugs">
  <script src="https://code.jquery.com/jquery-3.4.1.min.js"></script>
</head>
<body>
  <h1>Mugs</h1>
  <div class="product"><h3 class="product-title">Blue Mug</h3><span class="price">$12.99</span></div>
  <div class="product"><h3 class="product-title">Red Mug</h3><span class="price">$9.50</span></div>
  <button class="add-to-cart">Add to cart</button>
  <a href="https://blog.example.com/">Our blog</a>
  <a href="https://partner.example.org/deal">Partner</a>
  <img src="/img/logo.png">
</body>
</html>
"""

BLOG_HTML = "<html><head><title>Mug Blog</title></head><body><a href='/post'>Post</a></body></html>"


@pytest.fixture
def fake_fetcher():
    return FakeFetcher


@pytest.fixture
def shop_site():
    return FakeFetcher(
        pages={
            "https://shop.example.com/robots.txt": "User-agent: *\nDisallow: /admin\n",
            "https://shop.example.com/": FetchResponse(
                url="https://shop.example.com/",
                status_code=200,
                headers=dict(SHOP_HEADERS),
                text=SHOP_HTML,
            ),
            "https://blog.example.com": BLOG_HTML,
        }
    )
