from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urljoin, urlparse

import requests
import tldextract
from bs4 import BeautifulSoup

from .config import DEFAULT_MAX_SUBDOMAINS, DEFAULT_TIMEOUT, MAX_SUBDOMAIN_WORKERS
from .errors import FetchFailed
from .fetching import Fetcher
from .models import DetectedTechnology
from .technologies import detect_technologies

logger = logging.getLogger("sitelens.subdomains")
logger.addHandler(logging.NullHandler())

# Offline: bundled public-suffix snapshot only.
_SUFFIXES = tldextract.TLDExtract(suffix_list_urls=(), cache_dir=None)

STATUS_SUCCESS = "success"
STATUS_ERROR = "error"


@dataclass
class SubdomainResult:
    url: str
    title: str
    status: str
    technologies: List[DetectedTechnology] = field(default_factory=list)
    link_count: int = 0
    image_count: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "url": self.url,
            "title": self.title,
            "status": self.status,
            "technologies": [tech.to_dict() for tech in self.technologies],
            "link_count": self.link_count,
            "image_count": self.image_count,
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload


def extract_base_domain(url: str) -> str:
    """Registrable domain of ``url`` (``www.shop.example.co.uk`` -> ``example.co.uk``)."""
    hostname = (urlparse(url).hostname or "").lower()
    parts = _SUFFIXES(hostname)
    if parts.domain and parts.suffix:
        return f"{parts.domain}.{parts.suffix}"
    return hostname


def extract_subdomains(hrefs: Iterable[Optional[str]], base_url: str) -> List[str]:
    base = urlparse(base_url)
    base_host = (base.hostname or "").lower()
    base_domain = extract_base_domain(base_url)
    base_origin = f"{base.scheme}://{base.netloc}".lower()
    origins: List[str] = []
    for href in hrefs:
        if not href:
            continue
        try:
            parsed = urlparse(urljoin(base_url, href))
            host = (parsed.hostname or "").lower()
        except ValueError:
            continue
        if parsed.scheme not in ("http", "https"):
            continue
        if not host or host == base_host or not host.endswith("." + base_domain):
            continue
        origin = f"{parsed.scheme}://{parsed.netloc}".lower()
        if origin != base_origin and origin not in origins:
            origins.append(origin)
    return origins


def scan_subdomain(url: str, fetch: Fetcher, timeout: int = DEFAULT_TIMEOUT) -> SubdomainResult:
    try:
        resp = fetch(url, timeout)
    except (FetchFailed, requests.RequestException) as exc:
        logger.warning("Subdomain %s could not be fetched: %s", url, exc)
        return SubdomainResult(url=url, title="Connection error", status=STATUS_ERROR, error=str(exc))
    if not resp.ok:
        return SubdomainResult(
            url=url, title="Connection error", status=STATUS_ERROR, error=f"HTTP {resp.status_code}"
        )

    soup = BeautifulSoup(resp.text, "html.parser")
    title = soup.title.get_text(strip=True) if soup.title else ""
    return SubdomainResult(
        url=url,
        title=title or "Untitled",
        status=STATUS_SUCCESS,
        technologies=detect_technologies(resp.text, soup),
        link_count=len(soup.find_all("a", href=True)),
        image_count=len(soup.find_all("img")),
    )


def scan_subdomains(
    urls: Iterable[str],
    fetch: Fetcher,
    *,
    limit: int = DEFAULT_MAX_SUBDOMAINS,
    max_workers: int = MAX_SUBDOMAIN_WORKERS,
    timeout: int = DEFAULT_TIMEOUT,
) -> List[SubdomainResult]:
    targets = list(urls)[: max(limit, 0)]
    if not targets:
        return []
    workers = max(1, min(max_workers, MAX_SUBDOMAIN_WORKERS, len(targets)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(scan_subdomain, url, fetch, timeout) for url in targets]
        results: List[SubdomainResult] = []
        for url, future in zip(targets, futures):
            try:
                results.append(future.result())
            except Exception as exc:
                # Analysis bugs on one subdomain are recorded, the batch continues.
                logger.error("Subdomain scan failed for %s: %s", url, exc)
                results.append(
                    SubdomainResult(url=url, title="Error", status=STATUS_ERROR, error=str(exc))
                )
    return results
