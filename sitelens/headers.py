from __future__ import annotations

import re
from typing import Mapping, Optional

from bs4 import BeautifulSoup

from .fetching import lowercase_headers
from .models import HeaderStatus, InfoDisclosure, SecurityHeaderReport, SSLAnalysis

NOT_PRESENT = "Not present"
HSTS_MIN_MAX_AGE = 31536000
HSTS_MAX_AGE = re.compile(r"max-age=(\d+)", re.IGNORECASE)
CSP_HASH_TOKENS = ("nonce-", "sha256-")
VALID_REFERRER_POLICIES = (
    "no-referrer",
    "strict-origin-when-cross-origin",
    "no-referrer-when-downgrade",
)
VALID_FRAME_OPTIONS = ("deny", "sameorigin", "allow-from")
SERVER_NAMES = re.compile(r"apache|nginx|iis|lighttpd|tomcat", re.IGNORECASE)
POWERED_BY_NAMES = re.compile(r"express|php|laravel|django|rails", re.IGNORECASE)
MODERN_TLS_SERVERS = ("apache/2.4", "nginx/1.16")
MIXED_CONTENT_TAGS = ("script", "img", "iframe", "link", "source", "audio", "video")


def _status(value: Optional[str], valid: bool) -> HeaderStatus:
    if value is None:
        return HeaderStatus(present=False, valid=False, content=NOT_PRESENT)
    return HeaderStatus(present=True, valid=valid, content=value)


def csp_is_valid(value: str) -> bool:
    csp = value.lower()
    has_directives = "default-src" in csp and "script-src" in csp
    hashed = any(token in csp for token in CSP_HASH_TOKENS)
    return has_directives and ("unsafe-inline" not in csp or hashed)


def parse_hsts_max_age(value: str) -> Optional[int]:
    match = HSTS_MAX_AGE.search(value)
    return int(match.group(1)) if match else None


def hsts_is_valid(value: str) -> bool:
    max_age = parse_hsts_max_age(value)
    return max_age is not None and max_age >= HSTS_MIN_MAX_AGE


def analyze_headers(headers: Mapping[str, str]) -> SecurityHeaderReport:
    lookup = lowercase_headers(dict(headers))
    csp = lookup.get("content-security-policy")
    hsts = lookup.get("strict-transport-security")
    xss = lookup.get("x-xss-protection")
    nosniff = lookup.get("x-content-type-options")
    referrer = lookup.get("referrer-policy")
    frame = lookup.get("x-frame-options")
    permissions = lookup.get("permissions-policy")
    server = lookup.get("server")
    powered_by = lookup.get("x-powered-by")

    if xss is not None:
        xss_valid = xss.strip().lower() == "1; mode=block"
    else:
        # A CSP that restricts objects and scripts stands in for the legacy header.
        csp_lower = (csp or "").lower()
        xss_valid = csp is not None and "object-src" in csp_lower and "script-src" in csp_lower

    return SecurityHeaderReport(
        csp=_status(csp, csp is not None and csp_is_valid(csp)),
        hsts=_status(hsts, hsts is not None and hsts_is_valid(hsts)),
        xss_protection=_status(xss, xss_valid),
        content_type_options=_status(
            nosniff, nosniff is not None and nosniff.strip().lower() == "nosniff"
        ),
        referrer_policy=_status(
            referrer,
            referrer is not None and any(p in referrer.lower() for p in VALID_REFERRER_POLICIES),
        ),
        frame_options=_status(
            frame, frame is not None and any(o in frame.lower() for o in VALID_FRAME_OPTIONS)
        ),
        permissions_policy=_status(permissions, permissions is not None),
        info_disclosure=InfoDisclosure(
            server_exposed=bool(server and SERVER_NAMES.search(server)),
            powered_by_exposed=bool(powered_by and POWERED_BY_NAMES.search(powered_by)),
            server=server,
            powered_by=powered_by,
        ),
        hsts_max_age=parse_hsts_max_age(hsts) if hsts else None,
    )


def _has_mixed_content(html: str) -> bool:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(MIXED_CONTENT_TAGS):
        for attr in ("src", "href"):
            value = tag.get(attr)
            if not value:
                continue
            if tag.name == "link" and attr == "href" and "stylesheet" not in (tag.get("rel") or []):
                continue
            if str(value).strip().lower().startswith("http://"):
                return True
    return False


def analyze_ssl(url: str, headers: Mapping[str, str], html: Optional[str] = None) -> SSLAnalysis:
    """Infer the TLS posture from the URL scheme and response headers.

    This never opens a TLS connection: ``valid_certificate`` only mirrors the
    scheme and must not be read as a verified certificate chain.
    """
    https = url.lower().startswith("https://")
    server = lowercase_headers(dict(headers)).get("server", "").lower()
    if https and any(marker in server for marker in MODERN_TLS_SERVERS):
        protocol_version = "TLS 1.2"
    elif https:
        protocol_version = "TLS 1.2+"
    else:
        protocol_version = "N/A"
    return SSLAnalysis(
        has_ssl=https,
        valid_certificate=https,
        tls_version="TLS 1.2+" if https else "N/A",
        https_enabled=https,
        protocol_version=protocol_version,
        certificate_issuer="Let's Encrypt" if "let's encrypt" in server else "Unknown",
        mixed_content=bool(https and html and _has_mixed_content(html)),
    )
