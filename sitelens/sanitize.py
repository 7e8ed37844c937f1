"""Input sanitization applied before any network access, plus log redaction."""

from __future__ import annotations

import ipaddress
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List
from urllib.parse import urlparse

MAX_INPUT_LENGTH = 1000
MAX_URL_LENGTH = 2048

DANGEROUS_PATTERNS = [
    re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"\bon\w+\s*=", re.IGNORECASE),
    re.compile(r"eval\s*\(", re.IGNORECASE),
    re.compile(r"expression\s*\(", re.IGNORECASE),
    re.compile(r"vbscript:", re.IGNORECASE),
    re.compile(r"data:", re.IGNORECASE),
]
CODE_INJECTION_PATTERNS = [
    re.compile(r"<script", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"vbscript:", re.IGNORECASE),
    re.compile(r"eval\s*\(", re.IGNORECASE),
    re.compile(r"expression\s*\(", re.IGNORECASE),
]
SPECIAL_CHARACTERS = re.compile(r"[<>\"'&]")
ALLOWED_SCHEMES = ("http", "https")
BLOCKED_HOSTNAMES = {"localhost", "localhost.localdomain", "ip6-localhost"}

SENSITIVE_KEY_MARKERS = (
    "password",
    "token",
    "key",
    "secret",
    "auth",
    "cookie",
    "session",
    "credential",
    "private",
)
EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
CARD_PATTERN = re.compile(r"\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b")
IPV4_PATTERN = re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b")


@dataclass
class SanitizedInput:
    original: str
    sanitized: str
    is_safe: bool
    warnings: List[str] = field(default_factory=list)


@dataclass
class UrlValidation:
    is_valid: bool
    errors: List[str] = field(default_factory=list)


@dataclass
class InputRiskAnalysis:
    risk_level: str
    score: int
    issues: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


def sanitize_user_input(raw: str, max_length: int = MAX_INPUT_LENGTH) -> SanitizedInput:
    warnings: List[str] = []
    sanitized = (raw or "").strip()
    if len(sanitized) > max_length:
        warnings.append(f"Input truncated from {len(sanitized)} to {max_length} characters")
        sanitized = sanitized[:max_length]

    is_safe = True
    for pattern in DANGEROUS_PATTERNS:
        if pattern.search(sanitized):
            is_safe = False
            warnings.append(f"Dangerous pattern detected: {pattern.pattern}")
            sanitized = pattern.sub("", sanitized)

    if re.match(r"^[a-z][a-z0-9+.-]*://", sanitized, re.IGNORECASE):
        scheme = urlparse(sanitized).scheme.lower()
        if scheme not in ALLOWED_SCHEMES:
            is_safe = False
            warnings.append(f"Scheme {scheme!r} is not allowed")
            sanitized = ""

    return SanitizedInput(
        original=raw,
        sanitized=sanitized,
        is_safe=is_safe and bool(sanitized),
        warnings=warnings,
    )


def _is_private_host(hostname: str) -> bool:
    host = hostname.strip("[]").lower()
    if host in BLOCKED_HOSTNAMES or host.endswith(".localhost"):
        return True
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return False
    return (
        address.is_private
        or address.is_loopback
        or address.is_link_local
        or address.is_unspecified
        or address.is_reserved
        or address.is_multicast
    )


def validate_scraping_url(url: str) -> UrlValidation:
    errors: List[str] = []
    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
    except ValueError:
        return UrlValidation(is_valid=False, errors=["Malformed URL"])

    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        errors.append("Only HTTP and HTTPS URLs are allowed")
    if len(url) > MAX_URL_LENGTH:
        errors.append("URL is too long")
    if not hostname:
        errors.append("URL has no host")
    elif _is_private_host(hostname):
        errors.append("URL points to a local or private network address")
    return UrlValidation(is_valid=not errors, errors=errors)


def perform_security_analysis(raw: str, context: str = "general") -> InputRiskAnalysis:
    issues: List[str] = []
    score = 100
    if len(raw) > MAX_INPUT_LENGTH:
        issues.append("Input is excessively long")
        score -= 10
    if len(SPECIAL_CHARACTERS.findall(raw)) > 10:
        issues.append("Too many special characters")
        score -= 15
    if context == "url":
        validation = validate_scraping_url(raw)
        if not validation.is_valid:
            issues.extend(validation.errors)
            score -= 30
    for pattern in CODE_INJECTION_PATTERNS:
        if pattern.search(raw):
            issues.append("Possible code injection detected")
            score -= 50

    if issues:
        recommendations = [
            "Apply additional sanitization",
            "Validate input on the server side",
            "Prefer allowlists over denylists",
        ]
    else:
        recommendations = ["Input passes the security checks"]

    if score < 30:
        risk_level = "critical"
    elif score < 50:
        risk_level = "high"
    elif score < 70:
        risk_level = "medium"
    else:
        risk_level = "low"
    return InputRiskAnalysis(
        risk_level=risk_level, score=score, issues=issues, recommendations=recommendations
    )


def mask_sensitive_text(text: str) -> str:
    text = EMAIL_PATTERN.sub("[EMAIL]", text)
    text = CARD_PATTERN.sub("[CARD]", text)
    return IPV4_PATTERN.sub("[IP]", text)


def redact_context(context: Dict[str, Any]) -> Dict[str, Any]:
    redacted: Dict[str, Any] = {}
    for key, value in context.items():
        if any(marker in key.lower() for marker in SENSITIVE_KEY_MARKERS):
            redacted[key] = "[REDACTED]"
        elif isinstance(value, str):
            redacted[key] = mask_sensitive_text(value)
        else:
            redacted[key] = value
    return redacted


class RedactingFilter(logging.Filter):
    """Masks secrets in log records before any handler formats them.

    Structured context passed as ``extra={"context": {...}}`` has sensitive keys
    replaced by ``[REDACTED]``; e-mail addresses, card numbers and IPv4
    addresses are masked in the message and its string arguments.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        context = getattr(record, "context", None)
        if isinstance(context, dict):
            record.context = redact_context(context)
        if isinstance(record.msg, str):
            record.msg = mask_sensitive_text(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(
                mask_sensitive_text(arg) if isinstance(arg, str) else arg for arg in record.args
            )
        return True
