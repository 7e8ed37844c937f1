"""Typed failures raised by the scan pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:  # pragma: no cover
    from .models import ScrapingPolicy

STATUS_EXPLANATIONS = {
    400: "The server rejected the request as malformed.",
    401: "The page requires authentication.",
    403: "Access denied: the server refuses to serve this page to automated clients.",
    404: "Page not found: check that the URL is correct.",
    405: "The server does not allow this request method.",
    408: "The server timed out waiting for the request.",
    429: "Rate limited: too many requests were sent, try again later.",
    500: "The server reported an internal error.",
    502: "Upstream unavailable: the site or its gateway is not responding correctly.",
    503: "Upstream unavailable: the site is temporarily out of service.",
    504: "Upstream unavailable: the gateway timed out waiting for the site.",
}
TIMEOUT_EXPLANATION = "The site is slow or overloaded and did not answer in time."
NETWORK_EXPLANATION = "Could not connect to the site: check the address and your network."
SSL_EXPLANATION = "The TLS handshake failed: the certificate may be invalid or expired."


def explain_status(
    status_code: Optional[int], *, timed_out: bool = False, detail: str = ""
) -> str:
    if timed_out:
        return TIMEOUT_EXPLANATION
    if status_code is None:
        lowered = detail.lower()
        if "ssl" in lowered or "certificate" in lowered:
            return SSL_EXPLANATION
        return NETWORK_EXPLANATION
    if status_code in STATUS_EXPLANATIONS:
        return STATUS_EXPLANATIONS[status_code]
    if status_code >= 500:
        return f"The server failed with HTTP {status_code}."
    return f"The server answered with HTTP {status_code}."


class ScanError(Exception):
    """Base class for every failure surfaced to scan callers."""


class MalformedInput(ScanError):
    def __init__(self, value: str, issues: List[str]) -> None:
        self.value = value
        self.issues = list(issues)
        super().__init__("Unsafe or malformed input: " + "; ".join(self.issues))


class PolicyRejected(ScanError):
    def __init__(self, url: str, reason: str, policy: "ScrapingPolicy") -> None:
        self.url = url
        self.reason = reason
        self.policy = policy
        if reason == "robots":
            message = f"robots.txt of {url} disallows automated access for this crawler."
        else:
            message = f"The terms of service of {url} restrict scraping or automated access."
        super().__init__(message)


class FetchFailed(ScanError):
    def __init__(
        self,
        url: str,
        status_code: Optional[int] = None,
        *,
        timed_out: bool = False,
        detail: str = "",
    ) -> None:
        self.url = url
        self.status_code = status_code
        self.timed_out = timed_out
        self.detail = detail
        self.explanation = explain_status(status_code, timed_out=timed_out, detail=detail)
        if status_code is not None:
            message = f"Fetching {url} failed with HTTP {status_code}: {self.explanation}"
        else:
            message = f"Fetching {url} failed: {self.explanation}"
        super().__init__(message)


class UnknownSiteType(ScanError, KeyError):
    def __init__(self, site_type: str) -> None:
        self.site_type = site_type
        super().__init__(f"Unknown site type: {site_type!r}")

    def __str__(self) -> str:
        return self.args[0]
