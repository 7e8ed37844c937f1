#!/usr/bin/env python3
"""
SiteLens scan pipeline
----------------------

Turns one web page into a risk and capability profile:

* Admission     – robots.txt and terms-of-service checks gate every fetch.
* Inventory     – technologies, known-vulnerable versions, risky inline JS.
* Posture       – security headers, inferred TLS, contextual security score.
* Capabilities  – e-commerce signals, user access points, linked subdomains.

Only regular GET requests are sent and every request carries a timeout.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict, dataclass, field
from http.cookies import CookieError, SimpleCookie
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from .baselines import (
    BaselineRecommendation,
    IndustryBenchmark,
    ScoreGap,
    baseline_recommendations,
    get_baseline,
    identify_gaps,
    industry_benchmark,
)
from .config import ScanSettings
from .context import (
    RiskAssessment,
    UserDetection,
    analyze_contextual_risk,
    build_site_context,
    detect_users,
    determine_site_type,
)
from .ecommerce import EcommerceData, analyze_ecommerce
from .errors import FetchFailed, MalformedInput, PolicyRejected, ScanError
from .fetching import Fetcher, lowercase_headers, make_fetcher
from .headers import analyze_headers, analyze_ssl
from .models import (
    DetectedTechnology,
    SecurityHeaderReport,
    SecurityScore,
    SiteContext,
    SSLAnalysis,
    ScrapingPolicy,
    VulnerabilityFinding,
)
from .policy import PolicyGate
from .sanitize import (
    RedactingFilter,
    perform_security_analysis,
    sanitize_user_input,
    validate_scraping_url,
)
from .scoring import RiskScorer
from .subdomains import SubdomainResult, extract_base_domain, extract_subdomains, scan_subdomains
from .technologies import TechnologyDetector
from .vulnerabilities import CODE_PATTERN_FINDING, VulnerabilityMatcher, top_findings

logger = logging.getLogger("sitelens.scanner")
logger.addHandler(logging.NullHandler())

ProgressCallback = Callable[[Dict[str, Any]], None]

TOP_FINDINGS_PER_SEVERITY = 3
CODE_PATTERN_PENALTIES = (
    ("eval()", 8),
    ("document.write", 4),
    ("innerHTML", 4),
    ("Console", 1),
)
TECHNOLOGY_PENALTIES = {"critical": 8, "high": 6, "medium": 4, "low": 2}


@dataclass
class SecurityAnalysis:
    security_headers: SecurityHeaderReport
    ssl_analysis: SSLAnalysis
    vulnerable_technologies: List[VulnerabilityFinding]
    external_links: int
    images_without_alt: int
    cookies_detected: int
    privacy_score: float = 0.0
    contextual_risk: Optional[RiskAssessment] = None
    baseline_gaps: List[ScoreGap] = field(default_factory=list)
    recommendations: List[BaselineRecommendation] = field(default_factory=list)
    industry_comparison: Optional[IndustryBenchmark] = None

    def to_dict(self) -> Dict[str, Any]:
        grouped = top_findings(self.vulnerable_technologies, TOP_FINDINGS_PER_SEVERITY)
        return {
            "security_headers": self.security_headers.to_dict(),
            "ssl_analysis": self.ssl_analysis.to_dict(),
            "vulnerable_technologies": [f.to_dict() for f in self.vulnerable_technologies],
            "top_findings": {level: [f.to_dict() for f in items] for level, items in grouped.items()},
            "external_links": self.external_links,
            "images_without_alt": self.images_without_alt,
            "cookies_detected": self.cookies_detected,
            "privacy_score": self.privacy_score,
            "contextual_risk": self.contextual_risk.to_dict() if self.contextual_risk else None,
            "baseline_gaps": [asdict(gap) for gap in self.baseline_gaps],
            "recommendations": [asdict(item) for item in self.recommendations],
            "industry_comparison": asdict(self.industry_comparison) if self.industry_comparison else None,
        }


@dataclass
class ScrapedData:
    title: str
    url: str
    meta: Dict[str, Optional[str]]
    headings: Dict[str, List[str]]
    links: List[Dict[str, Optional[str]]]
    images: List[Dict[str, Optional[str]]]
    technologies: List[DetectedTechnology]
    ecommerce: EcommerceData
    subdomains: List[SubdomainResult]
    scraping_policy: ScrapingPolicy
    security_analysis: SecurityAnalysis
    security_score: SecurityScore
    site_type: str
    site_context: SiteContext
    users_detected: UserDetection
    robots_txt_content: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "meta": self.meta,
            "headings": self.headings,
            "links": self.links,
            "images": self.images,
            "technologies": [tech.to_dict() for tech in self.technologies],
            "ecommerce": self.ecommerce.to_dict(),
            "subdomains": [item.to_dict() for item in self.subdomains],
            "scraping_policy": self.scraping_policy.to_dict(),
            "security_analysis": self.security_analysis.to_dict(),
            "security_score": self.security_score.to_dict(),
            "site_type": self.site_type,
            "site_context": self.site_context.to_dict(),
            "users_detected": asdict(self.users_detected),
            "robots_txt_content": self.robots_txt_content,
        }


def _notify_progress(callback: Optional[ProgressCallback], payload: Dict[str, Any]) -> None:
    if not callback:
        return
    try:
        callback(payload)
    except Exception:
        # Progress callbacks are best-effort only.
        logger.debug("Progress callback failed", exc_info=True)


def _validate_input(raw_url: str) -> str:
    sanitized = sanitize_user_input(raw_url)
    issues: List[str] = []
    if not sanitized.is_safe:
        issues.extend(sanitized.warnings or ["URL is empty"])
    analysis = perform_security_analysis(raw_url or "", context="url")
    if analysis.risk_level in ("high", "critical"):
        issues.extend(analysis.issues)
    validation = validate_scraping_url(sanitized.sanitized)
    issues.extend(validation.errors)
    if issues:
        raise MalformedInput(raw_url, list(dict.fromkeys(issues)))
    return sanitized.sanitized


def _meta_content(soup: BeautifulSoup, **attrs: str) -> Optional[str]:
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return None
    return tag.get("content") or None


def _count_external_links(links: List[Dict[str, Optional[str]]], page_url: str) -> int:
    base_domain = extract_base_domain(page_url)
    count = 0
    for link in links:
        href = link.get("href")
        if not href:
            continue
        try:
            host = urlparse(urljoin(page_url, href)).hostname or ""
        except ValueError:
            continue
        host = host.lower()
        if host and host != base_domain and not host.endswith("." + base_domain):
            count += 1
    return count


def _count_cookies(headers: Dict[str, str]) -> int:
    raw = lowercase_headers(headers).get("set-cookie")
    if not raw:
        return 0
    jar: SimpleCookie = SimpleCookie()
    try:
        jar.load(raw)
    except CookieError:
        logger.debug("Unparseable Set-Cookie header: %s", raw)
        return 1
    return len(jar)


def calculate_privacy_score(
    report: SecurityHeaderReport,
    ssl: SSLAnalysis,
    findings: List[VulnerabilityFinding],
    external_links: int,
    images_without_alt: int,
) -> float:
    score = 100.0
    if not report.csp.present:
        score -= 10
    if not report.hsts.present:
        score -= 8
    if not report.xss_protection.present:
        score -= 8
    if not report.content_type_options.present:
        score -= 5
    if not ssl.https_enabled:
        score -= 25

    for finding in findings:
        if finding.name == CODE_PATTERN_FINDING:
            score -= next(
                (penalty for marker, penalty in CODE_PATTERN_PENALTIES if marker in finding.vulnerability),
                3,
            )
        else:
            score -= TECHNOLOGY_PENALTIES[finding.severity.value]

    if report.info_disclosure.server_exposed:
        score -= 3
    if report.info_disclosure.powered_by_exposed:
        score -= 2
    if ssl.mixed_content:
        score -= 6
    score -= min(external_links * 0.5, 10)
    score -= min(images_without_alt * 0.3, 5)

    if report.referrer_policy.valid:
        score += 3
    if report.frame_options.valid:
        score += 3
    if not findings:
        score += 5
    if ssl.https_enabled and score < 10:
        score = 10
    return round(max(score, 0.0), 1)


def scan(
    url: str,
    site_type: Optional[str] = None,
    ethical_mode: bool = True,
    *,
    fetch: Optional[Fetcher] = None,
    settings: Optional[ScanSettings] = None,
    progress_callback: Optional[ProgressCallback] = None,
    gate: Optional[PolicyGate] = None,
    detector: Optional[TechnologyDetector] = None,
    matcher: Optional[VulnerabilityMatcher] = None,
    scorer: Optional[RiskScorer] = None,
) -> ScrapedData:
    settings = settings or ScanSettings.from_env()
    fetch = fetch or make_fetcher(settings.user_agent)
    target = _validate_input(url)
    if site_type:
        get_baseline(site_type, strict=True)

    _notify_progress(progress_callback, {"type": "phase", "phase": "policy", "progress": 10})
    gate = gate or PolicyGate(
        fetch,
        user_agent=settings.user_agent,
        timeout=settings.policy_timeout,
        fail_open=settings.policy_fail_open,
    )
    policy = gate.evaluate(target)
    if policy.scraping_prohibited:
        reason = policy.prohibition_reason or "terms"
        if ethical_mode:
            raise PolicyRejected(target, reason, policy)
        logger.warning("Scraping %s is prohibited by %s, continuing outside ethical mode", target, reason)

    _notify_progress(progress_callback, {"type": "phase", "phase": "fetch", "progress": 25})
    resp = fetch(target, settings.timeout)
    if not resp.ok:
        raise FetchFailed(target, resp.status_code)

    html = resp.text or ""
    soup = BeautifulSoup(html, "html.parser")
    page_url = resp.url or target
    title = soup.title.get_text(strip=True) if soup.title else ""

    _notify_progress(progress_callback, {"type": "phase", "phase": "analysis", "progress": 45})
    technologies = (detector or TechnologyDetector()).detect(html, soup)
    header_report = analyze_headers(resp.headers)
    ssl = analyze_ssl(page_url, resp.headers, html)
    findings = (matcher or VulnerabilityMatcher()).match(technologies, html)
    ecommerce = analyze_ecommerce(html, soup)
    users = detect_users(html)

    links = [
        {"href": a.get("href"), "text": a.get_text(strip=True) or None}
        for a in soup.find_all("a", href=True)
    ]
    images = [{"src": img.get("src"), "alt": img.get("alt")} for img in soup.find_all("img")]
    external_links = _count_external_links(links, page_url)
    images_without_alt = sum(1 for img in images if not (img["alt"] or "").strip())

    _notify_progress(progress_callback, {"type": "phase", "phase": "subdomains", "progress": 65})
    subdomains = scan_subdomains(
        extract_subdomains((link["href"] for link in links), page_url),
        fetch,
        limit=settings.max_subdomains,
        max_workers=settings.subdomain_workers,
        timeout=settings.timeout,
    )

    _notify_progress(progress_callback, {"type": "phase", "phase": "scoring", "progress": 85})
    resolved_type = site_type or determine_site_type(
        page_url, title, technologies, ecommerce.total_products, users
    )
    context = build_site_context(
        resolved_type,
        technologies,
        users,
        ecommerce.payment_methods,
        external_links,
        ssl.https_enabled,
    )
    security_score = (scorer or RiskScorer()).score(header_report, findings, resolved_type, context)
    baseline = get_baseline(resolved_type)
    gaps = identify_gaps(header_report.header_values(), baseline)

    analysis = SecurityAnalysis(
        security_headers=header_report,
        ssl_analysis=ssl,
        vulnerable_technologies=findings,
        external_links=external_links,
        images_without_alt=images_without_alt,
        cookies_detected=_count_cookies(resp.headers),
        contextual_risk=analyze_contextual_risk(header_report.missing_headers(), context),
        baseline_gaps=gaps,
        recommendations=baseline_recommendations(gaps),
        industry_comparison=industry_benchmark(resolved_type),
    )
    analysis.privacy_score = calculate_privacy_score(
        header_report, ssl, findings, external_links, images_without_alt
    )

    logger.info(
        "Scan of %s finished: score %s (%s), %d technologies, %d findings",
        page_url,
        security_score.overall,
        security_score.grade,
        len(technologies),
        len(findings),
    )
    return ScrapedData(
        title=title or "Untitled",
        url=page_url,
        meta={
            "description": _meta_content(soup, name="description"),
            "keywords": _meta_content(soup, name="keywords"),
            "author": _meta_content(soup, name="author"),
            "og_title": _meta_content(soup, property="og:title"),
            "og_description": _meta_content(soup, property="og:description"),
        },
        headings={
            level: [h.get_text(strip=True) for h in soup.find_all(level)]
            for level in ("h1", "h2", "h3")
        },
        links=links,
        images=images,
        technologies=technologies,
        ecommerce=ecommerce,
        subdomains=subdomains,
        scraping_policy=policy,
        security_analysis=analysis,
        security_score=security_score,
        site_type=resolved_type,
        site_context=context,
        users_detected=users,
        robots_txt_content=policy.robots_txt_content,
    )


def configure_logging(verbose: bool = False) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    handler.addFilter(RedactingFilter())
    root = logging.getLogger("sitelens")
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)


def main(argv: Optional[List[str]] = None) -> int:
    settings = ScanSettings.from_env()
    parser = argparse.ArgumentParser(description="SiteLens content analysis and risk scoring")
    parser.add_argument("--url", "-u", required=True, help="Target URL (including scheme).")
    parser.add_argument(
        "--site-type",
        "-t",
        default=None,
        help="Site category used for the baseline score (detected when omitted).",
    )
    parser.add_argument(
        "--no-ethical",
        dest="ethical_mode",
        action="store_false",
        default=settings.ethical_mode,
        help="Report robots.txt / terms prohibitions as warnings instead of stopping.",
    )
    parser.add_argument(
        "--output",
        "-o",
        default="report.json",
        help="File the JSON report is written to.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging.")
    args = parser.parse_args(argv)

    configure_logging(args.verbose)
    try:
        result = scan(args.url, args.site_type, args.ethical_mode, settings=settings)
    except ScanError as exc:
        print(f"Scan failed: {exc}", file=sys.stderr)
        return 2
    with open(args.output, "w", encoding="utf-8") as handle:
        json.dump(result.to_dict(), handle, ensure_ascii=False, indent=2)
    print(f"Report written to {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
