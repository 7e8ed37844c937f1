"""Ethical-scraping admission checks: robots.txt directives and terms pages.

The gate fails open by default. When robots.txt or a terms page cannot be
fetched, the check reports "no restriction found" and logs a warning; only an
explicit disallow or restriction text is surfaced. Pass ``fail_open=False`` (or
set ``SITELENS_POLICY_FAIL_OPEN=0``) to treat unreachable policy documents as
restrictive instead.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple
from urllib.parse import urljoin, urlparse

import requests
from bs4 import BeautifulSoup

from .config import DEFAULT_POLICY_TIMEOUT, DEFAULT_USER_AGENT
from .errors import FetchFailed
from .fetching import Fetcher, make_fetcher
from .models import ScrapingPolicy

logger = logging.getLogger("sitelens.policy")
logger.addHandler(logging.NullHandler())

POLICY_PATHS = (
    "/terms",
    "/terms-of-service",
    "/tos",
    "/legal",
    "/privacy",
    "/privacy-policy",
    "/conditions",
    "/conditions-of-use",
)
# Longer phrases first so the reported term is the most specific one.
RESTRICTION_TERMS = (
    "no automated access",
    "no scraping",
    "scraping",
    "scrape",
    "crawler",
    "crawl",
)
FULL_SITE_PATHS = {"/", "/*"}


@dataclass
class RobotsGroup:
    agents: List[str] = field(default_factory=list)
    rules: List[Tuple[str, str]] = field(default_factory=list)

    def blocks_entire_site(self) -> bool:
        disallowed = any(d == "disallow" and p in FULL_SITE_PATHS for d, p in self.rules)
        reopened = any(d == "allow" and p in FULL_SITE_PATHS for d, p in self.rules)
        return disallowed and not reopened


@dataclass
class RobotsOutcome:
    allowed: bool
    checked: bool
    content: Optional[str] = None


@dataclass
class TermsOutcome:
    restricted: bool
    checked: bool
    url: Optional[str] = None
    term: Optional[str] = None


def parse_robots_txt(text: str) -> List[RobotsGroup]:
    groups: List[RobotsGroup] = []
    current: Optional[RobotsGroup] = None
    for raw_line in text.lstrip("\ufeff").splitlines():
        line = raw_line.split("#", 1)[0].strip()
        if not line or ":" not in line:
            continue
        directive, value = line.split(":", 1)
        directive = directive.strip().lstrip("\ufeff").lower()
        value = value.strip()
        if directive == "user-agent":
            # Consecutive User-agent lines share one group.
            if current is None or current.rules:
                current = RobotsGroup()
                groups.append(current)
            current.agents.append(value.lower())
        elif directive in ("allow", "disallow") and current is not None:
            current.rules.append((directive, value))
    return groups


def _agent_names(user_agent: str) -> Tuple[str, str]:
    lowered = user_agent.strip().lower()
    return lowered, lowered.split("/", 1)[0].strip()


def robots_allows(text: str, user_agent: str = DEFAULT_USER_AGENT) -> bool:
    groups = parse_robots_txt(text)
    names = _agent_names(user_agent)
    specific = [g for g in groups if any(agent in names for agent in g.agents)]
    if specific:
        return not any(group.blocks_entire_site() for group in specific)
    wildcard = [g for g in groups if "*" in g.agents]
    return not any(group.blocks_entire_site() for group in wildcard)


def _origin(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


class PolicyGate:
    def __init__(
        self,
        fetch: Optional[Fetcher] = None,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: int = DEFAULT_POLICY_TIMEOUT,
        fail_open: bool = True,
        policy_paths: Sequence[str] = POLICY_PATHS,
        restriction_terms: Sequence[str] = RESTRICTION_TERMS,
    ) -> None:
        self.fetch = fetch or make_fetcher(user_agent)
        self.user_agent = user_agent
        self.timeout = timeout
        self.fail_open = fail_open
        self.policy_paths = tuple(policy_paths)
        self.restriction_terms = tuple(term.lower() for term in restriction_terms)

    def evaluate(self, base_url: str) -> ScrapingPolicy:
        origin = _origin(base_url)
        with ThreadPoolExecutor(max_workers=2) as executor:
            robots_future = executor.submit(self.check_robots, origin)
            terms_future = executor.submit(self.check_terms, origin)
            robots = robots_future.result()
            terms = terms_future.result()

        policy = ScrapingPolicy(
            robots_txt_allowed=robots.allowed,
            terms_of_service_restricted=terms.restricted,
            scraping_prohibited=not robots.allowed or terms.restricted,
            robots_txt_checked=robots.checked,
            terms_checked=terms.checked,
            robots_txt_content=robots.content,
            terms_url=terms.url,
            matched_term=terms.term,
        )
        if policy.scraping_prohibited:
            logger.info("Scraping of %s is prohibited (%s)", origin, policy.prohibition_reason)
        return policy

    def check_robots(self, origin: str) -> RobotsOutcome:
        robots_url = urljoin(origin + "/", "/robots.txt")
        try:
            resp = self.fetch(robots_url, self.timeout)
        except (FetchFailed, requests.RequestException) as exc:
            logger.warning("Could not fetch %s: %s", robots_url, exc)
            return RobotsOutcome(allowed=self.fail_open, checked=False)
        if not resp.ok:
            logger.debug("No robots.txt at %s (HTTP %s)", robots_url, resp.status_code)
            return RobotsOutcome(allowed=True, checked=True)
        return RobotsOutcome(
            allowed=robots_allows(resp.text, self.user_agent),
            checked=True,
            content=resp.text,
        )

    def check_terms(self, origin: str) -> TermsOutcome:
        checked = False
        for path in self.policy_paths:
            page_url = urljoin(origin + "/", path)
            try:
                resp = self.fetch(page_url, self.timeout)
            except (FetchFailed, requests.RequestException) as exc:
                logger.warning("Could not fetch %s: %s", page_url, exc)
                if not self.fail_open:
                    return TermsOutcome(restricted=True, checked=checked, url=page_url)
                continue
            checked = True
            if not resp.ok:
                continue
            term = self._find_restriction(resp.text)
            if term:
                return TermsOutcome(restricted=True, checked=True, url=page_url, term=term)
        return TermsOutcome(restricted=False, checked=checked)

    def _find_restriction(self, html: str) -> Optional[str]:
        text = BeautifulSoup(html, "html.parser").get_text(" ").lower()
        for term in self.restriction_terms:
            if term in text:
                return term
        return None


def evaluate_policy(base_url: str, fetch: Optional[Fetcher] = None, **options) -> ScrapingPolicy:
    return PolicyGate(fetch, **options).evaluate(base_url)
