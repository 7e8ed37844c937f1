"""Site context derivation and context-aware risk of missing headers."""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .baselines import suggest_site_type
from .models import DetectedTechnology, SiteContext, round_half_up

USER_ACCESS_PATTERNS = (
    (re.compile(r"login", re.IGNORECASE), "Login"),
    (re.compile(r"register", re.IGNORECASE), "Registration"),
    (re.compile(r"sign\s*in", re.IGNORECASE), "Sign In"),
    (re.compile(r"sign\s*up", re.IGNORECASE), "Sign Up"),
    (re.compile(r"profile", re.IGNORECASE), "Profile"),
    (re.compile(r"account", re.IGNORECASE), "Account"),
    (re.compile(r"dashboard", re.IGNORECASE), "Dashboard"),
    (re.compile(r"admin", re.IGNORECASE), "Administration"),
    (re.compile(r"user", re.IGNORECASE), "User"),
    (re.compile(r"member", re.IGNORECASE), "Member"),
    (re.compile(r"author", re.IGNORECASE), "Author"),
    (re.compile(r"usuarios?", re.IGNORECASE), "Users"),
    (re.compile(r"miembros?", re.IGNORECASE), "Members"),
    (re.compile(r"perfil(?:es)?", re.IGNORECASE), "Profiles"),
    (re.compile(r"cuentas?", re.IGNORECASE), "Accounts"),
    (re.compile(r"iniciar\s*sesi[oó]n", re.IGNORECASE), "Login"),
    (re.compile(r"registr[ao]", re.IGNORECASE), "Registration"),
)

# Share of a missing header's weight still charged in a given context.
# Calibration data carried over unchanged, not derived values.
STATIC_SITE_PENALTY = {
    "content-security-policy": 0.3,
    "referrer-policy": 0.5,
    "permissions-policy": 0.4,
    "x-xss-protection": 0.1,
}
API_PENALTY = {
    "content-security-policy": 0.0,
    "x-frame-options": 0.0,
    "referrer-policy": 0.2,
}
BLOG_PORTFOLIO_PENALTY = {
    "content-security-policy": 0.4,
    "x-frame-options": 0.3,
    "referrer-policy": 1.1,
}

CONTEXT_MODIFIERS: Dict[str, Dict[str, float]] = {
    "static": {
        "content-security-policy": 0.3,
        "strict-transport-security": 1.0,
        "x-frame-options": 0.8,
        "x-content-type-options": 0.9,
        "referrer-policy": 0.5,
    },
    "ecommerce": {
        "content-security-policy": 1.2,
        "strict-transport-security": 1.1,
        "x-frame-options": 1.0,
        "x-content-type-options": 1.0,
        "referrer-policy": 0.8,
    },
    "api": {
        "content-security-policy": 0.0,
        "strict-transport-security": 0.9,
        "x-frame-options": 0.0,
        "x-content-type-options": 0.7,
        "referrer-policy": 0.2,
    },
    "single-page-app": {
        "content-security-policy": 0.9,
        "strict-transport-security": 1.0,
        "x-frame-options": 0.9,
        "x-content-type-options": 0.9,
        "referrer-policy": 0.7,
    },
    "blog-portfolio": {
        "content-security-policy": 0.4,
        "strict-transport-security": 0.8,
        "x-frame-options": 0.3,
        "x-content-type-options": 0.6,
        "referrer-policy": 1.1,
    },
}
BASE_CRITICALITY = {
    "content-security-policy": "CRITICAL",
    "strict-transport-security": "CRITICAL",
    "x-frame-options": "HIGH",
    "x-content-type-options": "HIGH",
    "referrer-policy": "MEDIUM",
    "permissions-policy": "MEDIUM",
    "x-xss-protection": "LOW",
}
CRITICALITY_ORDER = ("LOW", "MEDIUM", "HIGH", "CRITICAL")
CRITICALITY_RISK = {"CRITICAL": 100, "HIGH": 70, "MEDIUM": 40, "LOW": 15}
SIMPLE_CONTEXTS = ("static", "blog", "portfolio")


@dataclass
class UserDetection:
    has_users: bool
    access_points: List[str] = field(default_factory=list)


@dataclass
class MissingHeaderRisk:
    header_name: str
    original_criticality: str
    contextual_criticality: str
    risk_score: int
    context_modifier: float
    reason: str


@dataclass
class RiskAssessment:
    missing_headers: List[MissingHeaderRisk]
    overall_risk: str
    contextual_score: int
    recommendations: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def detect_users(html: str) -> UserDetection:
    labels: List[str] = []
    for pattern, label in USER_ACCESS_PATTERNS:
        if label not in labels and pattern.search(html or ""):
            labels.append(label)
    return UserDetection(has_users=bool(labels), access_points=labels)


def context_type_for(site_type: str) -> str:
    if site_type.startswith(("ecommerce-", "enterprise-")) or site_type == "saas-platform":
        return "enterprise"
    if site_type == "portfolio-professional":
        return "portfolio"
    if site_type == "blog-influencer":
        return "blog"
    if site_type == "government":
        return "government"
    return "enterprise"


def _target_audience(site_type: str) -> str:
    return {
        "financial": "financial",
        "government": "government",
        "enterprise-corporate": "enterprise",
    }.get(site_type, "general")


def _names(technologies: Iterable[DetectedTechnology]) -> List[str]:
    return [tech.name for tech in technologies]


def build_site_context(
    site_type: str,
    technologies: Sequence[DetectedTechnology],
    users: UserDetection,
    payment_methods: Sequence[str],
    external_links: int,
    uses_https: bool,
) -> SiteContext:
    names = _names(technologies)
    return SiteContext(
        type=context_type_for(site_type),
        has_user_generated_content=users.has_users,
        handles_financial_data=bool(payment_methods),
        has_login_system=users.has_users,
        allows_file_uploads="PHP" in names or "Node.js/Express" in names,
        uses_external_apis=external_links > 5,
        has_third_party_integrations=external_links > 3,
        is_public_facing=True,
        uses_https=uses_https,
        technology_stack=[name.lower() for name in names],
        target_audience=_target_audience(site_type),
    )


def determine_site_type(
    url: str,
    title: str,
    technologies: Sequence[DetectedTechnology],
    product_count: int,
    users: UserDetection,
) -> str:
    names = _names(technologies)
    if product_count > 50:
        return "ecommerce-premium"
    if product_count > 0:
        return "ecommerce-standard"
    if "React" in names or "Vue.js" in names:
        return "saas-platform"
    if users.has_users and len(users.access_points) > 3:
        return "enterprise-corporate"
    lowered = (title or "").lower()
    if "blog" in lowered or "portfolio" in lowered:
        return "portfolio-professional"
    return suggest_site_type(url)


def missing_header_modifier(header: str, context: Optional[SiteContext]) -> float:
    if context is None:
        return 1.0
    table = dict(STATIC_SITE_PENALTY)
    if context.type in ("api", "enterprise"):
        table.update(API_PENALTY)
    elif context.type in ("blog", "portfolio"):
        table.update(BLOG_PORTFOLIO_PENALTY)
    return table.get(header, 1.0)


class ContextualRiskAnalyzer:
    def __init__(self, modifiers: Mapping[str, Mapping[str, float]] = CONTEXT_MODIFIERS) -> None:
        self.modifiers = {name: dict(table) for name, table in modifiers.items()}

    def analyze(self, missing_headers: Iterable[str], context: SiteContext) -> RiskAssessment:
        criticality = self._base_criticality(context.type)
        modifiers = self._modifiers_for(context.type)
        risks: List[MissingHeaderRisk] = []
        for header in missing_headers:
            modifier = modifiers.get(header, 1.0)
            if modifier == 0.0:
                continue
            original = criticality.get(header, "MEDIUM")
            risks.append(
                MissingHeaderRisk(
                    header_name=header,
                    original_criticality=original,
                    contextual_criticality=self._adjust(original, modifier),
                    risk_score=self._risk_score(original, modifier, context),
                    context_modifier=modifier,
                    reason=self._reason(header, modifier, context),
                )
            )
        score = self._contextual_score(risks, context)
        return RiskAssessment(
            missing_headers=risks,
            overall_risk=self._overall(score, risks),
            contextual_score=score,
            recommendations=self._recommendations(risks, context),
        )

    def _base_criticality(self, context_type: str) -> Dict[str, str]:
        table = dict(BASE_CRITICALITY)
        if context_type in SIMPLE_CONTEXTS:
            table["content-security-policy"] = "HIGH"
            table["referrer-policy"] = "HIGH"
        elif context_type == "ecommerce":
            table["x-frame-options"] = "CRITICAL"
        elif context_type == "api":
            table["content-security-policy"] = "LOW"
            table["x-frame-options"] = "LOW"
        elif context_type in ("government", "enterprise"):
            table["permissions-policy"] = "HIGH"
        return table

    def _modifiers_for(self, context_type: str) -> Dict[str, float]:
        table = dict(self.modifiers["static"])
        overlay = {
            "static": "blog-portfolio",
            "blog": "blog-portfolio",
            "portfolio": "blog-portfolio",
            "ecommerce": "ecommerce",
            "api": "api",
            "single-page-app": "single-page-app",
        }.get(context_type)
        if overlay:
            table.update(self.modifiers[overlay])
        return table

    @staticmethod
    def _adjust(original: str, modifier: float) -> str:
        index = CRITICALITY_ORDER.index(original)
        if modifier >= 1.2:
            index = min(index + 1, len(CRITICALITY_ORDER) - 1)
        elif modifier <= 0.3:
            index = max(index - 1, 0)
        return CRITICALITY_ORDER[index]

    @staticmethod
    def _risk_score(original: str, modifier: float, context: SiteContext) -> int:
        score = CRITICALITY_RISK[original] * modifier
        if context.has_user_generated_content:
            score *= 1.3
        if context.handles_financial_data:
            score *= 1.5
        if context.has_login_system:
            score *= 1.2
        if context.is_public_facing:
            score *= 0.9
        return round_half_up(score)

    @staticmethod
    def _reason(header: str, modifier: float, context: SiteContext) -> str:
        if header == "content-security-policy":
            if modifier < 0.5:
                return "CSP matters less on static sites with little dynamic JavaScript."
            if modifier > 1.1:
                return "CSP is especially critical for dynamic content and payments."
            return "CSP prevents XSS in dynamic content."
        if header == "strict-transport-security":
            if not context.uses_https:
                return "HSTS needs HTTPS to have any effect."
            if modifier < 0.9:
                return "HSTS matters less for APIs than for public websites."
            return "HSTS prevents downgrade and man-in-the-middle attacks."
        if header == "x-frame-options":
            if modifier < 0.5:
                return "Clickjacking is unlikely on static sites."
            return "X-Frame-Options prevents clickjacking, notably on payment forms."
        if header == "x-content-type-options":
            if modifier < 0.8:
                return "MIME sniffing matters less for APIs."
            return "X-Content-Type-Options prevents MIME sniffing attacks."
        if header == "referrer-policy":
            if modifier > 1.0:
                return "Referrer control is especially important for privacy here."
            if modifier < 0.5:
                return "Referrer policy matters less on static sites."
            return "Referrer policy limits leakage of browsing information."
        direction = "increased" if modifier > 1 else "reduced"
        return f"{header} has {direction} risk in this context."

    @staticmethod
    def _contextual_score(risks: List[MissingHeaderRisk], context: SiteContext) -> int:
        if not risks:
            return 100
        base = max(0, 100 - sum(risk.risk_score for risk in risks))
        bonus = 0
        if context.uses_https:
            bonus += 5
        if context.has_user_generated_content and context.uses_external_apis:
            bonus += 3
        if context.type in ("blog", "portfolio"):
            bonus += 5
        return min(100, base + bonus)

    @staticmethod
    def _overall(score: int, risks: List[MissingHeaderRisk]) -> str:
        if score < 30 or any(r.contextual_criticality == "CRITICAL" for r in risks):
            return "CRITICAL"
        if score < 50 or any(r.contextual_criticality == "HIGH" for r in risks):
            return "HIGH"
        if score < 70:
            return "MEDIUM"
        if score < 85:
            return "LOW"
        return "MINIMAL"

    @staticmethod
    def _recommendations(risks: List[MissingHeaderRisk], context: SiteContext) -> List[str]:
        recommendations: List[str] = []
        critical = [r.header_name for r in risks if r.contextual_criticality == "CRITICAL"]
        if critical:
            recommendations.append("High priority: add " + ", ".join(critical))
        if context.type == "ecommerce":
            recommendations.append("Use a strict nonce-based CSP to protect payment pages")
            recommendations.append("Enable HSTS with preload")
        elif context.type == "api":
            recommendations.append("Focus on HSTS and X-Content-Type-Options for APIs")
        elif context.type in SIMPLE_CONTEXTS:
            recommendations.append("A basic CSP limited to 'self' and known CDNs is enough here")
        if "react" in context.technology_stack:
            recommendations.append("React: avoid dangerouslySetInnerHTML or sanitize with DOMPurify")
        if "vue.js" in context.technology_stack:
            recommendations.append("Vue: sanitize any content rendered through v-html")
        return recommendations


def analyze_contextual_risk(missing_headers: Iterable[str], context: SiteContext) -> RiskAssessment:
    return ContextualRiskAnalyzer().analyze(missing_headers, context)
