"""Contextual security score: baseline + header quality + vulnerability penalty + bonus.

The steps are applied in a fixed order and the total is clamped to 0..100
before grading. Scores are rounded half-up, so ``-2.5`` becomes ``-2``.
"""

from __future__ import annotations

from typing import Callable, Dict, Iterable, Mapping, Optional, Tuple, Union

from .baselines import BASELINES, ScoringBaseline, get_baseline
from .context import missing_header_modifier
from .models import (
    HeaderComponent,
    RiskLevel,
    ScoreDetails,
    SecurityHeaderReport,
    SecurityScore,
    Severity,
    SiteContext,
    VulnerabilityComponent,
    VulnerabilityCounts,
    VulnerabilityFinding,
    round_half_up,
)

# (header, weight, criticality)
HEADER_WEIGHTS: Tuple[Tuple[str, int, str], ...] = (
    ("content-security-policy", 25, "CRITICAL"),
    ("strict-transport-security", 20, "CRITICAL"),
    ("x-frame-options", 15, "HIGH"),
    ("x-content-type-options", 12, "HIGH"),
    ("referrer-policy", 8, "MEDIUM"),
    ("permissions-policy", 6, "MEDIUM"),
    ("x-xss-protection", 3, "LOW"),
)
SEVERITY_WEIGHTS: Dict[Severity, int] = {
    Severity.CRITICAL: 25,
    Severity.HIGH: 12,
    Severity.MEDIUM: 5,
    Severity.LOW: 2,
}
SEVERITY_CAPS: Dict[Severity, int] = {
    Severity.CRITICAL: 3,
    Severity.HIGH: 5,
    Severity.MEDIUM: 8,
    Severity.LOW: 10,
}
MAX_VULNERABILITY_PENALTY = 30
GRADE_STEPS: Tuple[Tuple[int, str], ...] = (
    (95, "A+"),
    (90, "A"),
    (85, "A-"),
    (80, "B+"),
    (75, "B"),
    (70, "B-"),
    (65, "C+"),
    (60, "C"),
    (55, "C-"),
    (50, "D"),
)

HeaderInput = Union[SecurityHeaderReport, Mapping[str, str]]
VulnerabilityInput = Union[VulnerabilityCounts, Iterable[VulnerabilityFinding]]
PenaltyModifier = Callable[[str, Optional[SiteContext]], float]


def csp_quality(value: str) -> float:
    csp = value.lower()
    quality = 0.5
    for directive in ("default-src", "script-src", "style-src"):
        if directive in csp:
            quality += 0.2
    if "'unsafe-inline'" not in csp:
        quality += 0.3
    if "nonce-" in csp or "sha256-" in csp:
        quality += 0.2
    return min(quality, 1.0)


def hsts_quality(value: str) -> float:
    hsts = value.lower()
    quality = 0.3
    if "max-age=" in hsts:
        quality += 0.3
    if "includesubdomains" in hsts:
        quality += 0.2
    if "preload" in hsts:
        quality += 0.2
    return min(quality, 1.0)


def header_quality(header: str, value: str) -> float:
    if header == "content-security-policy":
        return csp_quality(value)
    if header == "strict-transport-security":
        return hsts_quality(value)
    if header == "x-frame-options":
        upper = value.upper()
        return 1.0 if "DENY" in upper or "SAMEORIGIN" in upper else 0.7
    return 1.0


def grade_for(score: float) -> str:
    for threshold, grade in GRADE_STEPS:
        if score >= threshold:
            return grade
    return "F"


def risk_level_for(score: float, counts: VulnerabilityCounts) -> RiskLevel:
    if score >= 85 and counts.critical == 0 and counts.high <= 1:
        return RiskLevel.LOW
    if score >= 70 and counts.critical == 0:
        return RiskLevel.MEDIUM
    if score >= 50 or counts.high > 2:
        return RiskLevel.HIGH
    return RiskLevel.CRITICAL


def _header_values(headers: HeaderInput) -> Dict[str, str]:
    if isinstance(headers, SecurityHeaderReport):
        return headers.header_values()
    return {str(k).lower(): str(v) for k, v in headers.items()}


def _counts(vulnerabilities: VulnerabilityInput) -> VulnerabilityCounts:
    if isinstance(vulnerabilities, VulnerabilityCounts):
        return vulnerabilities
    return VulnerabilityCounts.from_findings(vulnerabilities)


class RiskScorer:
    def __init__(
        self,
        baselines: Mapping[str, ScoringBaseline] = BASELINES,
        header_weights: Iterable[Tuple[str, int, str]] = HEADER_WEIGHTS,
        severity_weights: Mapping[Severity, int] = SEVERITY_WEIGHTS,
        severity_caps: Mapping[Severity, int] = SEVERITY_CAPS,
        max_vulnerability_penalty: int = MAX_VULNERABILITY_PENALTY,
        penalty_modifier: PenaltyModifier = missing_header_modifier,
    ) -> None:
        self.baselines = dict(baselines)
        self.header_weights = tuple(header_weights)
        self.severity_weights = dict(severity_weights)
        self.severity_caps = dict(severity_caps)
        self.max_vulnerability_penalty = max_vulnerability_penalty
        self.penalty_modifier = penalty_modifier

    def score(
        self,
        headers: HeaderInput,
        vulnerabilities: VulnerabilityInput,
        site_type: Optional[str],
        context: Optional[SiteContext] = None,
        *,
        strict: bool = True,
    ) -> SecurityScore:
        baseline = get_baseline(site_type, strict=strict, baselines=self.baselines)
        values = _header_values(headers)
        counts = _counts(vulnerabilities)

        header_component = self.header_component(values, context)
        vulnerability_component = self.vulnerability_component(counts)
        bonus = self.bonus(values, counts, context)

        raw_total = (
            baseline.base_score + header_component.score + vulnerability_component.score + bonus
        )
        total = max(0.0, min(100.0, float(raw_total)))
        return SecurityScore(
            overall=round_half_up(total),
            grade=grade_for(total),
            risk_level=risk_level_for(total, counts),
            details=ScoreDetails(
                baseline=baseline.base_score,
                headers=header_component,
                vulnerabilities=vulnerability_component,
                bonus=bonus,
                total=total,
            ),
            site_type=baseline.site_type,
        )

    def header_component(
        self, values: Mapping[str, str], context: Optional[SiteContext]
    ) -> HeaderComponent:
        present_points = 0.0
        missing_points = 0.0
        for header, weight, _criticality in self.header_weights:
            value = values.get(header)
            if value:
                present_points += weight * header_quality(header, value)
            else:
                missing_points -= weight * self.penalty_modifier(header, context)
        return HeaderComponent(
            present=round_half_up(present_points),
            missing=round_half_up(missing_points),
            score=round_half_up(present_points + missing_points),
        )

    def vulnerability_component(self, counts: VulnerabilityCounts) -> VulnerabilityComponent:
        penalty = sum(
            self.severity_weights[severity] * min(counts.get(severity), self.severity_caps[severity])
            for severity in Severity
        )
        penalty = min(penalty, self.max_vulnerability_penalty)
        return VulnerabilityComponent(
            critical=counts.critical,
            high=counts.high,
            medium=counts.medium,
            low=counts.low,
            score=-round_half_up(penalty) if penalty else 0,
        )

    @staticmethod
    def bonus(
        values: Mapping[str, str], counts: VulnerabilityCounts, context: Optional[SiteContext]
    ) -> int:
        bonus = 0
        if "max-age" in values.get("strict-transport-security", "").lower():
            bonus += 5
        if counts.total == 0:
            bonus += 3
        elif counts.total <= 2:
            bonus += 1
        if context is not None:
            if context.type in ("blog", "portfolio") and not context.has_user_generated_content:
                bonus += 2
            if not (
                context.handles_financial_data
                or context.has_login_system
                or context.allows_file_uploads
            ):
                bonus += 3
        return bonus


_DEFAULT_SCORER = RiskScorer()


def score(
    headers: HeaderInput,
    vulnerabilities: VulnerabilityInput,
    site_type: Optional[str],
    context: Optional[SiteContext] = None,
    *,
    strict: bool = True,
) -> SecurityScore:
    return _DEFAULT_SCORER.score(headers, vulnerabilities, site_type, context, strict=strict)
