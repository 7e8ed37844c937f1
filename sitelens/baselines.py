"""Per-site-type scoring baselines and industry benchmarks.

The numbers are calibration data: starting scores and header expectations per
category of site, not values derived from a model.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .errors import UnknownSiteType

CSP = "content-security-policy"
HSTS = "strict-transport-security"
XFO = "x-frame-options"
XCTO = "x-content-type-options"
REFERRER = "referrer-policy"

QUALITY_MULTIPLIERS = {"basic": 0.6, "good": 0.8, "excellent": 1.0}


@dataclass(frozen=True)
class ExpectedHeader:
    name: str
    expected: bool
    quality: str
    weight: int

    @property
    def expected_points(self) -> float:
        return self.weight * QUALITY_MULTIPLIERS[self.quality]


@dataclass(frozen=True)
class ScoringBaseline:
    site_type: str
    description: str
    base_score: int
    expected_headers: Tuple[ExpectedHeader, ...]
    typical_vulnerabilities: int
    industry: str
    risk_profile: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class IndustryBenchmark:
    industry: str
    average_score: int
    top_10_percent: int
    median_score: int


@dataclass
class ScoreGap:
    area: str
    expected: float
    actual: float
    gap: float
    priority: str


@dataclass
class BaselineRecommendation:
    category: str
    action: str
    expected_impact: float
    difficulty: str
    timeframe: str


def _headers(*entries: Tuple[str, bool, str, int]) -> Tuple[ExpectedHeader, ...]:
    return tuple(ExpectedHeader(*entry) for entry in entries)


def _baseline(site_type, description, base_score, headers, typical, industry, profile):
    return ScoringBaseline(
        site_type=site_type,
        description=description,
        base_score=base_score,
        expected_headers=headers,
        typical_vulnerabilities=typical,
        industry=industry,
        risk_profile=profile,
    )


_ALL_EXCELLENT = _headers(
    (CSP, True, "excellent", 25),
    (HSTS, True, "excellent", 20),
    (XFO, True, "excellent", 15),
    (XCTO, True, "excellent", 12),
    (REFERRER, True, "excellent", 8),
)
_ALL_GOOD = _headers(
    (CSP, True, "good", 25),
    (HSTS, True, "good", 20),
    (XFO, True, "good", 15),
    (XCTO, True, "good", 12),
    (REFERRER, True, "good", 8),
)

BASELINES: Dict[str, ScoringBaseline] = {
    b.site_type: b
    for b in (
        _baseline(
            "ecommerce-standard", "Standard online store", 75,
            _headers(
                (CSP, True, "good", 25),
                (HSTS, True, "good", 20),
                (XFO, True, "good", 15),
                (XCTO, True, "good", 12),
                (REFERRER, False, "basic", 8),
            ),
            1, "retail", "conservative",
        ),
        _baseline(
            "ecommerce-premium", "Large or premium e-commerce", 85,
            _ALL_EXCELLENT, 0, "retail", "conservative",
        ),
        _baseline(
            "enterprise-smb", "Small and medium business site", 70,
            _headers(
                (CSP, True, "basic", 25),
                (HSTS, True, "good", 20),
                (XFO, True, "basic", 15),
                (XCTO, True, "good", 12),
            ),
            2, "services", "moderate",
        ),
        _baseline(
            "enterprise-corporate", "Large corporate site", 80,
            _headers(
                (CSP, True, "good", 25),
                (HSTS, True, "excellent", 20),
                (XFO, True, "good", 15),
                (XCTO, True, "good", 12),
                (REFERRER, True, "good", 8),
            ),
            1, "services", "conservative",
        ),
        _baseline(
            "portfolio-professional", "Professional portfolio or personal site", 65,
            _headers(
                (CSP, True, "basic", 20),
                (HSTS, True, "good", 15),
                (XFO, False, "basic", 8),
                (XCTO, True, "good", 10),
            ),
            1, "services", "moderate",
        ),
        _baseline(
            "saas-platform", "SaaS platform", 78,
            _ALL_GOOD, 1, "technology", "conservative",
        ),
        _baseline(
            "government", "Government site", 90,
            _ALL_EXCELLENT, 0, "government", "conservative",
        ),
        _baseline(
            "financial", "Financial institution", 95,
            _ALL_EXCELLENT, 0, "finance", "conservative",
        ),
        _baseline(
            "healthcare", "Health and medical site", 85,
            _headers(
                (CSP, True, "excellent", 25),
                (HSTS, True, "excellent", 20),
                (XFO, True, "good", 15),
                (XCTO, True, "good", 12),
            ),
            1, "healthcare", "conservative",
        ),
        _baseline(
            "education", "Education and university site", 75,
            _headers(
                (CSP, True, "good", 25),
                (HSTS, True, "good", 20),
                (XFO, True, "good", 15),
                (XCTO, True, "good", 12),
            ),
            1, "education", "moderate",
        ),
        _baseline(
            "media-publisher", "News media and publishers", 70,
            _headers(
                (CSP, True, "basic", 20),
                (HSTS, True, "good", 15),
                (XFO, False, "basic", 10),
                (XCTO, True, "good", 12),
            ),
            2, "media", "moderate",
        ),
        _baseline(
            "blog-influencer", "Personal blog or influencer site", 60,
            _headers(
                (CSP, True, "basic", 15),
                (HSTS, True, "good", 12),
                (XFO, False, "basic", 5),
                (XCTO, True, "good", 8),
            ),
            1, "media", "moderate",
        ),
        _baseline(
            "landing-page-conversion", "Marketing and conversion landing page", 65,
            _headers(
                (CSP, True, "basic", 18),
                (HSTS, True, "good", 15),
                (XFO, True, "good", 12),
                (XCTO, True, "good", 10),
            ),
            1, "services", "moderate",
        ),
    )
}

DEFAULT_BASELINE = _baseline(
    "default", "Unclassified site", 80, _ALL_GOOD, 1, "services", "moderate"
)

INDUSTRY_BENCHMARKS: Dict[str, IndustryBenchmark] = {
    name: IndustryBenchmark(name, average, top10, median)
    for name, average, top10, median in (
        ("retail", 72, 88, 70),
        ("finance", 85, 96, 83),
        ("government", 78, 92, 76),
        ("healthcare", 74, 89, 72),
        ("education", 68, 84, 66),
        ("technology", 76, 90, 74),
        ("media", 65, 82, 63),
        ("manufacturing", 69, 85, 67),
        ("services", 71, 87, 69),
        ("nonprofit", 62, 80, 60),
    )
}


def get_baseline(
    site_type: Optional[str],
    strict: bool = True,
    baselines: Mapping[str, ScoringBaseline] = BASELINES,
) -> ScoringBaseline:
    baseline = baselines.get(site_type) if site_type else None
    if baseline is not None:
        return baseline
    if strict:
        raise UnknownSiteType(str(site_type))
    return DEFAULT_BASELINE


def industry_benchmark(site_type: str, strict: bool = True) -> IndustryBenchmark:
    return INDUSTRY_BENCHMARKS[get_baseline(site_type, strict=strict).industry]


def _actual_quality_points(header: str, value: str) -> float:
    if header == CSP:
        points = 10
        points += 5 if "default-src" in value else 0
        points += 5 if "script-src" in value else 0
        points += 3 if "style-src" in value else 0
        points += 4 if "'unsafe-inline'" not in value else 0
        points += 3 if ("nonce-" in value or "sha256-" in value) else 0
        return min(25, points)
    if header == HSTS:
        points = 10
        points += 5 if "max-age=" in value else 0
        points += 3 if "includesubdomains" in value.lower() else 0
        points += 2 if "preload" in value else 0
        return min(20, points)
    if header == XFO:
        upper = value.upper()
        return 15 if "DENY" in upper or "SAMEORIGIN" in upper else 8
    if header == XCTO:
        return 12 if value.strip().lower() == "nosniff" else 6
    if header == REFERRER:
        return 8
    return 5


def _gap_priority(weight: float) -> str:
    if weight >= 20:
        return "critical"
    if weight >= 15:
        return "high"
    return "medium"


def identify_gaps(header_values: Mapping[str, str], baseline: ScoringBaseline) -> List[ScoreGap]:
    lookup = {k.lower(): v for k, v in header_values.items()}
    gaps: List[ScoreGap] = []
    for header in baseline.expected_headers:
        value = lookup.get(header.name)
        if not value:
            if header.expected:
                gaps.append(
                    ScoreGap(header.name, header.weight, 0, header.weight, _gap_priority(header.weight))
                )
            continue
        actual = _actual_quality_points(header.name, value)
        gap = header.expected_points - actual
        if gap > 5:
            gaps.append(
                ScoreGap(
                    header.name,
                    header.expected_points,
                    actual,
                    gap,
                    "high" if gap >= 15 else "medium",
                )
            )
    return sorted(gaps, key=lambda g: g.gap, reverse=True)


def baseline_recommendations(gaps: List[ScoreGap]) -> List[BaselineRecommendation]:
    recommendations = [
        BaselineRecommendation("Security Headers", f"Implement {g.area}", g.gap, "easy", "1-2 days")
        for g in gaps
        if g.priority == "critical"
    ]
    high = [g for g in gaps if g.priority == "high"][:3]
    recommendations.extend(
        BaselineRecommendation("Security Headers", f"Improve {g.area}", round(g.gap * 0.7, 2), "medium", "3-5 days")
        for g in high
    )
    return recommendations


def suggest_site_type(url: str, description: Optional[str] = None) -> str:
    url_lower = url.lower()
    desc = (description or "").lower()
    if any(word in url_lower for word in ("shop", "store", "cart")):
        return "ecommerce-standard"
    if any(word in desc for word in ("retail", "tienda", "ecommerce")):
        return "ecommerce-standard"
    if any(word in desc for word in ("corporate", "empresa", "business")):
        return "enterprise-smb"
    if any(word in desc for word in ("portfolio", "personal", "profesional")):
        return "portfolio-professional"
    if "saas" in url_lower or "app" in url_lower or "software" in desc:
        return "saas-platform"
    return "enterprise-smb"
