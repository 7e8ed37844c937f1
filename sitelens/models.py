"""Result types shared by the analyzers, the scorer and the scan pipeline."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional


def _without_none(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in payload.items() if v is not None}


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """0 for the most severe level, growing towards LOW."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
}


class RiskLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


@dataclass
class DetectedTechnology:
    name: str
    version: Optional[str] = None
    current_version: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _without_none(asdict(self))


@dataclass
class VulnerabilityFinding:
    name: str
    version: str
    vulnerability: str
    severity: Severity
    line_numbers: Optional[List[int]] = None
    additional_matches: Optional[int] = None
    recommendation: Optional[str] = None
    cve_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = _without_none(asdict(self))
        payload["severity"] = self.severity.value
        return payload


@dataclass
class VulnerabilityCounts:
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0

    @classmethod
    def from_findings(cls, findings: Iterable[VulnerabilityFinding]) -> "VulnerabilityCounts":
        counts = cls()
        for finding in findings:
            key = Severity(finding.severity).value
            setattr(counts, key, getattr(counts, key) + 1)
        return counts

    @property
    def total(self) -> int:
        return self.critical + self.high + self.medium + self.low

    def get(self, severity: Severity) -> int:
        return getattr(self, severity.value)


@dataclass
class HeaderStatus:
    present: bool
    valid: bool
    content: str


@dataclass
class InfoDisclosure:
    server_exposed: bool
    powered_by_exposed: bool
    server: Optional[str] = None
    powered_by: Optional[str] = None


@dataclass
class SecurityHeaderReport:
    csp: HeaderStatus
    hsts: HeaderStatus
    xss_protection: HeaderStatus
    content_type_options: HeaderStatus
    referrer_policy: HeaderStatus
    frame_options: HeaderStatus
    permissions_policy: HeaderStatus
    info_disclosure: InfoDisclosure
    hsts_max_age: Optional[int] = None

    def tracked(self) -> Dict[str, HeaderStatus]:
        """Tracked headers keyed by their lowercased HTTP name."""
        return {
            "content-security-policy": self.csp,
            "strict-transport-security": self.hsts,
            "x-frame-options": self.frame_options,
            "x-content-type-options": self.content_type_options,
            "referrer-policy": self.referrer_policy,
            "permissions-policy": self.permissions_policy,
            "x-xss-protection": self.xss_protection,
        }

    def header_values(self) -> Dict[str, str]:
        return {name: status.content for name, status in self.tracked().items() if status.present}

    def missing_headers(self) -> List[str]:
        return [name for name, status in self.tracked().items() if not status.present]

    def to_dict(self) -> Dict[str, Any]:
        return _without_none(asdict(self))


@dataclass
class SSLAnalysis:
    has_ssl: bool
    # Inferred from the URL scheme only, no certificate chain is verified.
    valid_certificate: bool
    tls_version: str
    https_enabled: bool
    protocol_version: str
    certificate_issuer: str = "Unknown"
    cipher_suite: str = "Unknown"
    mixed_content: bool = False
    days_remaining: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ScrapingPolicy:
    robots_txt_allowed: bool
    terms_of_service_restricted: bool
    scraping_prohibited: bool
    robots_txt_checked: bool
    terms_checked: bool
    robots_txt_content: Optional[str] = None
    terms_url: Optional[str] = None
    matched_term: Optional[str] = None

    @property
    def prohibition_reason(self) -> Optional[str]:
        if not self.scraping_prohibited:
            return None
        return "robots" if not self.robots_txt_allowed else "terms"

    def to_dict(self) -> Dict[str, Any]:
        payload = _without_none(asdict(self))
        payload.pop("robots_txt_content", None)
        return payload


@dataclass
class SiteContext:
    type: str
    has_user_generated_content: bool = False
    handles_financial_data: bool = False
    has_login_system: bool = False
    allows_file_uploads: bool = False
    uses_external_apis: bool = False
    has_third_party_integrations: bool = False
    is_public_facing: bool = True
    uses_https: bool = True
    technology_stack: List[str] = field(default_factory=list)
    target_audience: str = "general"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class HeaderComponent:
    present: int
    missing: int
    score: int


@dataclass(frozen=True)
class VulnerabilityComponent:
    critical: int
    high: int
    medium: int
    low: int
    score: int


@dataclass(frozen=True)
class ScoreDetails:
    baseline: int
    headers: HeaderComponent
    vulnerabilities: VulnerabilityComponent
    bonus: int
    total: float


@dataclass(frozen=True)
class SecurityScore:
    overall: int
    grade: str
    risk_level: RiskLevel
    details: ScoreDetails
    site_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = _without_none(asdict(self))
        payload["risk_level"] = self.risk_level.value
        return payload


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves towards positive infinity."""
    return int(math.floor(value + 0.5))
