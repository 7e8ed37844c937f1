"""Known-vulnerable versions and risky inline JavaScript patterns.

Version rules use plain string-prefix matching: ``"3.1."`` also matches
``"3.10.0"``. The table is hand-maintained, not a live advisory feed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .models import DetectedTechnology, Severity, VulnerabilityFinding

CODE_PATTERN_FINDING = "JavaScript Code Pattern"
MAX_REPORTED_LINES = 3


@dataclass(frozen=True)
class VulnerabilityRule:
    match_key: str
    description: str
    severity: Severity
    version_prefixes: Tuple[str, ...] = ()
    cve_id: Optional[str] = None

    def matches(self, version: str) -> bool:
        return any(version.startswith(prefix) for prefix in self.version_prefixes)


@dataclass(frozen=True)
class CodePatternRule:
    title: str
    pattern: str
    severity: Severity
    impact: str
    recommendation: str
    flags: int = re.IGNORECASE


DEFAULT_RULES: Tuple[VulnerabilityRule, ...] = (
    VulnerabilityRule(
        "jQuery",
        "jQuery XSS vulnerabilities and prototype pollution (CVE-2020-11022, CVE-2020-11023)",
        Severity.HIGH,
        ("1.", "2.", "3.0.", "3.1.", "3.2.", "3.3.", "3.4."),
        "CVE-2020-11022",
    ),
    VulnerabilityRule(
        "React",
        "XSS vulnerability via dangerouslySetInnerHTML and URL parsing (CVE-2019-7580)",
        Severity.HIGH,
        ("15.", "16.", "17.0.", "17.1.", "17.2."),
        "CVE-2019-7580",
    ),
    VulnerabilityRule(
        "WordPress",
        "WordPress XSS, SQL Injection, and RCE vulnerabilities (Multiple CVEs)",
        Severity.CRITICAL,
        ("4.", "5.0.", "5.1.", "5.2.", "5.3.", "5.4.", "5.5.", "5.6.", "5.7.", "5.8."),
        "CVE-2022-39986",
    ),
    VulnerabilityRule(
        "PHP",
        "PHP multiple vulnerabilities including RCE and file inclusion (CVE-2023-3247)",
        Severity.CRITICAL,
        ("5.", "7.0.", "7.1.", "7.2.", "7.3.", "7.4."),
        "CVE-2023-3247",
    ),
    VulnerabilityRule(
        "Angular",
        "Angular XSS vulnerability in template parsing (CVE-2020-5216)",
        Severity.HIGH,
        ("1.", "2.", "4.", "5.", "6.", "7.", "8.", "9.", "10.", "11.", "12.", "13.", "14."),
        "CVE-2020-5216",
    ),
    VulnerabilityRule(
        "Vue.js",
        "XSS vulnerability via v-html directive (CVE-2023-2649)",
        Severity.HIGH,
        ("2.0.", "2.1.", "2.2.", "2.3.", "2.4.", "2.5.", "2.6.", "3.0.", "3.1."),
        "CVE-2023-2649",
    ),
    VulnerabilityRule(
        "Bootstrap",
        "Bootstrap XSS vulnerability in tooltip/popover (CVE-2019-8331)",
        Severity.MEDIUM,
        ("3.", "4.", "5.0.", "5.1."),
        "CVE-2019-8331",
    ),
    VulnerabilityRule(
        "jQuery UI",
        "jQuery UI XSS vulnerability in removeClass function",
        Severity.HIGH,
        ("1.10.", "1.11.", "1.12."),
    ),
    VulnerabilityRule(
        "Moment.js",
        "Moment.js path traversal vulnerability (CVE-2022-24729)",
        Severity.HIGH,
        ("2.22.", "2.23.", "2.24.", "2.25.", "2.26."),
        "CVE-2022-24729",
    ),
    VulnerabilityRule(
        "Lodash",
        "Lodash prototype pollution vulnerability (CVE-2019-10744)",
        Severity.CRITICAL,
        ("4.17.0", "4.17.1", "4.17.2", "4.17.3", "4.17.4"),
        "CVE-2019-10744",
    ),
    VulnerabilityRule(
        "Node.js/Express",
        "Express framework XSS and open redirect vulnerabilities",
        Severity.MEDIUM,
        ("4.0.", "4.1.", "4.2.", "4.3.", "4.4.", "4.5.", "4.6."),
    ),
)

DEFAULT_CODE_PATTERNS: Tuple[CodePatternRule, ...] = (
    CodePatternRule(
        "Use of dangerous eval() function",
        r"eval\s*\(",
        Severity.HIGH,
        "Allows arbitrary JavaScript execution, enabling RCE and XSS",
        "Avoid eval(); use JSON.parse() for data or predefined functions",
    ),
    CodePatternRule(
        "Potential XSS via document.write()",
        r"document\.write\s*\(",
        Severity.MEDIUM,
        "Can execute malicious code when unsanitized data is written",
        "Use textContent or createElement to build the DOM",
    ),
    CodePatternRule(
        "Potential XSS via innerHTML assignment",
        # A lone quoted literal on the right-hand side is static markup.
        r"innerHTML\s*\+?=(?!=)(?!\s*(?:\"[^\"\n]*\"|'[^'\n]*'|`[^`$\n]*`)\s*(?:;|$|</))",
        Severity.MEDIUM,
        "Allows injection of malicious HTML/JavaScript into the DOM",
        "Use textContent, createElement() or a sanitization library",
        flags=re.IGNORECASE | re.MULTILINE,
    ),
    CodePatternRule(
        "XSS via .html() with potentially unsafe content",
        r"\.html\s*\(\s*[^)]*(?:atob|base64|nombre|variantListHtml|userContent|dataInput|htmlContent)[^)]*\)",
        Severity.HIGH,
        "Decoded (base64) data or user input passed to .html() can inject code",
        "Use .text() for text content and sanitize data before calling .html()",
    ),
    CodePatternRule(
        "jQuery XSS via .html() with decoded/base64 content",
        r"\$\([^)]*\)\.html\s*\(\s*(?:[^)]*atob|[^)]*base64|[^)]*nombre|[^)]*variantListHtml)",
        Severity.HIGH,
        "Passing decoded base64 data to .html() can run malicious scripts",
        "Validate and sanitize content before .html(), use .text() for plain text",
    ),
    CodePatternRule(
        "Potential XSS via setTimeout with string parameter",
        r"setTimeout\s*\(\s*['\"]",
        Severity.MEDIUM,
        "Strings passed to setTimeout are evaluated as code",
        "Pass a function to setTimeout instead of a string",
    ),
    CodePatternRule(
        "Potential redirect/open redirect attack",
        r"location\s*=\s*['\"]?['\"]?\s*\+",
        Severity.MEDIUM,
        "Redirects to attacker-controlled sites built from user data",
        "Validate redirect targets against an allowlist of domains",
    ),
    CodePatternRule(
        "Console logging in production code",
        r"console\.(log|error|warn)\s*\(",
        Severity.LOW,
        "Can expose sensitive information in the user's browser",
        "Remove console logging from production builds or use a logging library",
    ),
    CodePatternRule(
        "Debug mode enabled in production",
        r"debug\s*=\s*true",
        Severity.MEDIUM,
        "Exposed debugging information helps attackers",
        "Disable debug mode in production and configure it per environment",
    ),
)


def _format_lines(lines: List[int]) -> str:
    if not lines:
        return "Lines: unknown"
    shown = ", ".join(str(n) for n in lines[:MAX_REPORTED_LINES])
    remainder = len(lines) - MAX_REPORTED_LINES
    return f"Lines: {shown} (+{remainder} more)" if remainder > 0 else f"Lines: {shown}"


class VulnerabilityMatcher:
    def __init__(
        self,
        rules: Sequence[VulnerabilityRule] = DEFAULT_RULES,
        code_patterns: Sequence[CodePatternRule] = DEFAULT_CODE_PATTERNS,
    ) -> None:
        self.rules = tuple(rules)
        self.code_patterns = tuple(code_patterns)

    def match(
        self, technologies: Iterable[DetectedTechnology], html: str
    ) -> List[VulnerabilityFinding]:
        return self.match_technologies(technologies) + self.match_code_patterns(html)

    def match_technologies(
        self, technologies: Iterable[DetectedTechnology]
    ) -> List[VulnerabilityFinding]:
        findings: List[VulnerabilityFinding] = []
        for tech in technologies:
            if not tech.version:
                continue
            for rule in self.rules:
                if rule.match_key != tech.name or not rule.matches(tech.version):
                    continue
                target = tech.current_version or "the latest supported release"
                findings.append(
                    VulnerabilityFinding(
                        name=tech.name,
                        version=tech.version,
                        vulnerability=rule.description,
                        severity=rule.severity,
                        recommendation=f"Upgrade {tech.name} to {target}",
                        cve_id=rule.cve_id,
                    )
                )
        return findings

    def match_code_patterns(self, html: str) -> List[VulnerabilityFinding]:
        findings: List[VulnerabilityFinding] = []
        if not html:
            return findings
        lines = html.split("\n")
        for rule in self.code_patterns:
            matcher = re.compile(rule.pattern, rule.flags)
            if not matcher.search(html):
                continue
            found = [index for index, line in enumerate(lines, start=1) if matcher.search(line)]
            extra = len(found) - MAX_REPORTED_LINES
            findings.append(
                VulnerabilityFinding(
                    name=CODE_PATTERN_FINDING,
                    version=_format_lines(found),
                    vulnerability=f"{rule.title} - {rule.impact}",
                    severity=rule.severity,
                    line_numbers=found[:MAX_REPORTED_LINES],
                    additional_matches=extra if extra > 0 else None,
                    recommendation=rule.recommendation,
                )
            )
        return findings


def sort_by_severity(findings: Iterable[VulnerabilityFinding]) -> List[VulnerabilityFinding]:
    return sorted(findings, key=lambda finding: Severity(finding.severity).rank)


def top_findings(
    findings: Iterable[VulnerabilityFinding], per_severity: int = 3
) -> Dict[str, List[VulnerabilityFinding]]:
    grouped: Dict[str, List[VulnerabilityFinding]] = {level.value: [] for level in Severity}
    for finding in sort_by_severity(findings):
        bucket = grouped[Severity(finding.severity).value]
        if len(bucket) < per_severity:
            bucket.append(finding)
    return grouped


_DEFAULT_MATCHER = VulnerabilityMatcher()


def match_vulnerabilities(
    technologies: Iterable[DetectedTechnology], html: str
) -> List[VulnerabilityFinding]:
    return _DEFAULT_MATCHER.match(technologies, html)
