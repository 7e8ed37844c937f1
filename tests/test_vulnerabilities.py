import pytest

from sitelens.models import DetectedTechnology, Severity, VulnerabilityFinding
from sitelens.vulnerabilities import (
    CODE_PATTERN_FINDING,
    VulnerabilityMatcher,
    match_vulnerabilities,
    sort_by_severity,
    top_findings,
)


def test_known_vulnerable_jquery_version():
    findings = match_vulnerabilities([DetectedTechnology("jQuery", "3.4.1", "3.7.1")], "")
    assert len(findings) == 1
    finding = findings[0]
    assert finding.severity == Severity.HIGH
    assert finding.cve_id == "CVE-2020-11022"
    assert finding.recommendation == "Upgrade jQuery to 3.7.1"


def test_patched_or_unversioned_technologies_are_not_flagged():
    technologies = [
        DetectedTechnology("jQuery", "3.5.0"),
        DetectedTechnology("React", None),
        DetectedTechnology("Gatsby", "1.0.0"),
    ]
    assert match_vulnerabilities(technologies, "") == []


def test_version_rules_use_plain_prefix_matching():
    findings = match_vulnerabilities([DetectedTechnology("Vue.js", "3.10.0")], "")
    assert [f.name for f in findings] == ["Vue.js"]


def test_express_rule_matches_detected_name():
    findings = match_vulnerabilities([DetectedTechnology("Node.js/Express", "4.5.0")], "")
    assert findings and findings[0].severity == Severity.MEDIUM


def test_html_with_user_data_is_high():
    html = '<script>\n$("#x").html(nombre);\n</script>'
    findings = VulnerabilityMatcher().match_code_patterns(html)
    jquery = [f for f in findings if f.vulnerability.startswith("jQuery XSS via .html()")]
    assert len(jquery) == 1
    assert jquery[0].severity == Severity.HIGH
    assert jquery[0].line_numbers == [2]
    html_findings = [f for f in findings if ".html()" in f.vulnerability]
    assert all(f.severity == Severity.HIGH for f in html_findings)


def test_inner_html_string_literal_is_not_flagged():
    matcher = VulnerabilityMatcher()
    literal = matcher.match_code_patterns('<script>el.innerHTML = "<b>static</b>";</script>')
    assert not [f for f in literal if "innerHTML" in f.vulnerability]

    dynamic = matcher.match_code_patterns("<script>el.innerHTML = userInput;</script>")
    inner = [f for f in dynamic if "innerHTML" in f.vulnerability]
    assert len(inner) == 1
    assert inner[0].severity == Severity.MEDIUM


@pytest.mark.parametrize(
    "script",
    [
        'el.innerHTML = "<b>" + name + "</b>";',
        "el.innerHTML = `<b>${name}</b>`;",
        "el.innerHTML = '' + userInput;",
        "el.innerHTML += \"<li>\" + item;",
    ],
)
def test_inner_html_built_from_data_is_flagged(script):
    findings = VulnerabilityMatcher().match_code_patterns(f"<script>{script}</script>")
    assert [f for f in findings if "innerHTML" in f.vulnerability]


def test_line_numbers_are_capped_at_three():
    html = "\n".join(["<script>", "eval(a)", "", "eval(b)", "", "eval(c)", "", "eval(d)", "</script>"])
    findings = [f for f in match_vulnerabilities([], html) if "eval()" in f.vulnerability]
    assert len(findings) == 1
    finding = findings[0]
    assert finding.name == CODE_PATTERN_FINDING
    assert finding.line_numbers == [2, 4, 6]
    assert finding.additional_matches == 1
    assert finding.version == "Lines: 2, 4, 6 (+1 more)"


def test_clean_page_has_no_code_findings():
    assert match_vulnerabilities([], "<html><body><p>Hello</p></body></html>") == []


def _finding(severity, index):
    return VulnerabilityFinding(f"Lib{index}", "1.0", "issue", severity)


def test_sort_and_group_by_severity():
    findings = [_finding(Severity.LOW, 0), _finding(Severity.CRITICAL, 1)]
    findings += [_finding(Severity.HIGH, i) for i in range(2, 7)]
    ordered = sort_by_severity(findings)
    assert ordered[0].severity == Severity.CRITICAL
    assert ordered[-1].severity == Severity.LOW

    grouped = top_findings(findings, per_severity=3)
    assert len(grouped["high"]) == 3
    assert len(grouped["critical"]) == 1
    assert grouped["medium"] == []
