import json

import pytest

from sitelens import scanner
from sitelens.config import ScanSettings
from sitelens.errors import FetchFailed, MalformedInput, PolicyRejected, UnknownSiteType
from sitelens.fetching import FetchResponse
from sitelens.headers import analyze_headers, analyze_ssl
from sitelens.models import Severity

SHOP_URL = "https://shop.example.com/"


def test_full_scan_of_a_store(shop_site):
    result = scanner.scan(SHOP_URL, fetch=shop_site, settings=ScanSettings())

    assert result.title == "Mug Shop"
    assert result.url == SHOP_URL
    assert result.meta["description"] == "Handmade mugs"
    assert result.headings["h1"] == ["Mugs"]
    assert result.site_type == "ecommerce-standard"
    assert result.ecommerce.total_products == 2

    by_name = {tech.name: tech for tech in result.technologies}
    assert by_name["jQuery"].version == "3.4.1"

    findings = result.security_analysis.vulnerable_technologies
    assert [(f.name, f.severity) for f in findings] == [("jQuery", Severity.HIGH)]

    assert result.security_analysis.external_links == 1
    assert result.security_analysis.images_without_alt == 1
    assert result.security_analysis.ssl_analysis.https_enabled is True
    assert result.scraping_policy.scraping_prohibited is False
    assert result.robots_txt_content.startswith("User-agent")

    assert [s.url for s in result.subdomains] == ["https://blog.example.com"]
    assert result.subdomains[0].title == "Mug Blog"

    assert result.site_context.type == "enterprise"
    assert result.security_score.details.baseline == 75
    assert result.security_score.overall == 97
    assert result.security_score.grade == "A+"


def test_report_is_json_serializable(shop_site):
    payload = scanner.scan(SHOP_URL, fetch=shop_site, settings=ScanSettings()).to_dict()
    encoded = json.loads(json.dumps(payload))

    assert encoded["security_score"]["risk_level"] == "Low"
    assert encoded["security_analysis"]["top_findings"]["high"][0]["name"] == "jQuery"
    assert encoded["security_analysis"]["industry_comparison"]["industry"] == "retail"
    assert "robots_txt_content" not in encoded["scraping_policy"]


def test_explicit_site_type_is_used(shop_site):
    result = scanner.scan(SHOP_URL, "financial", fetch=shop_site, settings=ScanSettings())
    assert result.site_type == "financial"
    assert result.security_score.details.baseline == 95


def test_unknown_site_type_fails_before_network(fake_fetcher):
    fetch = fake_fetcher()
    with pytest.raises(UnknownSiteType):
        scanner.scan(SHOP_URL, "casino", fetch=fetch, settings=ScanSettings())
    assert fetch.calls == []


@pytest.mark.parametrize(
    "url",
    ["javascript:alert(1)", "http://127.0.0.1/admin", "ftp://example.com/", "", "not a url"],
)
def test_malformed_input_fails_before_network(fake_fetcher, url):
    fetch = fake_fetcher()
    with pytest.raises(MalformedInput) as excinfo:
        scanner.scan(url, fetch=fetch, settings=ScanSettings())
    assert excinfo.value.issues
    assert fetch.calls == []


def test_robots_prohibition_stops_ethical_scan(shop_site):
    shop_site.pages["https://shop.example.com/robots.txt"] = "User-agent: *\nDisallow: /\n"
    with pytest.raises(PolicyRejected) as excinfo:
        scanner.scan(SHOP_URL, fetch=shop_site, settings=ScanSettings())

    assert excinfo.value.reason == "robots"
    assert SHOP_URL not in shop_site.calls


def test_prohibition_is_advisory_outside_ethical_mode(shop_site):
    shop_site.pages["https://shop.example.com/robots.txt"] = "User-agent: *\nDisallow: /\n"
    result = scanner.scan(SHOP_URL, ethical_mode=False, fetch=shop_site, settings=ScanSettings())

    assert result.scraping_policy.scraping_prohibited is True
    assert result.title == "Mug Shop"


def test_failed_page_fetch(shop_site):
    shop_site.pages[SHOP_URL] = FetchResponse(SHOP_URL, 503, {}, "maintenance")
    with pytest.raises(FetchFailed) as excinfo:
        scanner.scan(SHOP_URL, fetch=shop_site, settings=ScanSettings())
    assert excinfo.value.status_code == 503
    assert "unavailable" in excinfo.value.explanation


def test_subdomain_failure_does_not_fail_the_scan(shop_site):
    shop_site.errors["https://blog.example.com"] = FetchFailed("https://blog.example.com")
    result = scanner.scan(SHOP_URL, fetch=shop_site, settings=ScanSettings())
    assert result.subdomains[0].status == "error"


def test_subdomain_scans_can_be_disabled(shop_site):
    result = scanner.scan(SHOP_URL, fetch=shop_site, settings=ScanSettings(max_subdomains=0))
    assert result.subdomains == []
    assert "https://blog.example.com" not in shop_site.calls


def test_progress_events_are_best_effort(shop_site):
    events = []

    def record(event):
        events.append(event["phase"])
        raise RuntimeError("listener went away")

    scanner.scan(SHOP_URL, fetch=shop_site, settings=ScanSettings(), progress_callback=record)
    assert events == ["policy", "fetch", "analysis", "subdomains", "scoring"]


def test_privacy_score_for_bare_http_site():
    report = analyze_headers({})
    ssl = analyze_ssl("http://example.com/", {})
    assert scanner.calculate_privacy_score(report, ssl, [], 0, 0) == 49.0


def test_cli_writes_report(tmp_path, monkeypatch, shop_site):
    monkeypatch.setattr(scanner, "make_fetcher", lambda user_agent: shop_site)
    output = tmp_path / "report.json"

    assert scanner.main(["--url", SHOP_URL, "--output", str(output)]) == 0
    assert json.loads(output.read_text(encoding="utf-8"))["title"] == "Mug Shop"


def test_cli_exit_status_on_scan_error(tmp_path, capsys):
    assert scanner.main(["--url", "http://localhost/", "--output", str(tmp_path / "r.json")]) == 2
    assert "Scan failed" in capsys.readouterr().err


def test_lookalike_domains_count_as_external():
    links = [
        {"href": "https://evilexample.com/x"},
        {"href": "https://cdn.example.com/a"},
        {"href": "/about"},
    ]
    assert scanner._count_external_links(links, "https://example.com/") == 1
