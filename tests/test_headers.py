from sitelens.headers import NOT_PRESENT, analyze_headers, analyze_ssl, csp_is_valid, hsts_is_valid


def test_hsts_requires_one_year_max_age():
    assert hsts_is_valid("max-age=31536000") is True
    assert hsts_is_valid("max-age=31535999; includeSubDomains") is False
    assert hsts_is_valid("includeSubDomains") is False


def test_hsts_max_age_is_reported():
    report = analyze_headers({"Strict-Transport-Security": "max-age=63072000; preload"})
    assert report.hsts.present is True
    assert report.hsts.valid is True
    assert report.hsts_max_age == 63072000


def test_csp_unsafe_inline_needs_nonce_or_hash():
    assert csp_is_valid("default-src 'self'; script-src 'self'") is True
    assert csp_is_valid("default-src 'self'; script-src 'self' 'unsafe-inline'") is False
    assert csp_is_valid("default-src 'self'; script-src 'nonce-abc' 'unsafe-inline'") is True
    assert csp_is_valid("script-src 'self'") is False


def test_header_lookup_is_case_insensitive():
    report = analyze_headers(
        {
            "CONTENT-SECURITY-POLICY": "default-src 'self'; script-src 'self'",
            "x-content-type-options": "NoSniff",
            "Referrer-Policy": "strict-origin-when-cross-origin",
            "X-Frame-Options": "DENY",
        }
    )
    assert report.csp.valid is True
    assert report.content_type_options.valid is True
    assert report.referrer_policy.valid is True
    assert report.frame_options.valid is True


def test_missing_headers_are_marked_not_present():
    report = analyze_headers({})
    assert report.csp.present is False
    assert report.csp.content == NOT_PRESENT
    assert report.permissions_policy.present is False
    assert "content-security-policy" in report.missing_headers()
    assert report.header_values() == {}


def test_csp_can_stand_in_for_xss_protection():
    report = analyze_headers({"Content-Security-Policy": "object-src 'none'; script-src 'self'"})
    assert report.xss_protection.present is False
    assert report.xss_protection.valid is True

    legacy = analyze_headers({"X-XSS-Protection": "1; mode=block"})
    assert legacy.xss_protection.valid is True
    assert analyze_headers({"X-XSS-Protection": "0"}).xss_protection.valid is False


def test_server_and_powered_by_disclosure():
    report = analyze_headers({"Server": "nginx/1.18.0", "X-Powered-By": "PHP/7.4.3"})
    assert report.info_disclosure.server_exposed is True
    assert report.info_disclosure.powered_by_exposed is True

    quiet = analyze_headers({"Server": "cloudflare"})
    assert quiet.info_disclosure.server_exposed is False
    assert quiet.info_disclosure.powered_by_exposed is False


def test_ssl_is_inferred_from_scheme():
    plain = analyze_ssl("http://example.com/", {})
    assert plain.https_enabled is False
    assert plain.valid_certificate is False
    assert plain.protocol_version == "N/A"

    secure = analyze_ssl("https://example.com/", {"Server": "Apache/2.4.41"})
    assert secure.https_enabled is True
    assert secure.protocol_version == "TLS 1.2"
    assert secure.days_remaining is None

    assert analyze_ssl("https://example.com/", {"Server": "gws"}).protocol_version == "TLS 1.2+"


def test_mixed_content_on_https_page():
    html = '<html><body><script src="http://cdn.example.net/app.js"></script></body></html>'
    assert analyze_ssl("https://example.com/", {}, html).mixed_content is True
    assert analyze_ssl("http://example.com/", {}, html).mixed_content is False
    clean = '<html><body><img src="https://cdn.example.net/a.png"></body></html>'
    assert analyze_ssl("https://example.com/", {}, clean).mixed_content is False
