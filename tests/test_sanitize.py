import logging

from sitelens.sanitize import (
    RedactingFilter,
    mask_sensitive_text,
    perform_security_analysis,
    redact_context,
    sanitize_user_input,
    validate_scraping_url,
)


def test_plain_url_is_trimmed_and_safe():
    result = sanitize_user_input("  https://example.com/page?id=1  ")
    assert result.sanitized == "https://example.com/page?id=1"
    assert result.is_safe is True
    assert result.warnings == []


def test_script_and_javascript_urls_are_unsafe():
    assert sanitize_user_input("javascript:alert(1)").is_safe is False
    result = sanitize_user_input("https://example.com/<script>alert(1)</script>")
    assert result.is_safe is False
    assert "<script>" not in result.sanitized


def test_non_http_scheme_is_emptied():
    result = sanitize_user_input("ftp://example.com/file.txt")
    assert result.sanitized == ""
    assert result.is_safe is False


def test_long_input_is_truncated():
    result = sanitize_user_input("https://example.com/" + "a" * 2000)
    assert len(result.sanitized) == 1000
    assert result.warnings


def test_private_and_local_targets_are_rejected():
    for url in (
        "http://localhost:8000/",
        "http://app.localhost/",
        "http://127.0.0.1/",
        "http://10.0.0.5/",
        "http://192.168.1.20/",
        "http://169.254.169.254/latest/meta-data",
        "http://[::1]/",
    ):
        assert validate_scraping_url(url).is_valid is False, url


def test_public_http_targets_are_accepted():
    assert validate_scraping_url("https://example.com/").is_valid is True
    assert validate_scraping_url("http://93.184.216.34/").is_valid is True


def test_scheme_and_length_limits():
    assert "Only HTTP and HTTPS URLs are allowed" in validate_scraping_url("ftp://example.com").errors
    assert "URL is too long" in validate_scraping_url("https://example.com/" + "a" * 2100).errors


def test_security_analysis_flags_injection():
    risky = perform_security_analysis("<script>alert(1)</script>", context="url")
    assert risky.risk_level == "critical"
    assert "Possible code injection detected" in risky.issues

    clean = perform_security_analysis("https://example.com/", context="url")
    assert clean.risk_level == "low"
    assert clean.issues == []


def test_masking_and_redaction():
    assert mask_sensitive_text("mail jane@example.com from 10.1.2.3") == "mail [EMAIL] from [IP]"
    redacted = redact_context({"api_key": "abc", "note": "card 4111 1111 1111 1111", "count": 3})
    assert redacted == {"api_key": "[REDACTED]", "note": "card [CARD]", "count": 3}


def test_redacting_filter_masks_log_arguments():
    record = logging.LogRecord(
        "sitelens", logging.INFO, __file__, 1, "Contact %s", ("jane@example.com",), None
    )
    record.context = {"session_id": "s3cr3t"}
    assert RedactingFilter().filter(record) is True
    assert record.getMessage() == "Contact [EMAIL]"
    assert record.context == {"session_id": "[REDACTED]"}
