from sitelens.config import DEFAULT_TIMEOUT, MAX_SUBDOMAIN_WORKERS, ScanSettings
from sitelens.errors import FetchFailed, explain_status


def test_defaults_without_environment(monkeypatch):
    for name in ("SITELENS_TIMEOUT", "SITELENS_SUBDOMAIN_WORKERS", "SITELENS_POLICY_FAIL_OPEN"):
        monkeypatch.delenv(name, raising=False)
    settings = ScanSettings.from_env()
    assert settings.timeout == DEFAULT_TIMEOUT
    assert settings.subdomain_workers == MAX_SUBDOMAIN_WORKERS
    assert settings.policy_fail_open is True


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("SITELENS_TIMEOUT", "30")
    monkeypatch.setenv("SITELENS_SUBDOMAIN_WORKERS", "64")
    monkeypatch.setenv("SITELENS_MAX_SUBDOMAINS", "-5")
    monkeypatch.setenv("SITELENS_POLICY_FAIL_OPEN", "no")
    monkeypatch.setenv("SITELENS_USER_AGENT", "AuditBot/1.0")
    settings = ScanSettings.from_env()
    assert settings.timeout == 30
    assert settings.subdomain_workers == MAX_SUBDOMAIN_WORKERS
    assert settings.max_subdomains == 0
    assert settings.policy_fail_open is False
    assert settings.user_agent == "AuditBot/1.0"


def test_invalid_numbers_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("SITELENS_TIMEOUT", "soon")
    assert ScanSettings.from_env().timeout == DEFAULT_TIMEOUT


def test_fetch_failures_carry_an_explanation():
    timed_out = FetchFailed("https://example.com/", timed_out=True)
    assert timed_out.explanation == explain_status(None, timed_out=True)
    assert "HTTP 404" in str(FetchFailed("https://example.com/", 404))
