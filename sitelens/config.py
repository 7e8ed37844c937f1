from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_USER_AGENT = "SiteLensBot/2.0 (+https://sitelens.example)"
DEFAULT_TIMEOUT = 12
DEFAULT_POLICY_TIMEOUT = 6
DEFAULT_MAX_SUBDOMAINS = 10
MAX_SUBDOMAIN_WORKERS = 10


def _read_limit_from_env(var_name: str, default: int, minimum: int) -> int:
    value = os.getenv(var_name)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return max(minimum, parsed)


def _read_flag_from_env(var_name: str, default: bool) -> bool:
    value = os.getenv(var_name)
    if value is None:
        return default
    return value.strip().lower() not in {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class ScanSettings:
    user_agent: str = DEFAULT_USER_AGENT
    timeout: int = DEFAULT_TIMEOUT
    policy_timeout: int = DEFAULT_POLICY_TIMEOUT
    # Unreachable robots.txt / terms pages count as "no restriction found".
    policy_fail_open: bool = True
    max_subdomains: int = DEFAULT_MAX_SUBDOMAINS
    subdomain_workers: int = MAX_SUBDOMAIN_WORKERS
    ethical_mode: bool = True

    @classmethod
    def from_env(cls) -> "ScanSettings":
        workers = _read_limit_from_env("SITELENS_SUBDOMAIN_WORKERS", MAX_SUBDOMAIN_WORKERS, 1)
        return cls(
            user_agent=os.getenv("SITELENS_USER_AGENT", DEFAULT_USER_AGENT),
            timeout=_read_limit_from_env("SITELENS_TIMEOUT", DEFAULT_TIMEOUT, 1),
            policy_timeout=_read_limit_from_env("SITELENS_POLICY_TIMEOUT", DEFAULT_POLICY_TIMEOUT, 1),
            policy_fail_open=_read_flag_from_env("SITELENS_POLICY_FAIL_OPEN", True),
            max_subdomains=_read_limit_from_env("SITELENS_MAX_SUBDOMAINS", DEFAULT_MAX_SUBDOMAINS, 0),
            subdomain_workers=min(workers, MAX_SUBDOMAIN_WORKERS),
            ethical_mode=_read_flag_from_env("SITELENS_ETHICAL_MODE", True),
        )
