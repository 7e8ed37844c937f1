from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

import requests

from .config import DEFAULT_TIMEOUT, DEFAULT_USER_AGENT
from .errors import FetchFailed

logger = logging.getLogger("sitelens.fetching")
logger.addHandler(logging.NullHandler())

_THREAD_LOCAL_SESSION: threading.local = threading.local()


@dataclass
class FetchResponse:
    url: str
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    text: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


# (url, timeout) -> FetchResponse; raises FetchFailed on network errors.
Fetcher = Callable[..., FetchResponse]


def _get_thread_session(user_agent: str) -> requests.Session:
    sessions = getattr(_THREAD_LOCAL_SESSION, "sessions", None)
    if sessions is None:
        sessions = {}
        setattr(_THREAD_LOCAL_SESSION, "sessions", sessions)
    session = sessions.get(user_agent)
    if session is None:
        session = requests.Session()
        session.headers.update({"User-Agent": user_agent, "Accept": "*/*"})
        sessions[user_agent] = session
    return session


def http_fetch(
    url: str,
    timeout: int = DEFAULT_TIMEOUT,
    *,
    user_agent: str = DEFAULT_USER_AGENT,
) -> FetchResponse:
    session = _get_thread_session(user_agent)
    try:
        resp = session.get(url, timeout=timeout, allow_redirects=True)
    except requests.Timeout as exc:
        logger.warning("Request GET %s timed out: %s", url, exc)
        raise FetchFailed(url, timed_out=True, detail=str(exc)) from exc
    except requests.RequestException as exc:
        if logger.isEnabledFor(logging.DEBUG):
            logger.exception("Request GET %s failed", url)
        else:
            logger.warning("Request GET %s failed: %s", url, exc)
        raise FetchFailed(url, detail=str(exc)) from exc
    return FetchResponse(
        url=resp.url,
        status_code=resp.status_code,
        headers={k: v for k, v in resp.headers.items()},
        text=resp.text or "",
    )


def make_fetcher(user_agent: str) -> Fetcher:
    def fetch(url: str, timeout: int = DEFAULT_TIMEOUT) -> FetchResponse:
        return http_fetch(url, timeout, user_agent=user_agent)

    return fetch


def lowercase_headers(headers: Optional[Dict[str, str]]) -> Dict[str, str]:
    return {str(k).lower(): str(v) for k, v in (headers or {}).items()}
