from typing import Any, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from mixpkg import APP_NAME

SAFE_REQUEST_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})

DEFAULT_RETRY_OPTIONS: dict[str, Any] = {
    "total": 5,
    "read": 5,
    "connect": 5,
    "backoff_factor": 1.3,
    "status_forcelist": (500, 502, 503, 504),
}


def get_requests_session(retry_options: Optional[dict[str, Any]] = None) -> requests.Session:
    """Create a requests session with retries.

    :param dict retry_options: overwrite options for initialization of Retry instance
    :return: the configured requests session
    :rtype: requests.Session
    """
    session = requests.Session()
    session.headers["User-Agent"] = APP_NAME
    retry_options = {**DEFAULT_RETRY_OPTIONS, **(retry_options or {})}
    adapter = HTTPAdapter(max_retries=Retry(**retry_options))
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session
