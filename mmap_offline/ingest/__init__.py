"""Tile origin HTTP access."""
from __future__ import annotations

import logging
from typing import Optional

import requests

log = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 15  # seconds
_DEFAULT_USER_AGENT = "MmapOfflineBuilder/1.0"


def make_session(user_agent: str = _DEFAULT_USER_AGENT) -> requests.Session:
    """HTTP session that identifies the client to the tile servers."""
    session = requests.Session()
    session.headers["User-Agent"] = user_agent
    return session


def fetch_tile_bytes(
    url: str,
    *,
    session: Optional[requests.Session] = None,
    timeout: float = _DEFAULT_TIMEOUT,
) -> bytes:
    """GET one tile image.

    Returns the body on HTTP 200.  Anything else raises: ``requests.HTTPError``
    for other status codes, ``requests.RequestException`` subclasses for
    connection problems and timeouts.  No retries; the caller decides.
    """
    getter = session or make_session()
    resp = getter.get(url, timeout=timeout)
    if resp.status_code != 200:
        raise requests.HTTPError(
            f"HTTP {resp.status_code} from {url}", response=resp,
        )
    return resp.content
