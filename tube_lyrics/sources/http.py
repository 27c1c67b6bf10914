from __future__ import annotations

import logging
import time
from typing import Any

import requests

from tube_lyrics.errors import ParseFailure, ProviderUnavailable

logger = logging.getLogger(__name__)

USER_AGENT = "tube-lyrics/0.1"


def new_session() -> requests.Session:
    s = requests.Session()
    s.headers.update({"User-Agent": USER_AGENT, "Accept": "application/json"})
    return s


def request_json(
    session: requests.Session,
    method: str,
    url: str,
    *,
    source: str,
    timeout: float,
    max_retries: int,
    backoff_base_s: float,
    params: dict[str, Any] | None = None,
    json_body: Any = None,
    headers: dict[str, str] | None = None,
    not_found_ok: bool = False,
) -> Any:
    """
    Perform a request and decode JSON, retrying transport errors with linear backoff.

    Raises ProviderUnavailable once retries are exhausted and ParseFailure on a
    body that is not JSON. Returns None for a 404 when not_found_ok is set.
    """
    attempts = max(max_retries, 1)
    for attempt in range(1, attempts + 1):
        try:
            r = session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=headers,
                timeout=timeout,
            )
            if r.status_code == 404 and not_found_ok:
                return None
            r.raise_for_status()
        except requests.RequestException as e:
            logger.warning("%s error (attempt %s/%s): %s", source, attempt, attempts, e)
            if attempt == attempts:
                raise ProviderUnavailable(source, str(e)) from e
            time.sleep(backoff_base_s * attempt)
            continue

        try:
            return r.json()
        except ValueError as e:
            raise ParseFailure(source, f"malformed JSON from {url}") from e

    raise ProviderUnavailable(source, "no attempts made")


def json_object(parent: Any, key: str, *, source: str) -> dict:
    """`parent[key]` as a dict; missing or empty means {}, any other type is a ParseFailure."""
    value = parent.get(key) if isinstance(parent, dict) else None
    if not value:
        return {}
    if not isinstance(value, dict):
        raise ParseFailure(source, f"{key!r} is {type(value).__name__}, expected an object")
    return value
