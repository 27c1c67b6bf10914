from __future__ import annotations

import logging
from typing import Any

import requests

from tube_lyrics.errors import AuthExpired, ParseFailure, ProviderUnavailable

from .base import LyricsProvider
from .http import json_object, new_session, request_json
from .types import ProviderResult, TrackCandidate

logger = logging.getLogger(__name__)

SEARCH_URL = "https://api.deezer.com/search"
GATEWAY_URL = "https://www.deezer.com/ajax/gw-light.php"
_TOKEN_ERRORS = ("VALID_TOKEN_REQUIRED", "GATEWAY_ERROR")


class DeezerProvider(LyricsProvider):
    """Deezer search API plus the web gateway's song.getLyrics (LyricFind data)."""

    name = "deezer"

    def __init__(
        self,
        *,
        timeout_s: float = 10.0,
        max_retries: int = 2,
        backoff_base_s: float = 1.0,
        session: requests.Session | None = None,
    ):
        self.timeout_s = timeout_s
        self.max_retries = max_retries
        self.backoff_base_s = backoff_base_s
        self.session = session or new_session()
        self._token: str | None = None

    def clear_token(self) -> None:
        self._token = None

    def _request(self, method: str, url: str, **kwargs) -> Any:
        return request_json(
            self.session,
            method,
            url,
            source=self.name,
            timeout=self.timeout_s,
            max_retries=self.max_retries,
            backoff_base_s=self.backoff_base_s,
            **kwargs,
        )

    def _gateway(self, method: str, body: dict | None = None, *, token: str) -> dict | None:
        data = self._request(
            "POST",
            GATEWAY_URL,
            params={"api_version": "1.0", "api_token": token, "input": "3", "method": method},
            json_body=body or {},
        )
        if not isinstance(data, dict):
            raise ParseFailure(self.name, f"{method}: response is not an object")
        error = data.get("error")
        if error:
            keys = error.keys() if isinstance(error, dict) else ()
            if any(k in keys for k in _TOKEN_ERRORS):
                self.clear_token()
                raise AuthExpired(self.name, f"{method}: {error}")
            if "DATA_ERROR" in keys:
                return None
            raise ProviderUnavailable(self.name, f"{method}: {error}")
        results = data.get("results")
        return results if isinstance(results, dict) else None

    def _api_token(self) -> str:
        if self._token:
            return self._token
        results = self._gateway("deezer.getUserData", token="null")
        token = (results or {}).get("checkForm")
        if not token:
            raise AuthExpired(self.name, "deezer.getUserData returned no checkForm")
        self._token = str(token)
        return self._token

    def _authed(self, method: str, body: dict) -> dict | None:
        try:
            return self._gateway(method, body, token=self._api_token())
        except AuthExpired:
            logger.info("deezer rejected the api token on %s, retrying once", method)
            return self._gateway(method, body, token=self._api_token())

    def search(self, query: str) -> list[TrackCandidate]:
        data = self._request("GET", SEARCH_URL, params={"q": query})
        if not isinstance(data, dict):
            raise ParseFailure(self.name, "search response is not an object")
        if data.get("error"):
            raise ProviderUnavailable(self.name, f"search: {data['error']}")
        out: list[TrackCandidate] = []
        for item in data.get("data") or []:
            if not isinstance(item, dict):
                continue
            out.append(
                TrackCandidate(
                    provider=self.name,
                    id=item.get("id"),
                    track_name=item.get("title") or "",
                    artist_name=json_object(item, "artist", source=self.name).get("name") or "",
                    album_name=json_object(item, "album", source=self.name).get("title") or "",
                    duration=item.get("duration"),
                )
            )
        logger.debug("deezer search %r: %d results", query, len(out))
        return out

    def fetch_lyrics(self, candidate: TrackCandidate) -> ProviderResult:
        results = self._authed("song.getLyrics", {"sng_id": str(candidate.id)}) or {}

        synced: str | None = None
        chunks = results.get("LYRICS_SYNC_JSON") or []
        if not isinstance(chunks, list):
            raise ParseFailure(self.name, "LYRICS_SYNC_JSON is not a list")
        lines = [
            f"{chunk['lrc_timestamp']} {chunk.get('line') or ''}".rstrip()
            for chunk in chunks
            if isinstance(chunk, dict) and chunk.get("lrc_timestamp")
        ]
        if lines:
            synced = "\n".join(lines) + "\n"
        plain = results.get("LYRICS_TEXT") or None

        return ProviderResult(
            provider_name=self.name,
            synced_text=synced,
            plain_text=str(plain) if plain else None,
            track_name=candidate.track_name,
            artist_name=candidate.artist_name,
        )
