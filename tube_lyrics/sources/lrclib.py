from __future__ import annotations

import logging

import requests

from tube_lyrics.errors import ParseFailure

from .base import LyricsProvider
from .http import new_session, request_json
from .types import ProviderResult, TrackCandidate

logger = logging.getLogger(__name__)

BASE_URL = "https://lrclib.net/api"


def _text(value) -> str | None:
    if not value:
        return None
    return str(value).rstrip() + "\n"


class LrcLibProvider(LyricsProvider):
    name = "lrclib"

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

    def _get(self, path: str, params: dict | None = None, *, not_found_ok: bool = False):
        return request_json(
            self.session,
            "GET",
            f"{BASE_URL}{path}",
            source=self.name,
            params=params,
            timeout=self.timeout_s,
            max_retries=self.max_retries,
            backoff_base_s=self.backoff_base_s,
            not_found_ok=not_found_ok,
        )

    def _candidate(self, item: dict) -> TrackCandidate:
        synced = _text(item.get("syncedLyrics"))
        plain = _text(item.get("plainLyrics"))
        return TrackCandidate(
            provider=self.name,
            id=item.get("id"),
            track_name=item.get("trackName") or "",
            artist_name=item.get("artistName") or "",
            album_name=item.get("albumName") or "",
            duration=item.get("duration"),
            instrumental=bool(item.get("instrumental", False)),
            has_synced_lyrics=synced is not None,
            has_plain_lyrics=plain is not None,
            synced_lyrics_text=synced,
            plain_lyrics_text=plain,
        )

    def search(self, query: str) -> list[TrackCandidate]:
        data = self._get("/search", {"q": query})
        if not isinstance(data, list):
            raise ParseFailure(self.name, "search response is not a list")
        results = [self._candidate(item) for item in data if isinstance(item, dict)]
        logger.debug("lrclib search %r: %d results", query, len(results))
        return results

    def fetch_lyrics(self, candidate: TrackCandidate) -> ProviderResult:
        inline = self.inline_result(candidate)
        if inline is not None:
            return inline
        if candidate.id is None:
            return ProviderResult(provider_name=self.name)

        data = self._get(f"/get/{candidate.id}", not_found_ok=True)
        if data is None:
            return ProviderResult(provider_name=self.name)
        if not isinstance(data, dict):
            raise ParseFailure(self.name, "lyrics response is not an object")
        full = self._candidate(data)
        return ProviderResult(
            provider_name=self.name,
            synced_text=full.synced_lyrics_text,
            plain_text=full.plain_lyrics_text,
            track_name=full.track_name or candidate.track_name,
            artist_name=full.artist_name or candidate.artist_name,
        )
