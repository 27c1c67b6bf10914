"""
Musixmatch desktop API provider.

Tokens are per-instance and expire after ten minutes; a 401 anywhere clears
the token and the call is retried once with a fresh one.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable

import requests

from tube_lyrics.errors import AuthExpired, ParseFailure, ProviderUnavailable
from tube_lyrics.lrc.export import format_lrc_time

from .base import LyricsProvider
from .http import json_object, new_session, request_json
from .types import ProviderResult, TrackCandidate

logger = logging.getLogger(__name__)

ROOT_URL = "https://apic-desktop.musixmatch.com/ws/1.1/"
APP_ID = "web-desktop-app-v1.0"
TOKEN_TTL_S = 600.0
SEARCH_PAGE_SIZE = 5


def richsync_to_lrc(raw: str, source: str = "musixmatch") -> str:
    """
    Convert a richsync body (JSON list of {ts, te, l: [{c, o}]}) to enhanced LRC.

    Character offsets `o` are relative to the line start `ts`; `te` becomes a
    closing stamp so the last syllable gets an end time.
    """
    try:
        items = json.loads(raw)
        out: list[str] = []
        for item in items:
            ts = float(item["ts"])
            parts = [f"[{format_lrc_time(ts)}] "]
            for piece in item.get("l") or []:
                c = str(piece.get("c", ""))
                if not c.strip():
                    parts.append(" ")
                    continue
                parts.append(f"<{format_lrc_time(ts + float(piece.get('o', 0)))}>{c}")
            if item.get("te") is not None:
                parts.append(f"<{format_lrc_time(float(item['te']))}>")
            out.append("".join(parts))
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        raise ParseFailure(source, f"malformed richsync body: {e}") from e
    return "\n".join(out) + "\n"


class MusixmatchProvider(LyricsProvider):
    name = "musixmatch"

    def __init__(
        self,
        *,
        enhanced: bool = True,
        timeout_s: float = 10.0,
        max_retries: int = 2,
        backoff_base_s: float = 1.0,
        session: requests.Session | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.enhanced = enhanced
        self.timeout_s = timeout_s
        self.max_retries = max_retries
        self.backoff_base_s = backoff_base_s
        self.session = session or new_session()
        self.session.headers.update(
            {"authority": "apic-desktop.musixmatch.com", "cookie": "AWSELBCORS=0; AWSELB=0"}
        )
        self._clock = clock
        self._token: str | None = None
        self._token_expires_at = 0.0

    def clear_token(self) -> None:
        self._token = None
        self._token_expires_at = 0.0

    def _user_token(self) -> str:
        now = self._clock()
        if self._token and now < self._token_expires_at:
            return self._token
        body = self._call("token.get", {"user_language": "en"}, auth=False)
        token = (body or {}).get("user_token")
        if not token or str(token).startswith("UpgradeOnly"):
            raise AuthExpired(self.name, "token.get returned no usable token")
        self._token = str(token)
        self._token_expires_at = now + TOKEN_TTL_S
        logger.debug("musixmatch token refreshed")
        return self._token

    def _call(self, action: str, params: dict[str, Any], *, auth: bool = True) -> dict | None:
        query = dict(params)
        query["app_id"] = APP_ID
        if auth:
            query["usertoken"] = self._user_token()
        query["t"] = str(int(self._clock() * 1000))

        data = request_json(
            self.session,
            "GET",
            ROOT_URL + action,
            source=self.name,
            params=query,
            timeout=self.timeout_s,
            max_retries=self.max_retries,
            backoff_base_s=self.backoff_base_s,
        )
        try:
            message = data["message"]
            status = message["header"]["status_code"]
        except (KeyError, TypeError) as e:
            raise ParseFailure(self.name, f"{action}: unexpected response shape") from e

        if status == 401:
            self.clear_token()
            raise AuthExpired(self.name, f"{action} returned 401")
        if status == 404:
            return None
        if status != 200:
            raise ProviderUnavailable(self.name, f"{action} returned status {status}")
        body = message.get("body")
        # "not found" bodies come back as empty lists
        return body if isinstance(body, dict) else None

    def _authed(self, action: str, params: dict[str, Any]) -> dict | None:
        try:
            return self._call(action, params)
        except AuthExpired:
            logger.info("musixmatch rejected the token on %s, retrying once", action)
            return self._call(action, params)

    def search(self, query: str) -> list[TrackCandidate]:
        body = self._authed("track.search", {"q": query, "page_size": SEARCH_PAGE_SIZE, "page": 1})
        out: list[TrackCandidate] = []
        for item in (body or {}).get("track_list") or []:
            track = item.get("track") if isinstance(item, dict) else None
            if not isinstance(track, dict):
                continue
            out.append(
                TrackCandidate(
                    provider=self.name,
                    id=track.get("track_id"),
                    track_name=track.get("track_name") or "",
                    artist_name=track.get("artist_name") or "",
                    album_name=track.get("album_name") or "",
                    duration=track.get("track_length"),
                    instrumental=bool(track.get("instrumental")),
                    has_synced_lyrics=bool(track.get("has_subtitles") or track.get("has_richsync")),
                    has_plain_lyrics=bool(track.get("has_lyrics")),
                )
            )
        logger.debug("musixmatch search %r: %d results", query, len(out))
        return out

    def _richsync(self, track_id) -> str | None:
        body = self._authed("track.richsync.get", {"track_id": track_id})
        raw = json_object(body, "richsync", source=self.name).get("richsync_body")
        if not raw:
            return None
        return richsync_to_lrc(raw, self.name)

    def _subtitle(self, track_id) -> str | None:
        body = self._authed("track.subtitle.get", {"track_id": track_id, "subtitle_format": "lrc"})
        text = json_object(body, "subtitle", source=self.name).get("subtitle_body")
        return str(text) if text else None

    def _plain(self, track_id) -> str | None:
        body = self._authed("track.lyrics.get", {"track_id": track_id})
        text = json_object(body, "lyrics", source=self.name).get("lyrics_body")
        return str(text) if text else None

    def fetch_lyrics(self, candidate: TrackCandidate) -> ProviderResult:
        track_id = candidate.id
        synced: str | None = None
        if self.enhanced:
            try:
                synced = self._richsync(track_id)
            except ParseFailure as e:
                logger.warning("musixmatch richsync unusable for %s: %s", candidate.display, e)
        if not synced:
            synced = self._subtitle(track_id)
        plain = None if synced else self._plain(track_id)
        return ProviderResult(
            provider_name=self.name,
            synced_text=synced,
            plain_text=plain,
            track_name=candidate.track_name,
            artist_name=candidate.artist_name,
        )
