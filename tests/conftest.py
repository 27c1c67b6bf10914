from __future__ import annotations

import os
import time
from typing import Collection

import pytest

from tube_lyrics.cache.results import ResultCache
from tube_lyrics.config import AppConfig, load_config
from tube_lyrics.sources.base import LyricsProvider
from tube_lyrics.sources.types import ProviderResult, TrackCandidate

LINE_LRC = "[00:01.00]Hello\n[00:03.50]World\n"
WORD_LRC = "[00:01.00]<00:01.00>Hello <00:02.00>world<00:03.00>\n[00:03.50]<00:03.50>Again<00:04.50>\n"


@pytest.fixture
def cfg(tmp_path, monkeypatch) -> AppConfig:
    """Defaults only, with config and cache dirs under tmp_path."""
    for name in list(os.environ):
        if name.startswith("TUBE_LYRICS_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    return load_config()


class FakeProvider(LyricsProvider):
    """In-memory provider: one hit for every query, or none."""

    def __init__(
        self,
        name: str,
        *,
        synced: str | None = None,
        plain: str | None = None,
        error: Exception | None = None,
        found: bool = True,
        delay_s: float = 0.0,
        only: Collection[str] | None = None,
    ):
        self.name = name
        self.synced = synced
        self.plain = plain
        self.error = error
        self.found = found
        self.delay_s = delay_s
        # answer just these queries when set
        self.only = only
        self.queries: list[str] = []
        self.fetches = 0

    def search(self, query: str) -> list[TrackCandidate]:
        self.queries.append(query)
        if self.delay_s:
            time.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        if not self.found or (self.only is not None and query not in self.only):
            return []
        return [TrackCandidate(provider=self.name, id=1, track_name="Song", artist_name="Artist")]

    def fetch_lyrics(self, candidate: TrackCandidate) -> ProviderResult:
        self.fetches += 1
        return ProviderResult(
            provider_name=self.name,
            synced_text=self.synced,
            plain_text=self.plain,
            track_name=candidate.track_name,
            artist_name=candidate.artist_name,
        )


@pytest.fixture
def memory_cache() -> ResultCache:
    return ResultCache()
