from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class VideoInfo:
    title: str
    channel: str = ""
    video_id: str = ""

    @property
    def display(self) -> str:
        if self.channel and self.title:
            return f"{self.channel} - {self.title}"
        return self.title or self.channel or "Unknown video"


@dataclass(frozen=True, slots=True)
class TrackCandidate:
    """One search hit from a provider."""
    provider: str
    id: str | int | None
    track_name: str
    artist_name: str
    album_name: str = ""
    duration: float | None = None
    instrumental: bool = False
    has_synced_lyrics: bool = False
    has_plain_lyrics: bool = False
    synced_lyrics_text: str | None = None  # present when the search response already carries lyrics
    plain_lyrics_text: str | None = None

    @property
    def display(self) -> str:
        if self.artist_name and self.track_name:
            return f"{self.artist_name} - {self.track_name}"
        return self.track_name or self.artist_name or "Unknown track"


@dataclass(frozen=True, slots=True)
class ProviderResult:
    provider_name: str
    synced_text: str | None = None
    plain_text: str | None = None
    track_name: str = ""
    artist_name: str = ""

    @property
    def is_empty(self) -> bool:
        return not (self.synced_text or self.plain_text)
