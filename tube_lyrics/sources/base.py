from __future__ import annotations

from .types import ProviderResult, TrackCandidate


class LyricsProvider:
    """
    A lyrics backend: free-text search plus lyrics lookup for one hit.

    Implementations are blocking (requests); the resolution pipeline runs them
    in worker threads. They raise tube_lyrics.errors.ProviderError subclasses,
    never transport exceptions.
    """

    name: str

    def search(self, query: str) -> list[TrackCandidate]:
        raise NotImplementedError

    def fetch_lyrics(self, candidate: TrackCandidate) -> ProviderResult:
        raise NotImplementedError

    def inline_result(self, candidate: TrackCandidate) -> ProviderResult | None:
        """Lyrics that came with the search hit, if any (saves a round trip)."""
        if candidate.synced_lyrics_text or candidate.plain_lyrics_text:
            return ProviderResult(
                provider_name=self.name,
                synced_text=candidate.synced_lyrics_text,
                plain_text=candidate.plain_lyrics_text,
                track_name=candidate.track_name,
                artist_name=candidate.artist_name,
            )
        return None
