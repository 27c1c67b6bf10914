from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from tube_lyrics.sources.types import TrackCandidate

from .similarity import normalize, similarity

ARTIST_WEIGHT = 0.6
SONG_WEIGHT = 0.4
EXACT_ARTIST_BONUS = 0.2
SYNCED_BONUS = 0.1
MIN_CONFIDENT_SCORE = 0.3


@dataclass(frozen=True, slots=True)
class ScoredCandidate:
    candidate: TrackCandidate
    score: float
    index: int


def score_candidate(candidate: TrackCandidate, artist: str, song: str) -> float:
    score = ARTIST_WEIGHT * similarity(artist, candidate.artist_name)
    score += SONG_WEIGHT * similarity(song, candidate.track_name)
    if artist and normalize(artist) == normalize(candidate.artist_name):
        score += EXACT_ARTIST_BONUS
    if candidate.has_synced_lyrics:
        score += SYNCED_BONUS
    return score


def rank_candidates(candidates: Sequence[TrackCandidate], artist: str, song: str) -> list[ScoredCandidate]:
    scored = [
        ScoredCandidate(candidate=c, score=score_candidate(c, artist, song), index=i)
        for i, c in enumerate(candidates)
    ]
    # ties keep provider order
    scored.sort(key=lambda s: (-s.score, s.index))
    return scored


def pick_best_match(
    candidates: Sequence[TrackCandidate],
    artist: str,
    song: str,
    *,
    min_score: float = MIN_CONFIDENT_SCORE,
) -> TrackCandidate | None:
    """
    Highest scoring candidate; providers pre-rank by relevance, so a weak best
    score (<= min_score) falls back to the first result.
    """
    if not candidates:
        return None
    best = rank_candidates(candidates, artist, song)[0]
    if best.score <= min_score:
        return candidates[0]
    return best.candidate
