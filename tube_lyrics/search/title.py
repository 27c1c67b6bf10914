"""
Heuristic split of a noisy video title into song and artist.

Rules are tried in order and the first one that applies wins:
" - " separator, "(feat. X)" parenthetical, " | " separator, whole title.
"""

from __future__ import annotations

from dataclasses import dataclass

import regex

from .similarity import similarity

CHANNEL_MATCH_THRESHOLD = 0.7
_SHORT_ARTIST_MAX_WORDS = 3
_FILLER_WORDS = frozenset(
    {"the", "a", "an", "my", "your", "our", "i", "you", "me", "we", "in", "on", "of", "to", "is", "it"}
)

_MARKER_RE = regex.compile(
    r"\b(?:official|video|lyrics?|m/?v|audio|visuali[sz]er|hd|4k)\b", regex.IGNORECASE
)
_BRACKET_RE = regex.compile(r"[\(\[【]([^\)\]】]*)[\)\]】]")
_BARE_MARKER_RE = regex.compile(
    r"\b(?:official\s+(?:music\s+)?video|official\s+audio|lyrics?\s+video|music\s+video|m/v|mv)\b",
    regex.IGNORECASE,
)
_DASH_RE = regex.compile(r"\s+[\p{Pd}]\s+")
_FEAT_RE = regex.compile(r"[\(\[]\s*(?:feat\.?|featuring|ft\.?)\s+([^\)\]]+)[\)\]]", regex.IGNORECASE)
_CHANNEL_SUFFIX_RE = regex.compile(r"\s*(?:-\s*topic|vevo|official)\s*$", regex.IGNORECASE)
_EDGE_JUNK = " -|:~"


@dataclass(frozen=True, slots=True)
class TitleParse:
    song: str
    artist: str
    confidence: float
    cleaned_title: str = ""


def _squash(s: str) -> str:
    return " ".join(s.split()).strip(_EDGE_JUNK)


def strip_markers(title: str) -> str:
    """Drop "(Official Video)"-style groups and bare marker phrases, normalize dashes."""

    def _drop_group(m: regex.Match) -> str:
        return " " if _MARKER_RE.search(m.group(1)) else m.group(0)

    s = _BRACKET_RE.sub(_drop_group, title or "")
    s = _BARE_MARKER_RE.sub(" ", s)
    s = _DASH_RE.sub(" - ", s)
    return _squash(s)


def clean_channel_name(channel: str | None) -> str:
    s = (channel or "").strip()
    while True:
        trimmed = _CHANNEL_SUFFIX_RE.sub("", s)
        if trimmed == s:
            return s
        s = trimmed


def _strip_feat(s: str) -> str:
    return _squash(_FEAT_RE.sub(" ", s))


def _looks_like_artist(part: str) -> bool:
    words = part.casefold().split()
    return 0 < len(words) <= _SHORT_ARTIST_MAX_WORDS and not (set(words) & _FILLER_WORDS)


def parse_title(title: str, channel: str | None = None) -> TitleParse:
    channel = clean_channel_name(channel)
    cleaned = strip_markers(title)

    parts = [p.strip() for p in cleaned.split(" - ")]
    if len(parts) == 2 and all(parts):
        first, second = parts
        if channel:
            s1 = similarity(first, channel)
            s2 = similarity(second, channel)
            if max(s1, s2) > CHANNEL_MATCH_THRESHOLD:
                if s1 >= s2:
                    return TitleParse(_strip_feat(second), first, 0.9, cleaned)
                return TitleParse(_strip_feat(first), second, 0.9, cleaned)
        if _looks_like_artist(first):
            return TitleParse(_strip_feat(second), first, 0.8, cleaned)
        return TitleParse(_strip_feat(first), second, 0.75, cleaned)

    feat = _FEAT_RE.search(cleaned)
    if feat:
        song = _squash(cleaned[: feat.start()])
        if song:
            return TitleParse(song, channel or _squash(feat.group(1)), 0.7, cleaned)

    if "|" in cleaned:
        pipe_parts = [p.strip() for p in cleaned.split("|") if p.strip()]
        if pipe_parts:
            fallback = pipe_parts[1] if len(pipe_parts) > 1 else ""
            return TitleParse(pipe_parts[0], channel or fallback, 0.6, cleaned)

    return TitleParse(cleaned, channel, 0.8 if channel else 0.4, cleaned)
