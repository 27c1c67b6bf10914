from __future__ import annotations

from dataclasses import dataclass
import logging

import regex

from tube_lyrics.errors import QueryTooShort

from .similarity import normalize
from .title import TitleParse, clean_channel_name, parse_title

logger = logging.getLogger(__name__)

DEFAULT_MIN_QUERY_LENGTH = 3

BASIC_FILTER_WORDS = frozenset(
    {"official", "video", "lyric", "lyrics", "music", "audio", "mv", "m/v"}
)
EXTENDED_FILTER_WORDS = BASIC_FILTER_WORDS | frozenset(
    {"live", "clip", "performance", "hd", "4k", "visualizer", "(official", "video)", "[official", "video]"}
)

_HANGUL_WORD_RE = regex.compile(r"\p{Hangul}")
_SQUARE_RE = regex.compile(r"\[.*?\]")
_PAREN_RE = regex.compile(r"\(.*?\)")
_QUOTES_RE = regex.compile(r"''|\"|[“”]")


@dataclass(frozen=True, slots=True)
class SearchStrategy:
    name: str
    query: str
    song_name_hint: str
    artist_hint: str
    enabled: bool = True


def ensure_query(query: str, min_length: int = DEFAULT_MIN_QUERY_LENGTH) -> str:
    q = " ".join((query or "").split())
    if len(q) < min_length:
        raise QueryTooShort(q, min_length)
    return q


def format_title(title: str) -> str:
    """Lower-case the title and drop basic filter words."""
    words = [w for w in (title or "").lower().split() if w not in BASIC_FILTER_WORDS]
    formatted = " ".join(words)
    if "|" in formatted and "-" in formatted:
        formatted = formatted.split("|")[0]
    return formatted.strip()


def format_song_only(title: str) -> str:
    """Aggressive variant: larger stop list, no Hangul words, no bracketed text or quotes."""
    words = [
        w
        for w in (title or "").lower().split()
        if w not in EXTENDED_FILTER_WORDS and not _HANGUL_WORD_RE.search(w)
    ]
    formatted = " ".join(words).split("|")[0]
    formatted = _SQUARE_RE.sub("", formatted)
    formatted = _PAREN_RE.sub("", formatted)
    formatted = _QUOTES_RE.sub("", formatted)
    return " ".join(formatted.split())


def build_strategies(
    title: str,
    channel: str | None = None,
    *,
    parsed: TitleParse | None = None,
    min_length: int = DEFAULT_MIN_QUERY_LENGTH,
) -> list[SearchStrategy]:
    """
    Ordered search strategies for a video title.

    Too-short and duplicate queries stay in the list with enabled=False.
    """
    parsed = parsed or parse_title(title, channel)
    raw = " ".join((title or "").split())
    raw_channel = " ".join((channel or "").split())
    clean_channel = clean_channel_name(channel)
    cleaned = format_title(parsed.cleaned_title or raw)

    specs: list[tuple[str, str, str, str]] = []
    if parsed.confidence > 0.6 and parsed.song:
        specs.append(("parsed_song_artist", f"{parsed.song} {parsed.artist}", parsed.song, parsed.artist))
    if clean_channel:
        specs.append(("cleaned_title_channel", f"{cleaned} {clean_channel}", parsed.song, clean_channel))
        specs.append(("raw_title_channel", f"{raw} {raw_channel}", parsed.song, clean_channel))
    if parsed.confidence > 0.7 and parsed.song:
        specs.append(("parsed_song", parsed.song, parsed.song, parsed.artist))
    specs.append(("cleaned_title", cleaned, parsed.song, parsed.artist))
    specs.append(("filtered_title", format_song_only(raw), parsed.song, parsed.artist))
    specs.append(("raw_title", raw, parsed.song, parsed.artist))

    out: list[SearchStrategy] = []
    seen: set[str] = set()
    for name, query, song_hint, artist_hint in specs:
        enabled = True
        try:
            query = ensure_query(query, min_length)
        except QueryTooShort as e:
            logger.debug("Skipping strategy %s: %s", name, e)
            query = " ".join(query.split())
            enabled = False
        key = normalize(query)
        if enabled and key in seen:
            enabled = False
        if enabled:
            seen.add(key)
        out.append(SearchStrategy(name, query, song_hint, artist_hint, enabled))
    return out
