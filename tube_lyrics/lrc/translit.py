"""
Romanization for Korean and Japanese lyric lines.

Korean goes through korean-romanizer (Revised Romanization), Japanese through
pykakasi (Hepburn), which also reads Kanji.
"""

from __future__ import annotations

from dataclasses import replace
from functools import lru_cache
from typing import Iterable

from korean_romanizer.romanizer import Romanizer
import pykakasi
import regex

from .model import LyricLine

_HANGUL_RE = regex.compile(r"\p{Hangul}")
_KANA_RE = regex.compile(r"[\p{Hiragana}\p{Katakana}]")
_HAN_RE = regex.compile(r"\p{Han}")
_SPACES_RE = regex.compile(r"\s+")


@lru_cache(maxsize=1)
def _kakasi() -> pykakasi.kakasi:
    # loads its dictionaries on construction
    return pykakasi.kakasi()


def detect_language(text: str) -> str:
    if not text:
        return "unknown"
    if _KANA_RE.search(text):
        return "ja"
    if _HANGUL_RE.search(text):
        return "ko"
    if _HAN_RE.search(text):
        return "ja"
    return "unknown"


def needs_romanization(text: str) -> bool:
    return detect_language(text) in ("ja", "ko")


def romanize_korean(text: str) -> str:
    return _SPACES_RE.sub(" ", Romanizer(text).romanize()).strip()


def romanize_japanese(text: str) -> str:
    parts = [item["hepburn"] for item in _kakasi().convert(text)]
    return _SPACES_RE.sub(" ", " ".join(parts)).strip()


def romanize(text: str) -> str:
    lang = detect_language(text)
    if lang == "ko":
        return romanize_korean(text)
    if lang == "ja":
        return romanize_japanese(text)
    return ""


def annotate_lines(lines: Iterable[LyricLine]) -> tuple[LyricLine, ...]:
    """Return copies of the lines with `transliteration` set where the text needs it."""
    out: list[LyricLine] = []
    for line in lines:
        if needs_romanization(line.text):
            out.append(replace(line, transliteration=romanize(line.text)))
        else:
            out.append(line)
    return tuple(out)
