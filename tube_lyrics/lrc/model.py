from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Sequence


@dataclass(frozen=True, slots=True)
class WordTiming:
    word: str
    time: float
    # estimated from the line start, not read from inline tokens
    approximate: bool = False


@dataclass(frozen=True, slots=True)
class SyllableTiming:
    syllable: str
    time: float
    end_time: float | None = None


@dataclass(frozen=True, slots=True)
class LyricLine:
    time: float
    text: str
    end_time: float | None = None
    words: tuple[WordTiming, ...] = ()
    syllables: tuple[SyllableTiming, ...] = ()
    transliteration: str | None = None

    @property
    def has_word_timing(self) -> bool:
        return bool(self.words) and not self.words[0].approximate

    @property
    def words_approximate(self) -> bool:
        return bool(self.words) and self.words[0].approximate


@dataclass(frozen=True, slots=True)
class LrcDocument:
    lines: tuple[LyricLine, ...]
    offset_ms: int = 0
    tags: dict[str, str] | None = None


class SyncPrecision(IntEnum):
    PLAIN = 0
    LINE = 1
    WORD = 2

    @classmethod
    def from_name(cls, name: str) -> "SyncPrecision":
        try:
            return cls[name.strip().upper()]
        except KeyError as e:
            raise ValueError(f"Unknown sync precision: {name!r}") from e


def precision_of(lines: Sequence[LyricLine]) -> SyncPrecision:
    if not lines:
        return SyncPrecision.PLAIN
    if any(line.has_word_timing for line in lines):
        return SyncPrecision.WORD
    return SyncPrecision.LINE
