from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from tube_lyrics.lrc.model import LyricLine

DEFAULT_SEEK_THRESHOLD_S = 2.0
_MAX_LINEAR_STEPS = 4


class HighlightMode(str, Enum):
    LINE = "line"
    WORD = "word"
    SYLLABLE = "syllable"


def find_index(times: Sequence[float], t: float, hint: int | None = None) -> int:
    """
    Greatest i with times[i] <= t, or -1.

    With a hint (last known index) a few linear steps are tried first, since
    consecutive lookups are almost always sequential; otherwise bisect.
    """
    n = len(times)
    if n == 0:
        return -1
    if hint is not None and -1 <= hint < n:
        i = hint
        for _ in range(_MAX_LINEAR_STEPS):
            if i >= 0 and times[i] > t:
                i -= 1
            elif i + 1 < n and times[i + 1] <= t:
                i += 1
            else:
                return i
    return bisect_right(times, t) - 1


@dataclass(frozen=True, slots=True)
class SyncEvent:
    current_index: int
    current_word_index: int | None
    current_syllable_index: int | None
    previous: LyricLine | None
    current: LyricLine | None
    next: LyricLine | None
    time: float
    is_discontinuity: bool


class PlaybackSynchronizer:
    """
    Maps a playback clock onto line/word/syllable indexes.

    Driven by an external tick (`update`); emits a SyncEvent only when the
    index tracked by the highlight mode changes. Seeks (explicit, or a jump
    larger than seek_threshold_s between ticks) skip the incremental lookup
    and are flagged as discontinuities.
    """

    def __init__(
        self,
        lines: Sequence[LyricLine] = (),
        *,
        delay_s: float = 0.0,
        mode: HighlightMode = HighlightMode.LINE,
        seek_threshold_s: float = DEFAULT_SEEK_THRESHOLD_S,
    ):
        self.mode = mode
        self.seek_threshold_s = seek_threshold_s
        self._delay_s = delay_s
        self.set_lines(lines)

    @property
    def lines(self) -> tuple[LyricLine, ...]:
        return self._lines

    @property
    def delay_s(self) -> float:
        return self._delay_s

    @property
    def current_index(self) -> int:
        return self._line_idx

    @property
    def current_word_index(self) -> int | None:
        return self._word_idx

    def set_lines(self, lines: Sequence[LyricLine]) -> None:
        self._lines = tuple(lines)
        self._times = [ln.time for ln in self._lines]
        self._word_times: dict[int, list[float]] = {}
        self._syllable_times: dict[int, list[float]] = {}
        self.reset()

    def reset(self) -> None:
        self._line_idx = -1
        self._word_idx: int | None = None
        self._syl_idx: int | None = None
        self._last_time: float | None = None
        self._pending_discontinuity = True

    def set_delay(self, delay_s: float) -> None:
        self._delay_s = delay_s
        self._pending_discontinuity = True

    def locate(self, current_time: float) -> int:
        """Active line index for a time, without touching tick state."""
        return find_index(self._times, current_time + self._delay_s)

    def _inner_times(self, cache: dict[int, list[float]], idx: int, attr: str) -> list[float]:
        times = cache.get(idx)
        if times is None:
            times = [x.time for x in getattr(self._lines[idx], attr)]
            cache[idx] = times
        return times

    def _inner_indexes(self, line_idx: int, t: float, fresh: bool) -> tuple[int | None, int | None]:
        if line_idx < 0:
            return None, None
        line = self._lines[line_idx]
        word_idx = syl_idx = None
        if line.words:
            hint = None if fresh else self._word_idx
            word_idx = find_index(self._inner_times(self._word_times, line_idx, "words"), t, hint)
        if line.syllables:
            hint = None if fresh else self._syl_idx
            syl_idx = find_index(self._inner_times(self._syllable_times, line_idx, "syllables"), t, hint)
        return word_idx, syl_idx

    def update(self, current_time: float, *, seek: bool = False) -> SyncEvent | None:
        adjusted = current_time + self._delay_s
        jumped = self._last_time is not None and abs(current_time - self._last_time) > self.seek_threshold_s
        discontinuity = seek or jumped or self._pending_discontinuity
        self._last_time = current_time
        self._pending_discontinuity = False

        line_idx = find_index(self._times, adjusted, None if discontinuity else self._line_idx)
        fresh = discontinuity or line_idx != self._line_idx
        word_idx, syl_idx = self._inner_indexes(line_idx, adjusted, fresh)

        changed = line_idx != self._line_idx
        if self.mode in (HighlightMode.WORD, HighlightMode.SYLLABLE):
            changed = changed or word_idx != self._word_idx
        if self.mode is HighlightMode.SYLLABLE:
            changed = changed or syl_idx != self._syl_idx

        self._line_idx = line_idx
        self._word_idx = word_idx
        self._syl_idx = syl_idx
        if not changed:
            return None

        n = len(self._lines)
        return SyncEvent(
            current_index=line_idx,
            current_word_index=word_idx,
            current_syllable_index=syl_idx,
            previous=self._lines[line_idx - 1] if line_idx > 0 else None,
            current=self._lines[line_idx] if line_idx >= 0 else None,
            next=self._lines[line_idx + 1] if line_idx + 1 < n else None,
            time=adjusted,
            is_discontinuity=discontinuity,
        )
