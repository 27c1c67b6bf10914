from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field
import logging
import re

from .model import LrcDocument, LyricLine, SyllableTiming, WordTiming

logger = logging.getLogger(__name__)

_TS_RE = re.compile(r"\[(\d{1,3}):(\d{1,2})(?:[.:](\d{1,3}))?\]")  # [mm:ss] / [mm:ss.xx] / [mm:ss.xxx]
_WORD_TS_RE = re.compile(r"<(\d{1,3}):(\d{1,2})[.:](\d{1,3})>")  # <mm:ss.xx>
_OFFSET_RE = re.compile(r"^\[offset:\s*([+-]?\d+)\]\s*$", re.IGNORECASE)
_TAG_RE = re.compile(r"^\[([a-zA-Z]{1,8}):(.*)\]\s*$")

DEFAULT_WORDS_PER_SECOND = 2.5
DEFAULT_LAST_LINE_DURATION_S = 5.0


class LrcParseError(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class LrcParseStats:
    lines_total: int
    events_total: int
    lines_with_timestamps: int
    lines_ignored: int
    word_timed_lines: int


@dataclass(slots=True)
class _Syllable:
    text: str
    time: float
    starts_word: bool
    end: float | None = None


@dataclass(slots=True)
class _Entry:
    time: float
    text: str
    syllables: list[_Syllable] = field(default_factory=list)
    closing: float | None = None


def _parse_ts(m: str, s: str, frac: str | None) -> float:
    sec = int(s)
    if not (0 <= sec <= 59):
        raise LrcParseError(f"Invalid seconds: {s}")
    t = int(m) * 60 + sec
    if frac:
        # "5" -> .5, "50" -> .50, "505" -> .505
        t += int(frac) / 10 ** len(frac)
    return float(t)


def _leading_timestamps(line: str) -> tuple[list[re.Match[str]], str]:
    stamps: list[re.Match[str]] = []
    pos = 0
    while True:
        while pos < len(line) and line[pos].isspace():
            pos += 1
        m = _TS_RE.match(line, pos)
        if not m:
            break
        stamps.append(m)
        pos = m.end()
    return stamps, line[pos:]


def _split_inline(payload: str, line_time: float) -> tuple[list[_Syllable], float | None] | None:
    """
    Split "<mm:ss.xx>Hel<mm:ss.xx>lo <mm:ss.xx>world<mm:ss.xx>" into syllables.

    A run glued to the previous one continues the same word, whitespace starts
    a new word, a trailing empty token closes the last syllable.
    Returns None when the payload has no inline tokens.
    """
    parts = _WORD_TS_RE.split(payload)
    if len(parts) == 1:
        return None

    runs: list[tuple[str, float]] = []
    if parts[0].strip():
        runs.append((parts[0], line_time))
    for i in range(1, len(parts), 4):
        runs.append((parts[i + 3], _parse_ts(parts[i], parts[i + 1], parts[i + 2])))

    syllables: list[_Syllable] = []
    closing: float | None = None
    new_word = True
    prev_time = 0.0
    for run, t in runs:
        t = max(t, prev_time)
        stripped = run.strip()
        if not stripped:
            if syllables and syllables[-1].end is None:
                syllables[-1].end = t
            closing = t
            new_word = True
            continue
        syllables.append(_Syllable(stripped, t, new_word or run[:1].isspace()))
        new_word = run[-1:].isspace()
        closing = None
        prev_time = t
    return syllables, closing


def _estimate_words(text: str, line_time: float, words_per_second: float) -> tuple[WordTiming, ...]:
    step = 1.0 / words_per_second
    return tuple(
        WordTiming(word=w, time=line_time + i * step, approximate=True)
        for i, w in enumerate(text.split())
    )


def _group_words(syllables: list[_Syllable]) -> list[tuple[str, float]]:
    words: list[tuple[str, float]] = []
    for syl in syllables:
        if syl.starts_word or not words:
            words.append((syl.text, syl.time))
        else:
            text, t = words[-1]
            words[-1] = (text + syl.text, t)
    return words


def _line_end(entry: _Entry, nxt: float | None, breaks: list[float], last_line_duration_s: float) -> float:
    candidates: list[float] = []
    if entry.closing is not None and entry.closing > entry.time:
        candidates.append(entry.closing)
    i = bisect_right(breaks, entry.time)
    if i < len(breaks):
        candidates.append(breaks[i])
    end = min(candidates) if candidates else None
    if nxt is not None:
        end = nxt if end is None else min(end, nxt)
    if end is None:
        end = entry.time + last_line_duration_s
    return end


def _build_line(
    entry: _Entry,
    end_time: float,
    *,
    estimate_words: bool,
    words_per_second: float,
) -> LyricLine:
    if not entry.syllables:
        words = _estimate_words(entry.text, entry.time, words_per_second) if estimate_words else ()
        return LyricLine(time=entry.time, text=entry.text, end_time=end_time, words=words)

    syls = entry.syllables
    out: list[SyllableTiming] = []
    for i, syl in enumerate(syls):
        nxt = syls[i + 1].time if i + 1 < len(syls) else None
        end = syl.end
        if end is None:
            end = nxt if nxt is not None else end_time
        if nxt is not None:
            end = min(end, nxt)
        out.append(SyllableTiming(syllable=syl.text, time=syl.time, end_time=max(end, syl.time)))

    words = tuple(WordTiming(word=w, time=t) for w, t in _group_words(syls))
    return LyricLine(
        time=entry.time,
        text=entry.text,
        end_time=end_time,
        words=words,
        syllables=tuple(out),
    )


def _parse(
    text: str,
    *,
    estimate_words: bool,
    words_per_second: float,
    last_line_duration_s: float,
) -> tuple[LrcDocument, LrcParseStats]:
    offset_ms = 0
    tags: dict[str, str] = {}
    entries: list[_Entry] = []
    breaks: list[float] = []

    total = 0
    lines_with_ts = 0
    ignored = 0

    for raw in text.splitlines():
        total += 1
        line = raw.strip()
        if not line:
            ignored += 1
            continue

        off = _OFFSET_RE.match(line)
        if off:
            offset_ms = int(off.group(1))
            continue

        tag = _TAG_RE.match(line)
        if tag and not _TS_RE.match(line):
            k = tag.group(1).strip().lower()
            v = tag.group(2).strip()
            if k and v:
                tags[k] = v
            continue

        stamps, payload = _leading_timestamps(line)
        if not stamps:
            ignored += 1
            continue

        try:
            times = [_parse_ts(m.group(1), m.group(2), m.group(3)) for m in stamps]
            inline = _split_inline(payload, times[0])
        except LrcParseError as e:
            logger.debug("Dropping LRC line %r: %s", line, e)
            ignored += 1
            continue

        lines_with_ts += 1
        shift = offset_ms / 1000.0
        for t in times:
            start = max(t + shift, 0.0)
            if inline is None:
                body = " ".join(payload.split())
                if not body:
                    breaks.append(start)
                    continue
                entries.append(_Entry(time=start, text=body))
                continue

            syllables, closing = inline
            if not syllables:
                breaks.append(start)
                continue
            # inline stamps are absolute to the first timestamp of the line
            delta = start - times[0]
            moved = [
                _Syllable(s.text, max(s.time + delta, 0.0), s.starts_word, None if s.end is None else s.end + delta)
                for s in syllables
            ]
            body = " ".join(w for w, _t in _group_words(moved))
            entries.append(
                _Entry(
                    time=start,
                    text=body,
                    syllables=moved,
                    closing=None if closing is None else closing + delta,
                )
            )

    entries.sort(key=lambda e: e.time)
    dedup: list[_Entry] = []
    seen: set[tuple[float, str]] = set()
    for e in entries:
        key = (e.time, e.text)
        if key not in seen:
            dedup.append(e)
            seen.add(key)
    breaks.sort()

    lines: list[LyricLine] = []
    for i, e in enumerate(dedup):
        nxt = dedup[i + 1].time if i + 1 < len(dedup) else None
        end_time = _line_end(e, nxt, breaks, last_line_duration_s)
        lines.append(
            _build_line(e, end_time, estimate_words=estimate_words, words_per_second=words_per_second)
        )

    doc = LrcDocument(lines=tuple(lines), offset_ms=offset_ms, tags=tags)
    stats = LrcParseStats(
        lines_total=total,
        events_total=len(doc.lines),
        lines_with_timestamps=lines_with_ts,
        lines_ignored=ignored,
        word_timed_lines=sum(1 for ln in doc.lines if ln.has_word_timing),
    )
    return doc, stats


def parse_lrc(
    text: str,
    *,
    estimate_words: bool = True,
    words_per_second: float = DEFAULT_WORDS_PER_SECOND,
    last_line_duration_s: float = DEFAULT_LAST_LINE_DURATION_S,
) -> LrcDocument:
    """
    Supported:
    - [mm:ss], [mm:ss.xx], [mm:ss.xxx]
    - multiple timestamps per line
    - inline word/syllable stamps: [mm:ss.xx] <mm:ss.xx>word <mm:ss.xx>word
    - [offset:+/-ms]
    - basic tags: [ar:], [ti:], [al:], ...

    Result is normalized:
    - lines sorted by time, duplicate (time, text) removed
    - negative times clamped to 0
    - end_time filled from the next line (or an empty timed line in between)
    - lines without inline stamps get approximate words when estimate_words is set
    """
    doc, _stats = _parse(
        text,
        estimate_words=estimate_words,
        words_per_second=words_per_second,
        last_line_duration_s=last_line_duration_s,
    )
    return doc


def parse_lrc_with_stats(
    text: str,
    *,
    estimate_words: bool = True,
    words_per_second: float = DEFAULT_WORDS_PER_SECOND,
    last_line_duration_s: float = DEFAULT_LAST_LINE_DURATION_S,
) -> tuple[LrcDocument, LrcParseStats]:
    # same parse, plus counters for CLI diagnostics
    return _parse(
        text,
        estimate_words=estimate_words,
        words_per_second=words_per_second,
        last_line_duration_s=last_line_duration_s,
    )
