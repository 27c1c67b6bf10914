from __future__ import annotations

import json

from .model import LrcDocument, LyricLine


def _line_to_dict(line: LyricLine) -> dict:
    out: dict = {"time": line.time, "end_time": line.end_time, "text": line.text}
    if line.words:
        out["words"] = [{"word": w.word, "time": w.time} for w in line.words]
        out["words_approximate"] = line.words_approximate
    if line.syllables:
        out["syllables"] = [
            {"syllable": s.syllable, "time": s.time, "end_time": s.end_time} for s in line.syllables
        ]
    if line.transliteration:
        out["transliteration"] = line.transliteration
    return out


def export_json(doc: LrcDocument) -> str:
    return json.dumps(
        {
            "offset_ms": doc.offset_ms,
            "tags": doc.tags or {},
            "lines": [_line_to_dict(ln) for ln in doc.lines],
        },
        ensure_ascii=False,
        indent=2,
    )


def format_lrc_time(seconds: float) -> str:
    cs = int(round(seconds * 100))
    m, rem = divmod(cs, 6_000)
    s, cs2 = divmod(rem, 100)
    # keep 2 decimals for compatibility
    return f"{m:02d}:{s:02d}.{cs2:02d}"


def _enhanced_payload(line: LyricLine) -> str:
    # syllable indexes where a new word begins
    word_starts: set[int] = set()
    idx = 0
    for w in line.words:
        word_starts.add(idx)
        acc = ""
        while idx < len(line.syllables) and acc != w.word:
            acc += line.syllables[idx].syllable
            idx += 1

    parts: list[str] = []
    for i, syl in enumerate(line.syllables):
        if i and i in word_starts:
            parts.append(" ")
        parts.append(f"<{format_lrc_time(syl.time)}>{syl.syllable}")
    last = line.syllables[-1]
    if last.end_time is not None:
        parts.append(f"<{format_lrc_time(last.end_time)}>")
    return "".join(parts)


def export_lrc(
    doc: LrcDocument,
    include_tags: bool = True,
    include_offset: bool = False,
    enhanced: bool = True,
) -> str:
    """
    Times in the document already include the offset, so it is not written by default.
    """
    out: list[str] = []
    if include_tags and doc.tags:
        for k in sorted(doc.tags.keys()):
            out.append(f"[{k}:{doc.tags[k]}]")
    if include_offset and doc.offset_ms:
        out.append(f"[offset:{doc.offset_ms}]")

    for ln in doc.lines:
        if enhanced and ln.syllables:
            out.append(f"[{format_lrc_time(ln.time)}]{_enhanced_payload(ln)}")
        else:
            out.append(f"[{format_lrc_time(ln.time)}]{ln.text}")
    return "\n".join(out) + ("\n" if out else "")


def _fmt_srt_time(seconds: float) -> str:
    # HH:MM:SS,mmm
    ms = int(round(seconds * 1000))
    h, rem = divmod(ms, 3_600_000)
    m, rem = divmod(rem, 60_000)
    s, ms2 = divmod(rem, 1_000)
    return f"{h:02d}:{m:02d}:{s:02d},{ms2:03d}"


def export_srt(doc: LrcDocument, last_line_duration_s: float = 2.0) -> str:
    """
    End time is the line's end_time; without one, the next start or +last_line_duration_s.
    """
    lines = doc.lines
    if not lines:
        return ""
    out: list[str] = []
    for i, ln in enumerate(lines, start=1):
        start = ln.time
        if ln.end_time is not None:
            end = ln.end_time
        elif i < len(lines):
            end = lines[i].time
        else:
            end = start + last_line_duration_s
        end = max(end, start + 0.001)
        out.append(str(i))
        out.append(f"{_fmt_srt_time(start)} --> {_fmt_srt_time(end)}")
        out.append(ln.text or "")
        out.append("")
    return "\n".join(out)
