from __future__ import annotations

import shutil
import signal
import sys
from dataclasses import dataclass
from typing import Callable, Sequence, TextIO

import colorama


CSI = "\x1b["


def _sgr(*codes: int) -> str:
    return CSI + ";".join(str(c) for c in codes) + "m"


@dataclass(frozen=True, slots=True)
class Theme:
    title: str = _sgr(36, 1)  # cyan bold
    current: str = _sgr(32, 1)  # green bold
    word: str = _sgr(30, 42)  # black on green
    translit: str = _sgr(90, 3)  # bright black italic
    dim: str = _sgr(90)  # bright black
    warning: str = _sgr(33, 1)  # yellow bold
    reset: str = _sgr(0)


@dataclass(frozen=True, slots=True)
class Frame:
    title: str
    lines: tuple[str, ...]
    current_idx: int
    context_lines: int = 1
    # words of the current line and which one is active
    words: tuple[str, ...] = ()
    word_idx: int | None = None
    translit: str | None = None
    status: str = ""


class AnsiRenderer:
    def __init__(self, use_alt_screen: bool = True, theme: Theme | None = None, stream: TextIO | None = None):
        self.use_alt_screen = use_alt_screen
        self.theme = theme or Theme()
        self.stream = stream or sys.stdout
        self._entered = False
        self._resize_handler: Callable[..., None] | None = None
        self._last_frame: Frame | None = None

    def __enter__(self):
        self.enter()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.exit()

    @property
    def last_frame(self) -> Frame | None:
        return self._last_frame

    def enter(self) -> None:
        if self._entered:
            return
        colorama.just_fix_windows_console()
        if self.use_alt_screen:
            self.stream.write(CSI + "?1049h")  # alt screen
        self.stream.write(CSI + "?25l")  # hide cursor
        self.stream.write(CSI + "H" + CSI + "2J")  # home + clear
        self.stream.flush()
        self._entered = True

        def _on_resize(signum=None, frame=None):
            if self._last_frame is not None:
                self.draw(self._last_frame)

        self._resize_handler = _on_resize
        # no SIGWINCH on Windows
        if hasattr(signal, "SIGWINCH"):
            signal.signal(signal.SIGWINCH, _on_resize)

    def exit(self) -> None:
        if not self._entered:
            return
        if self._resize_handler and hasattr(signal, "SIGWINCH"):
            signal.signal(signal.SIGWINCH, signal.SIG_DFL)
        self._resize_handler = None
        self.stream.write(self.theme.reset)
        self.stream.write(CSI + "?25h")  # show cursor
        if self.use_alt_screen:
            self.stream.write(CSI + "?1049l")  # normal screen
        self.stream.flush()
        self._entered = False
        self._last_frame = None

    def render(
        self,
        title: str,
        lines: Sequence[str],
        current_idx: int,
        context_lines: int = 1,
        *,
        words: Sequence[str] = (),
        word_idx: int | None = None,
        translit: str | None = None,
        status: str = "",
    ) -> None:
        self.draw(
            Frame(
                title=title,
                lines=tuple(lines),
                current_idx=current_idx,
                context_lines=context_lines,
                words=tuple(words),
                word_idx=word_idx,
                translit=translit,
                status=status,
            )
        )

    def _current_line(self, frame: Frame, text: str) -> str:
        th = self.theme
        if not frame.words or frame.word_idx is None or frame.word_idx < 0:
            return f"{th.current}{text}{th.reset}"
        parts: list[str] = []
        for i, w in enumerate(frame.words):
            if i == frame.word_idx:
                parts.append(f"{th.word}{w}{th.reset}")
            elif i < frame.word_idx:
                parts.append(f"{th.current}{w}{th.reset}")
            else:
                parts.append(f"{th.dim}{w}{th.reset}")
        return " ".join(parts)

    def compose(self, frame: Frame, rows: int) -> list[str]:
        th = self.theme
        # reserve 1 line for title (+1 for transliteration)
        body_rows = max(rows - 1 - (1 if frame.translit else 0), 1)

        # window around current line, but keep within list
        if frame.current_idx < 0:
            start = 0
        else:
            start = max(frame.current_idx - frame.context_lines, 0)
        end = min(start + body_rows, len(frame.lines))
        start = max(end - body_rows, 0)

        title = f"{th.title}♫ {frame.title} ♫{th.reset}"
        if frame.status:
            title += f" {th.warning}[{frame.status}]{th.reset}"
        out = [title]
        for i in range(start, end):
            text = frame.lines[i]
            if i == frame.current_idx:
                out.append(self._current_line(frame, text))
                if frame.translit:
                    out.append(f"{th.translit}{frame.translit}{th.reset}")
            else:
                out.append(f"{th.dim}{text}{th.reset}")
        return out

    def draw(self, frame: Frame) -> None:
        # remembered for SIGWINCH redraw
        self._last_frame = frame
        _cols, rows = shutil.get_terminal_size(fallback=(80, 24))
        out = self.compose(frame, rows)

        # move home + clear, then print full frame
        self.stream.write(CSI + "H" + CSI + "2J")
        self.stream.write("\n".join(out))
        self.stream.write(self.theme.reset)
        self.stream.flush()
