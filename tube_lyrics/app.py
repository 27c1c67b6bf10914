from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

from tube_lyrics.config import AppConfig
from tube_lyrics.i18n import t
from tube_lyrics.lrc.translit import annotate_lines
from tube_lyrics.render.ansi import AnsiRenderer
from tube_lyrics.sources.service import LyricsService, Resolution, ResolutionStatus
from tube_lyrics.sources.types import VideoInfo
from tube_lyrics.sync.tracker import HighlightMode, PlaybackSynchronizer, SyncEvent

logger = logging.getLogger(__name__)

# keep the last line on screen a little after it ends
_TAIL_S = 2.0


def resolve_video(cfg: AppConfig, video: VideoInfo, svc: LyricsService | None = None) -> Resolution:
    own = svc is None
    svc = svc or LyricsService(cfg)
    try:
        return asyncio.run(svc.resolve(video))
    finally:
        if own:
            svc.close()


def _status(res: Resolution) -> str:
    parts: list[str] = []
    if res.provider:
        parts.append(t("provider", provider=res.provider))
    if res.from_cache:
        parts.append(t("from_cache"))
    if res.upgraded:
        parts.append(t("upgraded"))
    if res.message:
        parts.append(res.message)
    return ", ".join(parts)


class _Screen:
    """Glue between resolution updates, the synchronizer and the renderer."""

    def __init__(self, cfg: AppConfig, video: VideoInfo, renderer: AnsiRenderer, sync: PlaybackSynchronizer):
        self.cfg = cfg
        self.video = video
        self.renderer = renderer
        self.sync = sync
        self.resolution: Resolution | None = None

    @property
    def title(self) -> str:
        res = self.resolution
        if res and res.artist_name and res.track_name:
            return f"{res.artist_name} - {res.track_name}"
        return self.video.display

    def on_update(self, res: Resolution) -> None:
        self.resolution = res
        if res.status is not ResolutionStatus.FOUND:
            self.renderer.render(self.title, [res.message], current_idx=-1)
            return
        if res.lines:
            # new lyric set: recompute position from scratch on the next tick
            self.sync.set_lines(annotate_lines(res.lines))
            self.draw(None)
            return
        plain = [ln.rstrip() for ln in (res.plain_text or "").splitlines()]
        self.renderer.render(
            self.title, plain, current_idx=-1, context_lines=self.cfg.context_lines, status=_status(res)
        )

    def draw(self, event: SyncEvent | None) -> None:
        lines = self.sync.lines
        idx = event.current_index if event else self.sync.current_index
        current = lines[idx] if 0 <= idx < len(lines) else None
        words: tuple[str, ...] = ()
        word_idx = None
        if current is not None and self.sync.mode is not HighlightMode.LINE and current.has_word_timing:
            words = tuple(w.word for w in current.words)
            word_idx = event.current_word_index if event else self.sync.current_word_index
        self.renderer.render(
            self.title,
            [ln.text for ln in lines],
            current_idx=idx,
            context_lines=self.cfg.context_lines,
            words=words,
            word_idx=word_idx,
            translit=current.transliteration if current is not None else None,
            status=_status(self.resolution) if self.resolution else "",
        )


async def _play(
    cfg: AppConfig,
    video: VideoInfo,
    svc: LyricsService,
    renderer: AnsiRenderer,
    *,
    clock: Callable[[], float],
    start_at: float,
    duration: float | None,
) -> int:
    sync = PlaybackSynchronizer(
        delay_s=cfg.sync_delay_ms / 1000.0,
        mode=HighlightMode(cfg.highlight_mode),
        seek_threshold_s=cfg.seek_threshold_s,
    )
    screen = _Screen(cfg, video, renderer, sync)
    renderer.render(video.display, [t("resolving")], current_idx=-1)

    task = asyncio.create_task(svc.resolve(video, screen.on_update))
    tick_s = 1.0 / max(cfg.refresh_hz, 1.0)
    t0 = clock()
    try:
        while True:
            pos = start_at + (clock() - t0)
            if duration is not None and pos >= duration:
                return 0
            if task.done():
                res = task.result()
                if res.status is not ResolutionStatus.FOUND:
                    return 1
                lines = sync.lines
                if duration is None and lines:
                    last = lines[-1]
                    if pos > (last.end_time or last.time) + _TAIL_S:
                        return 0

            event = sync.update(pos)
            if event is not None:
                screen.draw(event)
            await asyncio.sleep(tick_s)
    finally:
        if not task.done():
            svc.cancel()
            task.cancel()


def play(
    cfg: AppConfig,
    video: VideoInfo,
    *,
    start_at: float = 0.0,
    duration: float | None = None,
    svc: LyricsService | None = None,
    renderer: AnsiRenderer | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> int:
    """
    Terminal playback demo:
    resolve (fast result, then upgrades) -> monotonic clock -> synchronizer -> render on change.
    """
    own = svc is None
    svc = svc or LyricsService(cfg)
    renderer = renderer or AnsiRenderer(use_alt_screen=cfg.use_alt_screen)
    renderer.enter()
    try:
        return asyncio.run(
            _play(cfg, video, svc, renderer, clock=clock, start_at=start_at, duration=duration)
        )
    except KeyboardInterrupt:
        return 130
    finally:
        renderer.exit()
        if own:
            svc.close()
