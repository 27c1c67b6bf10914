from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from enum import Enum
import logging
from typing import Callable, Sequence

from tube_lyrics.cache.results import CacheEntry, ResultCache
from tube_lyrics.cache.sqlite import BlobStore
from tube_lyrics.config import AppConfig
from tube_lyrics.errors import AuthExpired, LyricsError, ProviderError
from tube_lyrics.i18n import t
from tube_lyrics.lrc.model import LyricLine, SyncPrecision, precision_of
from tube_lyrics.lrc.parse import parse_lrc
from tube_lyrics.search.scoring import pick_best_match
from tube_lyrics.search.strategies import SearchStrategy, build_strategies

from .base import LyricsProvider
from .deezer import DeezerProvider
from .lrclib import LrcLibProvider
from .musixmatch import MusixmatchProvider
from .types import ProviderResult, TrackCandidate, VideoInfo

logger = logging.getLogger(__name__)

_DAY_MS = 24 * 60 * 60 * 1000


class ResolutionStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    CANCELLED = "cancelled"


class ResolutionStage(str, Enum):
    IDLE = "idle"
    CACHE_CHECK = "cache_check"
    FAST_LOOKUP = "fast_lookup"
    DISPLAYED = "displayed"
    UPGRADE_LOOKUP = "upgrade_lookup"
    TERMINAL = "terminal"


@dataclass(frozen=True, slots=True)
class Resolution:
    generation: int
    status: ResolutionStatus
    stage: ResolutionStage
    lines: tuple[LyricLine, ...] = ()
    plain_text: str | None = None
    provider: str | None = None
    track_name: str = ""
    artist_name: str = ""
    query: str = ""
    from_cache: bool = False
    upgraded: bool = False
    message: str = ""

    @property
    def synced(self) -> bool:
        return bool(self.lines)

    @property
    def precision(self) -> SyncPrecision:
        return precision_of(self.lines)


@dataclass(frozen=True, slots=True)
class ProviderOutcome:
    """One provider call for one strategy, tagged with the generation that issued it."""
    generation: int
    provider: str
    strategy: str
    result: ProviderResult | None = None
    error: LyricsError | None = None


UpdateCallback = Callable[[Resolution], None]


def build_providers(cfg: AppConfig) -> list[LyricsProvider]:
    out: list[LyricsProvider] = []
    http = dict(
        timeout_s=cfg.api_timeout_s,
        max_retries=cfg.api_max_retries,
        backoff_base_s=cfg.api_backoff_base_s,
    )
    for name in cfg.providers:
        if name == "lrclib":
            out.append(LrcLibProvider(**http))
        elif name == "musixmatch":
            out.append(MusixmatchProvider(enhanced=cfg.musixmatch_enhanced, **http))
        elif name == "deezer":
            out.append(DeezerProvider(**http))
        else:
            logger.info("Unknown provider '%s' in config, skipping", name)
    return out


def build_cache(cfg: AppConfig) -> ResultCache:
    return ResultCache(
        BlobStore(cfg.cache_db_path),
        ttl_ms=int(cfg.cache_ttl_days * _DAY_MS),
        max_size=cfg.cache_max_size,
        flush_delay_s=cfg.cache_flush_delay_s,
    )


class LyricsService:
    """
    Resolves a video to lyrics: cache, then the primary provider, then an
    optional upgrade through the secondary providers.

    The first provider is the fast primary; its result is shown right away
    through `on_update`. While that result is below `upgrade_precision`, the
    remaining providers are asked in order and a more precise result replaces
    it. Each `resolve` call takes a new generation; work belonging to an older
    generation is dropped as soon as it comes back.
    """

    def __init__(
        self,
        cfg: AppConfig,
        *,
        providers: Sequence[LyricsProvider] | None = None,
        cache: ResultCache | None = None,
    ):
        self.cfg = cfg
        self.providers = list(providers) if providers is not None else build_providers(cfg)
        self.cache = cache if cache is not None else build_cache(cfg)
        self.upgrade_precision = SyncPrecision.from_name(cfg.upgrade_precision)
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def cancel(self) -> None:
        """Invalidate any resolution in flight."""
        self._generation += 1

    def _stale(self, generation: int) -> bool:
        return generation != self._generation

    def strategies(self, video: VideoInfo) -> list[SearchStrategy]:
        return build_strategies(video.title, video.channel, min_length=self.cfg.min_query_length)

    def parse(self, synced_text: str) -> tuple[LyricLine, ...]:
        doc = parse_lrc(
            synced_text,
            words_per_second=self.cfg.words_per_second,
            last_line_duration_s=self.cfg.last_line_duration_s,
        )
        return doc.lines

    def _resolution(
        self,
        generation: int,
        *,
        provider: str,
        synced_text: str | None,
        plain_text: str | None,
        track_name: str,
        artist_name: str,
        query: str,
        stage: ResolutionStage,
        from_cache: bool = False,
    ) -> Resolution | None:
        lines: tuple[LyricLine, ...] = ()
        if synced_text:
            lines = self.parse(synced_text)
            if not lines:
                logger.info("%s returned synced lyrics without usable timestamps", provider)
        if not lines and not (plain_text and plain_text.strip()):
            return None
        return Resolution(
            generation=generation,
            status=ResolutionStatus.FOUND,
            stage=stage,
            lines=lines,
            plain_text=plain_text,
            provider=provider,
            track_name=track_name,
            artist_name=artist_name,
            query=query,
            from_cache=from_cache,
            message="" if lines else t("unsynced_lyrics"),
        )

    def _from_cache(self, generation: int, strategy: SearchStrategy, entry: CacheEntry) -> Resolution | None:
        return self._resolution(
            generation,
            provider=entry.provider_name,
            synced_text=entry.synced_text,
            plain_text=entry.plain_text,
            track_name=entry.track_name,
            artist_name=entry.artist_name,
            query=strategy.query,
            stage=ResolutionStage.TERMINAL,
            from_cache=True,
        )

    def _store(self, res: Resolution, result: ProviderResult) -> None:
        self.cache.put(
            res.query,
            synced_text=result.synced_text or "",
            provider_name=result.provider_name,
            track_name=res.track_name,
            artist_name=res.artist_name,
            plain_text=result.plain_text,
        )

    async def _call(self, generation: int, provider: LyricsProvider, strategy: SearchStrategy) -> ProviderOutcome:
        try:
            candidates = await asyncio.to_thread(provider.search, strategy.query)
            if not candidates or self._stale(generation):
                return ProviderOutcome(generation, provider.name, strategy.name)
            best = pick_best_match(candidates, strategy.artist_hint, strategy.song_name_hint)
            if best is None:
                return ProviderOutcome(generation, provider.name, strategy.name)
            result = provider.inline_result(best)
            if result is None:
                result = await asyncio.to_thread(provider.fetch_lyrics, best)
        except LyricsError as e:
            return ProviderOutcome(generation, provider.name, strategy.name, error=e)
        except Exception as e:
            # provider bug; log it and let the next strategy run
            logger.exception("%s crashed on %r", provider.name, strategy.query)
            error = ProviderError(provider.name, f"unexpected {type(e).__name__}: {e}")
            return ProviderOutcome(generation, provider.name, strategy.name, error=error)
        return ProviderOutcome(generation, provider.name, strategy.name, result=_named(result, best))

    async def _lookup(
        self,
        generation: int,
        provider: LyricsProvider,
        strategies: Sequence[SearchStrategy],
        stage: ResolutionStage,
        blocked: set[str],
    ) -> tuple[Resolution, ProviderResult] | None:
        for strategy in strategies:
            if self._stale(generation) or provider.name in blocked:
                return None
            logger.debug("%s: trying %s with %r", stage.value, provider.name, strategy.query)
            outcome = await self._call(generation, provider, strategy)
            if self._stale(outcome.generation):
                return None
            if outcome.error is not None:
                if isinstance(outcome.error, AuthExpired):
                    logger.warning("%s: %s, skipping provider", provider.name, outcome.error)
                    blocked.add(provider.name)
                    return None
                logger.warning("%s failed for %r: %s", provider.name, strategy.query, outcome.error)
                continue
            if outcome.result is None or outcome.result.is_empty:
                continue
            res = self._resolution(
                generation,
                provider=outcome.result.provider_name,
                synced_text=outcome.result.synced_text,
                plain_text=outcome.result.plain_text,
                track_name=outcome.result.track_name,
                artist_name=outcome.result.artist_name,
                query=strategy.query,
                stage=stage,
            )
            if res is not None:
                return res, outcome.result
        return None

    def _cancelled(self, generation: int) -> Resolution:
        logger.debug("Resolution %d superseded", generation)
        return Resolution(generation, ResolutionStatus.CANCELLED, ResolutionStage.TERMINAL)

    async def resolve(self, video: VideoInfo, on_update: UpdateCallback | None = None) -> Resolution:
        """
        Resolve lyrics for a video.

        Every state worth showing goes through `on_update` (the fast result, an
        upgrade, the final "not found"); the return value is the terminal state.
        A resolution superseded by a newer `resolve`/`cancel` returns CANCELLED
        and never touches the cache or the callback again.
        """
        self._generation += 1
        gen = self._generation

        def emit(res: Resolution) -> Resolution:
            if on_update is not None and not self._stale(gen):
                on_update(res)
            return res

        strategies = [s for s in self.strategies(video) if s.enabled]
        logger.info("Resolving %s (%d strategies)", video.display, len(strategies))

        for strategy in strategies:
            entry = self.cache.get(strategy.query)
            if entry is None:
                continue
            res = self._from_cache(gen, strategy, entry)
            if res is not None:
                logger.info("Cache hit for %r (%s)", strategy.query, entry.provider_name)
                return emit(res)

        blocked: set[str] = set()
        primary, secondaries = (self.providers[0], self.providers[1:]) if self.providers else (None, [])

        fast = None
        if primary is not None:
            fast = await self._lookup(gen, primary, strategies, ResolutionStage.FAST_LOOKUP, blocked)
            if self._stale(gen):
                return self._cancelled(gen)

        if fast is None:
            # nothing to show yet, the secondaries are the only hope
            for provider in secondaries:
                found = await self._lookup(gen, provider, strategies, ResolutionStage.FAST_LOOKUP, blocked)
                if self._stale(gen):
                    return self._cancelled(gen)
                if found is not None:
                    res, result = found
                    self._store(res, result)
                    return emit(replace(res, stage=ResolutionStage.TERMINAL))
            logger.info("No lyrics found for %s", video.display)
            return emit(
                Resolution(
                    gen,
                    ResolutionStatus.NOT_FOUND,
                    ResolutionStage.TERMINAL,
                    message=t("lyrics_not_found"),
                )
            )

        shown, result = fast
        self._store(shown, result)
        shown = emit(replace(shown, stage=ResolutionStage.DISPLAYED))

        for provider in secondaries:
            if shown.precision >= self.upgrade_precision:
                break
            found = await self._lookup(gen, provider, strategies, ResolutionStage.UPGRADE_LOOKUP, blocked)
            if self._stale(gen):
                return self._cancelled(gen)
            if found is None:
                continue
            better, better_result = found
            if better.precision <= shown.precision:
                logger.debug("%s result is not more precise, keeping %s", provider.name, shown.provider)
                continue
            logger.info("Upgraded lyrics from %s to %s", shown.provider, better.provider)
            self._store(better, better_result)
            if better.query != shown.query:
                # later resolves may hit the fast result's key first
                self._store(replace(better, query=shown.query), better_result)
            shown = emit(replace(better, stage=ResolutionStage.DISPLAYED, upgraded=True))

        return replace(shown, stage=ResolutionStage.TERMINAL)

    def search(self, query: str, provider_name: str | None = None) -> list[TrackCandidate]:
        """Raw candidate search through one provider (the primary by default)."""
        for provider in self.providers:
            if provider_name is None or provider.name == provider_name:
                return provider.search(query)
        raise ValueError(f"Provider not configured: {provider_name}")

    def close(self) -> None:
        self.cache.close()


def _named(result: ProviderResult, candidate: TrackCandidate) -> ProviderResult:
    # some endpoints omit names in the lyrics body; the search hit has them
    if result.track_name and result.artist_name:
        return result
    return replace(
        result,
        track_name=result.track_name or candidate.track_name,
        artist_name=result.artist_name or candidate.artist_name,
    )
