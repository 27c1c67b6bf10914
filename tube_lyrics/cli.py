from __future__ import annotations

from dataclasses import replace
import json
from pathlib import Path

import typer

from tube_lyrics.app import play as play_loop
from tube_lyrics.app import resolve_video
from tube_lyrics.config import HIGHLIGHT_MODES, load_config, save_config_value
from tube_lyrics.errors import ProviderError
from tube_lyrics.i18n import set_lang, t
from tube_lyrics.logging_setup import setup_logging
from tube_lyrics.lrc.export import export_json, export_lrc, export_srt
from tube_lyrics.lrc.model import LrcDocument, precision_of
from tube_lyrics.lrc.parse import parse_lrc_with_stats
from tube_lyrics.lrc.translit import annotate_lines
from tube_lyrics.search.title import parse_title
from tube_lyrics.sources.service import LyricsService, ResolutionStatus, build_cache
from tube_lyrics.sources.types import VideoInfo
from tube_lyrics.search.strategies import build_strategies


app = typer.Typer(no_args_is_help=True, add_completion=False)


@app.command()
def resolve(
    title: str = typer.Argument(..., help="Video title"),
    channel: str = typer.Option("", "--channel", "-c", help="Channel / uploader name"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    """Resolve lyrics for a video title and print them as LRC."""
    setup_logging(debug)
    cfg = load_config()
    set_lang(cfg.lang)
    res = resolve_video(cfg, VideoInfo(title=title, channel=channel))

    if res.status is not ResolutionStatus.FOUND:
        typer.echo(res.message or t("lyrics_not_found"), err=True)
        raise typer.Exit(code=1)

    if json_output:
        payload = json.loads(export_json(LrcDocument(lines=res.lines)))
        payload.update(
            {
                "provider": res.provider,
                "track_name": res.track_name,
                "artist_name": res.artist_name,
                "query": res.query,
                "from_cache": res.from_cache,
                "upgraded": res.upgraded,
                "precision": res.precision.name.lower(),
                "plain_text": None if res.lines else res.plain_text,
            }
        )
        typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        return

    typer.echo(f"# {res.artist_name} - {res.track_name} ({res.provider}, {res.precision.name.lower()})")
    if res.lines:
        typer.echo(export_lrc(LrcDocument(lines=res.lines)), nl=False)
    else:
        typer.echo(res.plain_text or "")


@app.command()
def title(
    video_title: str = typer.Argument(..., help="Video title"),
    channel: str = typer.Option("", "--channel", "-c", help="Channel / uploader name"),
):
    """Show how a title is parsed and which search queries it produces."""
    cfg = load_config()
    parsed = parse_title(video_title, channel)
    typer.echo(f"song={parsed.song}")
    typer.echo(f"artist={parsed.artist}")
    typer.echo(f"confidence={parsed.confidence}")
    for s in build_strategies(video_title, channel, parsed=parsed, min_length=cfg.min_query_length):
        mark = "+" if s.enabled else "-"
        typer.echo(f"{mark} {s.name}: {s.query}")


@app.command()
def search(
    query: str = typer.Argument(..., help="Free-text query"),
    provider: str | None = typer.Option(None, "--provider", "-p", help="lrclib|musixmatch|deezer"),
    limit: int = typer.Option(10, "--limit", "-n", help="Maximum results to show"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Search a lyrics provider (the primary one by default)."""
    cfg = load_config()
    set_lang(cfg.lang)
    if provider:
        cfg = replace(cfg, providers=(provider.lower(),))
    svc = LyricsService(cfg)
    try:
        results = svc.search(query)[:limit]
    except (ProviderError, ValueError) as e:
        typer.echo(t("api_error", error=str(e)), err=True)
        raise typer.Exit(code=1)
    finally:
        svc.close()

    if not results:
        typer.echo(t("no_results"))
        return

    if json_output:
        typer.echo(
            json.dumps(
                [
                    {
                        "provider": r.provider,
                        "id": r.id,
                        "track_name": r.track_name,
                        "artist_name": r.artist_name,
                        "album_name": r.album_name,
                        "duration": r.duration,
                        "has_synced_lyrics": r.has_synced_lyrics,
                        "has_plain_lyrics": r.has_plain_lyrics,
                    }
                    for r in results
                ],
                indent=2,
                ensure_ascii=False,
            )
        )
        return

    for i, r in enumerate(results, 1):
        synced = "✓" if r.has_synced_lyrics else "✗"
        duration_str = f"{int(r.duration) // 60}:{int(r.duration) % 60:02d}" if r.duration else "?"
        typer.echo(f"{i}. {r.display} ({duration_str}) [{r.provider}]")
        if r.album_name:
            typer.echo(f"   Album: {r.album_name}")
        typer.echo(f"   Synced: {synced}  ID: {r.id}")


@app.command()
def parse(lrc_path: Path):
    """Parse LRC and print stats."""
    text = lrc_path.read_text(encoding="utf-8")
    doc, stats = parse_lrc_with_stats(text)
    typer.echo(f"lines_total={stats.lines_total}")
    typer.echo(f"lines_with_timestamps={stats.lines_with_timestamps}")
    typer.echo(f"lines_ignored={stats.lines_ignored}")
    typer.echo(f"events_total={stats.events_total}")
    typer.echo(f"word_timed_lines={stats.word_timed_lines}")
    typer.echo(f"precision={precision_of(doc.lines).name.lower()}")
    typer.echo(f"offset_ms={doc.offset_ms}")
    typer.echo(f"tags={doc.tags or {}}")


@app.command()
def export(
    lrc_path: Path,
    fmt: str = typer.Option("srt", "--format", case_sensitive=False, help="lrc|srt|json"),
    out: Path | None = typer.Option(None, "--out", help="Output file (default: stdout)"),
    romanize: bool = typer.Option(False, "--romanize", help="Add romanization (json only)"),
):
    """Export LRC to SRT/JSON/LRC (normalized)."""
    text = lrc_path.read_text(encoding="utf-8")
    doc, _stats = parse_lrc_with_stats(text)
    if romanize:
        doc = replace(doc, lines=annotate_lines(doc.lines))
    fmt_l = fmt.lower()
    if fmt_l == "json":
        data = export_json(doc)
    elif fmt_l == "lrc":
        data = export_lrc(doc)
    elif fmt_l == "srt":
        data = export_srt(doc)
    else:
        raise typer.BadParameter("format must be one of: lrc, srt, json")

    if out:
        out.write_text(data, encoding="utf-8")
    else:
        typer.echo(data, nl=False)


@app.command()
def play(
    video_title: str = typer.Argument(..., help="Video title"),
    channel: str = typer.Option("", "--channel", "-c", help="Channel / uploader name"),
    start: float = typer.Option(0.0, "--start", help="Start position (seconds)"),
    duration: float | None = typer.Option(None, "--duration", help="Stop after this position (seconds)"),
    delay_ms: int | None = typer.Option(None, "--delay-ms", help="Sync delay, may be negative"),
    mode: str | None = typer.Option(None, "--mode", help="line|word|syllable"),
    refresh_hz: float | None = typer.Option(None, "--refresh-hz", help="Redraw frequency (Hz)"),
    no_alt_screen: bool = typer.Option(False, "--no-alt-screen", help="Do not use alternate screen buffer"),
    context_lines: int | None = typer.Option(None, "--context", help="Lines above/below current line"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    """
    Play synced lyrics in the terminal against a local clock.
    """
    setup_logging(debug)
    cfg = load_config()
    set_lang(cfg.lang)
    if mode is not None and mode.lower() not in HIGHLIGHT_MODES:
        raise typer.BadParameter(f"mode must be one of: {', '.join(HIGHLIGHT_MODES)}")
    overrides = {
        "sync_delay_ms": delay_ms,
        "highlight_mode": mode.lower() if mode else None,
        "refresh_hz": refresh_hz,
        "context_lines": context_lines,
    }
    cfg = replace(cfg, **{k: v for k, v in overrides.items() if v is not None})
    if no_alt_screen:
        cfg = replace(cfg, use_alt_screen=False)

    video = VideoInfo(title=video_title, channel=channel)
    raise typer.Exit(code=play_loop(cfg, video, start_at=start, duration=duration))


@app.command()
def cache(
    clear: bool = typer.Option(False, "--clear", help="Clear lyrics cache"),
    stats: bool = typer.Option(False, "--stats", help="Show cached queries"),
):
    """Manage lyrics cache."""
    cfg = load_config()
    set_lang(cfg.lang)
    result_cache = build_cache(cfg)
    try:
        if clear:
            result_cache.clear()
            typer.echo(t("cache_cleared", path=str(cfg.cache_db_path)))
        elif stats:
            typer.echo(t("cache_stats", count=len(result_cache), path=str(cfg.cache_db_path)))
            for key in result_cache.keys():
                typer.echo(f"  {key}")
        else:
            typer.echo(t("cache_usage"))
    finally:
        result_cache.close()


@app.command()
def config(
    lang: str | None = typer.Option(None, "--lang", help="Interface language: en|ru"),
    delay_ms: int | None = typer.Option(None, "--delay-ms", help="Default sync delay"),
    mode: str | None = typer.Option(None, "--mode", help="Default highlight mode: line|word|syllable"),
):
    """Show or change saved preferences."""
    changes = {"lang": lang, "sync_delay_ms": delay_ms, "highlight_mode": mode}
    for key, value in changes.items():
        if value is None:
            continue
        try:
            save_config_value(key, value)
        except ValueError as e:
            raise typer.BadParameter(str(e))

    cfg = load_config()
    set_lang(cfg.lang)
    for key, value in changes.items():
        if value is not None:
            typer.echo(t("config_saved", key=key, value=str(getattr(cfg, key))))
    typer.echo(f"lang={cfg.lang}")
    typer.echo(f"sync_delay_ms={cfg.sync_delay_ms}")
    typer.echo(f"highlight_mode={cfg.highlight_mode}")
    typer.echo(f"providers={','.join(cfg.providers)}")
    typer.echo(f"config_dir={cfg.config_dir}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
