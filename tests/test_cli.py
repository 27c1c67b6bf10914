from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from conftest import LINE_LRC
from tube_lyrics import cli
from tube_lyrics.i18n import set_lang
from tube_lyrics.lrc.parse import parse_lrc
from tube_lyrics.sources.service import Resolution, ResolutionStage, ResolutionStatus, build_cache

runner = CliRunner()


@pytest.fixture(autouse=True)
def english():
    yield
    set_lang("EN")


@pytest.fixture
def lrc_file(tmp_path):
    path = tmp_path / "song.lrc"
    path.write_text(LINE_LRC, encoding="utf-8")
    return path


def test_parse(lrc_file):
    result = runner.invoke(cli.app, ["parse", str(lrc_file)])
    assert result.exit_code == 0
    assert "lines_with_timestamps=2" in result.output
    assert "events_total=2" in result.output
    assert "precision=line" in result.output


def test_export_srt(lrc_file):
    result = runner.invoke(cli.app, ["export", str(lrc_file), "--format", "srt"])
    assert result.exit_code == 0
    assert "00:00:01,000 --> 00:00:03,500\nHello\n" in result.output


def test_export_json_romanized(tmp_path):
    src = tmp_path / "jp.lrc"
    src.write_text("[00:01.00]さくら\n", encoding="utf-8")
    out = tmp_path / "jp.json"

    result = runner.invoke(cli.app, ["export", str(src), "--format", "json", "--romanize", "--out", str(out)])

    assert result.exit_code == 0
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["lines"][0]["transliteration"] == "sakura"


def test_export_unknown_format(lrc_file):
    result = runner.invoke(cli.app, ["export", str(lrc_file), "--format", "docx"])
    assert result.exit_code == 2


def test_title(cfg):
    result = runner.invoke(cli.app, ["title", "Artist - Song (Official Video)", "--channel", "Artist"])
    assert result.exit_code == 0
    assert "song=Song" in result.output
    assert "artist=Artist" in result.output
    assert "+ parsed_song_artist: Song Artist" in result.output


class TestConfig:
    def test_show_defaults(self, cfg):
        result = runner.invoke(cli.app, ["config"])
        assert result.exit_code == 0
        assert "lang=EN" in result.output
        assert "highlight_mode=line" in result.output

    def test_set_lang(self, cfg):
        result = runner.invoke(cli.app, ["config", "--lang", "ru"])
        assert result.exit_code == 0
        assert "Сохранено: lang = RU" in result.output
        assert "lang=RU" in result.output

    def test_invalid_mode(self, cfg):
        result = runner.invoke(cli.app, ["config", "--mode", "bogus"])
        assert result.exit_code == 2
        assert not (cfg.config_dir / "config.json").exists()


class TestCache:
    def test_stats_and_clear(self, cfg):
        seeded = build_cache(cfg)
        seeded.put("Song Artist", synced_text=LINE_LRC, provider_name="lrclib")
        seeded.close()

        result = runner.invoke(cli.app, ["cache", "--stats"])
        assert result.exit_code == 0
        assert "1 cached entries" in result.output
        assert "  song artist" in result.output

        result = runner.invoke(cli.app, ["cache", "--clear"])
        assert result.exit_code == 0
        assert f"Cache cleared: {cfg.cache_db_path}" in result.output
        assert len(build_cache(cfg)) == 0

    def test_usage(self, cfg):
        result = runner.invoke(cli.app, ["cache"])
        assert result.exit_code == 0
        assert "--clear" in result.output


class TestResolve:
    def _found(self) -> Resolution:
        return Resolution(
            generation=1,
            status=ResolutionStatus.FOUND,
            stage=ResolutionStage.TERMINAL,
            lines=parse_lrc(LINE_LRC).lines,
            provider="lrclib",
            track_name="Song",
            artist_name="Artist",
            query="Song Artist",
        )

    def test_prints_lrc(self, cfg, monkeypatch):
        seen = []

        def fake_resolve(cfg, video, svc=None):
            seen.append(video)
            return self._found()

        monkeypatch.setattr(cli, "resolve_video", fake_resolve)

        result = runner.invoke(cli.app, ["resolve", "Artist - Song", "--channel", "Artist"])

        assert result.exit_code == 0
        assert seen[0].title == "Artist - Song"
        assert seen[0].channel == "Artist"
        assert "# Artist - Song (lrclib, line)" in result.output
        assert "[00:01.00]Hello\n[00:03.50]World\n" in result.output

    def test_json(self, cfg, monkeypatch):
        monkeypatch.setattr(cli, "resolve_video", lambda cfg, video, svc=None: self._found())

        result = runner.invoke(cli.app, ["resolve", "Artist - Song", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["provider"] == "lrclib"
        assert data["precision"] == "line"
        assert [ln["text"] for ln in data["lines"]] == ["Hello", "World"]

    def test_not_found(self, cfg, monkeypatch):
        missing = Resolution(
            generation=1,
            status=ResolutionStatus.NOT_FOUND,
            stage=ResolutionStage.TERMINAL,
            message="No lyrics found for this video",
        )
        monkeypatch.setattr(cli, "resolve_video", lambda cfg, video, svc=None: missing)

        result = runner.invoke(cli.app, ["resolve", "Nobody - Nothing"])

        assert result.exit_code == 1
        assert "No lyrics found for this video" in result.output
