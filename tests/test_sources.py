from __future__ import annotations

import json

import pytest
import requests

from tube_lyrics.errors import AuthExpired, ParseFailure, ProviderUnavailable
from tube_lyrics.lrc.parse import parse_lrc
from tube_lyrics.sources.deezer import DeezerProvider
from tube_lyrics.sources.lrclib import LrcLibProvider
from tube_lyrics.sources.musixmatch import MusixmatchProvider, richsync_to_lrc
from tube_lyrics.sources.types import TrackCandidate

RICHSYNC = json.dumps(
    [
        {"ts": 1.0, "te": 2.5, "l": [{"c": "Hello", "o": 0}, {"c": " ", "o": 0.5}, {"c": "world", "o": 0.6}]},
        {"ts": 3.0, "te": 4.0, "l": [{"c": "Again", "o": 0}]},
    ]
)


def _response(status: int, payload) -> requests.Response:
    r = requests.Response()
    r.status_code = status
    r._content = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
    r.url = "https://example.invalid/"
    return r


class FakeTransport:
    """Stands in for Session.request; `handler(method, url, params, json)` returns a Response."""

    def __init__(self, handler):
        self.handler = handler
        self.calls: list[tuple[str, str, dict]] = []

    def __call__(self, method, url, params=None, json=None, headers=None, timeout=None):
        self.calls.append((method, url, dict(params or {})))
        result = self.handler(method, url, params or {}, json)
        if isinstance(result, Exception):
            raise result
        return result


def _session(monkeypatch, handler) -> tuple[requests.Session, FakeTransport]:
    session = requests.Session()
    transport = FakeTransport(handler)
    monkeypatch.setattr(session, "request", transport)
    return session, transport


def _mxm(status: int, body=None) -> requests.Response:
    return _response(200, {"message": {"header": {"status_code": status}, "body": body if body is not None else ""}})


class TestLrcLib:
    def test_search_carries_inline_lyrics(self, monkeypatch):
        item = {
            "id": 7,
            "trackName": "Song",
            "artistName": "Artist",
            "albumName": "Album",
            "duration": 200,
            "syncedLyrics": "[00:01.00]Hello\n",
            "plainLyrics": "Hello",
        }
        session, transport = _session(monkeypatch, lambda *a: _response(200, [item]))
        provider = LrcLibProvider(session=session)

        results = provider.search("song artist")

        assert transport.calls == [("GET", "https://lrclib.net/api/search", {"q": "song artist"})]
        assert results[0].has_synced_lyrics
        assert provider.fetch_lyrics(results[0]).synced_text == "[00:01.00]Hello\n"
        # no second request: lyrics came with the hit
        assert len(transport.calls) == 1

    def test_fetch_by_id(self, monkeypatch):
        session, transport = _session(
            monkeypatch,
            lambda *a: _response(200, {"id": 7, "trackName": "Song", "artistName": "Artist", "syncedLyrics": "[00:02.00]x"}),
        )
        provider = LrcLibProvider(session=session)
        candidate = TrackCandidate(provider="lrclib", id=7, track_name="Song", artist_name="Artist")

        result = provider.fetch_lyrics(candidate)

        assert transport.calls[0][1] == "https://lrclib.net/api/get/7"
        assert result.synced_text == "[00:02.00]x\n"

    def test_fetch_not_found(self, monkeypatch):
        session, _ = _session(monkeypatch, lambda *a: _response(404, {"message": "not found"}))
        provider = LrcLibProvider(session=session)
        candidate = TrackCandidate(provider="lrclib", id=7, track_name="Song", artist_name="Artist")
        assert provider.fetch_lyrics(candidate).is_empty

    def test_retries_then_succeeds(self, monkeypatch):
        answers = iter([requests.ConnectionError("boom"), _response(200, [])])
        session, transport = _session(monkeypatch, lambda *a: next(answers))
        provider = LrcLibProvider(session=session, max_retries=2, backoff_base_s=0)

        assert provider.search("song artist") == []
        assert len(transport.calls) == 2

    def test_retries_exhausted(self, monkeypatch):
        session, transport = _session(monkeypatch, lambda *a: _response(500, {}))
        provider = LrcLibProvider(session=session, max_retries=3, backoff_base_s=0)

        with pytest.raises(ProviderUnavailable) as exc:
            provider.search("song artist")
        assert exc.value.provider == "lrclib"
        assert len(transport.calls) == 3

    def test_malformed_json(self, monkeypatch):
        session, _ = _session(monkeypatch, lambda *a: _response(200, b"<html>oops</html>"))
        provider = LrcLibProvider(session=session)
        with pytest.raises(ParseFailure):
            provider.search("song artist")


class TestRichsync:
    def test_converts_to_enhanced_lrc(self):
        lrc = richsync_to_lrc(RICHSYNC)
        assert lrc.splitlines()[0] == "[00:01.00] <00:01.00>Hello <00:01.60>world<00:02.50>"
        line = parse_lrc(lrc).lines[0]
        assert [(w.word, w.time) for w in line.words] == [("Hello", 1.0), ("world", 1.6)]
        assert line.has_word_timing
        assert line.syllables[-1].end_time == 2.5

    def test_malformed_body(self):
        with pytest.raises(ParseFailure):
            richsync_to_lrc("not json")
        with pytest.raises(ParseFailure):
            richsync_to_lrc(json.dumps([{"l": []}]))


class TestMusixmatch:
    def _handler(self, search_statuses, tokens, bodies=None):
        bodies = bodies or {}

        def handler(method, url, params, body):
            action = url.rsplit("/", 1)[-1]
            if action == "token.get":
                return _mxm(200, {"user_token": next(tokens)})
            if action == "track.search":
                status = next(search_statuses)
                if status != 200:
                    return _mxm(status)
                track = {"track_id": 42, "track_name": "Song", "artist_name": "Artist", "has_richsync": 1}
                return _mxm(200, {"track_list": [{"track": track}]})
            status, payload = bodies.get(action, (404, None))
            return _mxm(status, payload)

        return handler

    def test_token_refreshed_after_401(self, monkeypatch):
        tokens = iter(["tok1", "tok2"])
        session, transport = _session(monkeypatch, self._handler(iter([401, 200]), tokens))
        provider = MusixmatchProvider(session=session, backoff_base_s=0)

        results = provider.search("song artist")

        assert [r.id for r in results] == [42]
        actions = [(c[1].rsplit("/", 1)[-1], c[2].get("usertoken")) for c in transport.calls]
        assert actions == [
            ("token.get", None),
            ("track.search", "tok1"),
            ("token.get", None),
            ("track.search", "tok2"),
        ]

    def test_second_401_raises(self, monkeypatch):
        tokens = iter(["tok1", "tok2"])
        session, _ = _session(monkeypatch, self._handler(iter([401, 401]), tokens))
        provider = MusixmatchProvider(session=session, backoff_base_s=0)
        with pytest.raises(AuthExpired):
            provider.search("song artist")

    def test_token_reused_until_expiry(self, monkeypatch):
        now = [1000.0]
        tokens = iter(["tok1", "tok2"])
        session, transport = _session(monkeypatch, self._handler(iter([200, 200, 200]), tokens))
        provider = MusixmatchProvider(session=session, clock=lambda: now[0])

        provider.search("a b c")
        provider.search("a b c")
        now[0] += 601
        provider.search("a b c")

        token_calls = [c for c in transport.calls if c[1].endswith("token.get")]
        assert len(token_calls) == 2

    def test_fetch_prefers_richsync(self, monkeypatch):
        bodies = {"track.richsync.get": (200, {"richsync": {"richsync_body": RICHSYNC}})}
        session, _ = _session(monkeypatch, self._handler(iter([200]), iter(["tok"]), bodies))
        provider = MusixmatchProvider(session=session)
        candidate = provider.search("song artist")[0]

        result = provider.fetch_lyrics(candidate)

        assert result.synced_text == richsync_to_lrc(RICHSYNC)
        assert result.plain_text is None

    def test_fetch_subtitle_when_not_enhanced(self, monkeypatch):
        bodies = {
            "track.richsync.get": (200, {"richsync": {"richsync_body": RICHSYNC}}),
            "track.subtitle.get": (200, {"subtitle": {"subtitle_body": "[00:01.00]Hello\n"}}),
        }
        session, transport = _session(monkeypatch, self._handler(iter([200]), iter(["tok"]), bodies))
        provider = MusixmatchProvider(session=session, enhanced=False)
        candidate = provider.search("song artist")[0]

        assert provider.fetch_lyrics(candidate).synced_text == "[00:01.00]Hello\n"
        assert not any(c[1].endswith("track.richsync.get") for c in transport.calls)

    def test_fetch_plain_fallback(self, monkeypatch):
        bodies = {"track.lyrics.get": (200, {"lyrics": {"lyrics_body": "Hello\nWorld"}})}
        session, _ = _session(monkeypatch, self._handler(iter([200]), iter(["tok"]), bodies))
        provider = MusixmatchProvider(session=session)
        candidate = provider.search("song artist")[0]

        result = provider.fetch_lyrics(candidate)

        assert result.synced_text is None
        assert result.plain_text == "Hello\nWorld"

    def test_malformed_subtitle_is_a_parse_failure(self, monkeypatch):
        bodies = {"track.subtitle.get": (200, {"subtitle": "oops"})}
        session, _ = _session(monkeypatch, self._handler(iter([200]), iter(["tok"]), bodies))
        provider = MusixmatchProvider(session=session, enhanced=False)
        candidate = provider.search("song artist")[0]
        with pytest.raises(ParseFailure):
            provider.fetch_lyrics(candidate)


class TestDeezer:
    def _handler(self, lyrics_answers, user_data_calls):
        def handler(method, url, params, body):
            if url.startswith("https://api.deezer.com/search"):
                return _response(
                    200,
                    {"data": [{"id": 3135556, "title": "Song", "artist": {"name": "Artist"}, "album": {"title": "LP"}}]},
                )
            if params.get("method") == "deezer.getUserData":
                user_data_calls.append(params.get("api_token"))
                return _response(200, {"error": [], "results": {"checkForm": f"form{len(user_data_calls)}"}})
            if params.get("method") == "song.getLyrics":
                return _response(200, next(lyrics_answers))
            raise AssertionError(f"unexpected call {url} {params}")

        return handler

    def test_search(self, monkeypatch):
        session, _ = _session(monkeypatch, self._handler(iter([]), []))
        results = DeezerProvider(session=session).search("song artist")
        assert [(r.id, r.track_name, r.artist_name, r.album_name) for r in results] == [
            (3135556, "Song", "Artist", "LP")
        ]

    def test_fetch_synced_and_plain(self, monkeypatch):
        answer = {
            "error": [],
            "results": {
                "LYRICS_SYNC_JSON": [
                    {"lrc_timestamp": "[00:01.00]", "line": "Hello"},
                    {"line": ""},
                    {"lrc_timestamp": "[00:03.50]", "line": "World"},
                ],
                "LYRICS_TEXT": "Hello\nWorld",
            },
        }
        calls: list = []
        session, _ = _session(monkeypatch, self._handler(iter([answer]), calls))
        provider = DeezerProvider(session=session)
        candidate = provider.search("song artist")[0]

        result = provider.fetch_lyrics(candidate)

        assert result.synced_text == "[00:01.00] Hello\n[00:03.50] World\n"
        assert result.plain_text == "Hello\nWorld"
        assert calls == ["null"]

    def test_invalid_token_refreshed_once(self, monkeypatch):
        answers = iter(
            [
                {"error": {"VALID_TOKEN_REQUIRED": "Invalid CSRF token"}, "results": {}},
                {"error": [], "results": {"LYRICS_TEXT": "Hello"}},
            ]
        )
        calls: list = []
        session, _ = _session(monkeypatch, self._handler(answers, calls))
        provider = DeezerProvider(session=session)
        candidate = TrackCandidate(provider="deezer", id=1, track_name="Song", artist_name="Artist")

        result = provider.fetch_lyrics(candidate)

        assert result.plain_text == "Hello"
        assert result.synced_text is None
        assert len(calls) == 2

    def test_no_lyrics(self, monkeypatch):
        answers = iter([{"error": {"DATA_ERROR": "no lyrics"}, "results": {}}])
        session, _ = _session(monkeypatch, self._handler(answers, []))
        provider = DeezerProvider(session=session)
        candidate = TrackCandidate(provider="deezer", id=1, track_name="Song", artist_name="Artist")
        assert provider.fetch_lyrics(candidate).is_empty

    def test_malformed_artist_is_a_parse_failure(self, monkeypatch):
        def handler(method, url, params, body):
            return _response(200, {"data": [{"id": 1, "title": "Song", "artist": "Artist"}]})

        session, _ = _session(monkeypatch, handler)
        with pytest.raises(ParseFailure):
            DeezerProvider(session=session).search("song artist")

    def test_malformed_sync_lines(self, monkeypatch):
        answers = iter([{"error": [], "results": {"LYRICS_SYNC_JSON": "[00:01.00] Hello"}}])
        session, _ = _session(monkeypatch, self._handler(answers, []))
        provider = DeezerProvider(session=session)
        candidate = TrackCandidate(provider="deezer", id=1, track_name="Song", artist_name="Artist")
        with pytest.raises(ParseFailure):
            provider.fetch_lyrics(candidate)
