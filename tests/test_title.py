import pytest

from tube_lyrics.search.similarity import normalize, similarity
from tube_lyrics.search.title import clean_channel_name, parse_title, strip_markers


class TestSimilarity:
    def test_empty_is_zero(self):
        assert similarity("", "abc") == 0.0
        assert similarity("abc", None) == 0.0

    def test_equal_after_normalization(self):
        assert similarity("  ABC ", "abc") == 1.0

    def test_char_set_overlap(self):
        assert similarity("ab", "bc") == pytest.approx(1 / 3)
        assert similarity("ab", "ba") == 1.0

    def test_symmetric(self):
        assert similarity("Adele", "Hello") == similarity("Hello", "Adele")

    def test_normalize(self):
        assert normalize("  Foo   BAR ") == "foo bar"


class TestParseTitle:
    def test_channel_matches_first_part(self):
        p = parse_title("Artist - Song (Official Video)", "Artist")
        assert (p.song, p.artist, p.confidence) == ("Song", "Artist", 0.9)

    def test_channel_matches_second_part(self):
        p = parse_title("Hello - Adele", "AdeleVEVO")
        assert (p.song, p.artist, p.confidence) == ("Hello", "Adele", 0.9)

    def test_short_first_part_is_artist(self):
        p = parse_title("Adele - Hello")
        assert (p.song, p.artist, p.confidence) == ("Hello", "Adele", 0.8)

    def test_filler_words_mean_song_first(self):
        p = parse_title("My Heart Will Go On - Celine Dion")
        assert (p.song, p.artist, p.confidence) == ("My Heart Will Go On", "Celine Dion", 0.75)

    def test_unicode_dash(self):
        p = parse_title("Adele – Hello [Lyrics]")
        assert (p.song, p.artist) == ("Hello", "Adele")

    def test_feat_parenthetical(self):
        p = parse_title("Song Name (feat. Guest)", "Main Artist")
        assert (p.song, p.artist, p.confidence) == ("Song Name", "Main Artist", 0.7)
        p = parse_title("Song Name (feat. Guest)")
        assert p.artist == "Guest"

    def test_feat_stripped_from_dash_song(self):
        p = parse_title("Adele - Hello (ft. Someone)")
        assert p.song == "Hello"

    def test_pipe_separator(self):
        p = parse_title("Song Title | Live Session")
        assert (p.song, p.artist, p.confidence) == ("Song Title", "Live Session", 0.6)
        p = parse_title("Song Title | Live Session", "Band")
        assert p.artist == "Band"

    def test_whole_title(self):
        assert parse_title("Just A Song", "Band").confidence == 0.8
        p = parse_title("Just A Song")
        assert (p.song, p.artist, p.confidence) == ("Just A Song", "", 0.4)


def test_strip_markers_keeps_other_brackets():
    assert strip_markers("Song (Acoustic) [Official Audio]") == "Song (Acoustic)"
    assert strip_markers("Song Official Music Video") == "Song"


def test_clean_channel_name():
    assert clean_channel_name("Artist - Topic") == "Artist"
    assert clean_channel_name("ArtistVEVO") == "Artist"
    assert clean_channel_name("Artist Official") == "Artist"
    assert clean_channel_name(None) == ""
