from tube_lyrics.lrc.model import LyricLine
from tube_lyrics.lrc.translit import annotate_lines, detect_language, romanize


def test_detect_language():
    assert detect_language("hello") == "unknown"
    assert detect_language("") == "unknown"
    assert detect_language("안녕하세요") == "ko"
    assert detect_language("さくら") == "ja"
    assert detect_language("桜") == "ja"


def test_korean():
    assert romanize("안녕하세요") == "annyeonghaseyo"


def test_japanese_kana():
    assert romanize("さくら") == "sakura"
    assert romanize("カラオケ") == "karaoke"


def test_kanji_is_read():
    assert romanize("桜") == "sakura"


def test_latin_text_not_romanized():
    assert romanize("hello") == ""


def test_annotate_lines():
    lines = (LyricLine(1.0, "hello"), LyricLine(2.0, "さくら"))
    out = annotate_lines(lines)
    assert out[0] is lines[0]
    assert out[1].transliteration == "sakura"
    assert out[1].text == "さくら"
