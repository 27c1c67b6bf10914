from __future__ import annotations

import json
import logging
from importlib.resources import files

logger = logging.getLogger(__name__)

SUPPORTED = ("en", "ru")

_CURRENT_LANG = "en"
_STRINGS: dict[str, str] = {}


def _load_locale(lang: str) -> dict[str, str]:
    lang_lower = lang.lower() if lang else "en"
    if lang_lower not in SUPPORTED:
        lang_lower = "en"
    path = files("tube_lyrics.i18n") / f"{lang_lower}.json"
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Cannot load %s strings: %s", lang_lower, e)
        return {}
    return {str(k): str(v) for k, v in data.items()}


def get_lang() -> str:
    return _CURRENT_LANG


def set_lang(lang: str) -> None:
    global _CURRENT_LANG, _STRINGS
    _CURRENT_LANG = (lang or "en").lower()
    if _CURRENT_LANG not in SUPPORTED:
        _CURRENT_LANG = "en"
    _STRINGS = _load_locale(_CURRENT_LANG)


def t(key: str, /, **kwargs: str | int | float) -> str:
    if not _STRINGS:
        set_lang(_CURRENT_LANG)
    s = _STRINGS.get(key, key)
    if kwargs:
        try:
            return s.format(**kwargs)
        except (KeyError, IndexError):
            return s
    return s


# Load default on import
set_lang("en")
