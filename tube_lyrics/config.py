from __future__ import annotations

import json
from dataclasses import dataclass
import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

ENV_PREFIX = "TUBE_LYRICS_"
LANGS = ("EN", "RU")
HIGHLIGHT_MODES = ("line", "word", "syllable")
PRECISIONS = ("plain", "line", "word")
# keys a user may persist in config.json
PREFERENCE_KEYS = ("lang", "sync_delay_ms", "highlight_mode")


def _config_dir() -> Path:
    xdg = os.getenv("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "tube-lyrics"
    return Path.home() / ".config" / "tube-lyrics"


def _config_file() -> Path:
    return _config_dir() / "config.json"


@dataclass(frozen=True)
class AppConfig:
    # Storage
    data_dir: Path
    cache_db_path: Path
    config_dir: Path

    # Locale
    lang: str

    # Providers
    providers: tuple[str, ...]
    api_timeout_s: float
    api_max_retries: int
    api_backoff_base_s: float
    musixmatch_enhanced: bool

    # Result cache
    cache_ttl_days: float
    cache_max_size: int
    cache_flush_delay_s: float

    # Resolution
    min_query_length: int
    upgrade_precision: str  # plain | line | word

    # Parsing
    words_per_second: float
    last_line_duration_s: float

    # Synchronization
    sync_delay_ms: int
    seek_threshold_s: float
    highlight_mode: str  # line | word | syllable

    # Rendering
    refresh_hz: float
    context_lines: int  # lines above/below current
    use_alt_screen: bool


def _env(name: str, default: str) -> str:
    return os.getenv(ENV_PREFIX + name, default)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(ENV_PREFIX + name)
    if raw is None:
        return default
    return raw.strip().lower() not in ("0", "false", "no", "off")


def _read_prefs(config_dir: Path) -> dict[str, Any]:
    cfg_path = config_dir / "config.json"
    if not cfg_path.exists():
        return {}
    try:
        data = json.loads(cfg_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable %s: %s", cfg_path, e)
        return {}
    return data if isinstance(data, dict) else {}


def load_config() -> AppConfig:
    # XDG base dir fallback
    xdg = os.getenv("XDG_CACHE_HOME")
    data_dir = Path(xdg) if xdg else Path.home() / ".cache"
    data_dir = data_dir / "tube-lyrics"

    providers_env = _env("PROVIDERS", "lrclib,musixmatch,deezer")
    providers = tuple(s.strip().lower() for s in providers_env.split(",") if s.strip())

    config_dir = _config_dir()
    prefs = _read_prefs(config_dir)

    return AppConfig(
        data_dir=data_dir,
        cache_db_path=data_dir / "cache.sqlite3",
        config_dir=config_dir,
        lang=_load_lang(prefs),
        providers=providers,
        api_timeout_s=float(_env("API_TIMEOUT", "10")),
        api_max_retries=int(_env("API_MAX_RETRIES", "2")),
        api_backoff_base_s=float(_env("API_BACKOFF_BASE", "1.0")),
        musixmatch_enhanced=_env_bool("MUSIXMATCH_ENHANCED", True),
        cache_ttl_days=float(_env("CACHE_TTL_DAYS", "30")),
        cache_max_size=int(_env("CACHE_MAX_SIZE", "50")),
        cache_flush_delay_s=float(_env("CACHE_FLUSH_DELAY", "1.0")),
        min_query_length=int(_env("MIN_QUERY_LENGTH", "3")),
        upgrade_precision=_choice(_env("UPGRADE_PRECISION", "word"), PRECISIONS, "word"),
        words_per_second=float(_env("WORDS_PER_SECOND", "2.5")),
        last_line_duration_s=float(_env("LAST_LINE_DURATION", "5.0")),
        sync_delay_ms=_load_delay(prefs),
        seek_threshold_s=float(_env("SEEK_THRESHOLD", "2.0")),
        highlight_mode=_choice(
            str(prefs.get("highlight_mode") or _env("HIGHLIGHT_MODE", "line")), HIGHLIGHT_MODES, "line"
        ),
        refresh_hz=float(_env("REFRESH_HZ", "30.0")),
        context_lines=int(_env("CONTEXT_LINES", "2")),
        use_alt_screen=_env_bool("ALT_SCREEN", True),
    )


def _choice(value: str, allowed: tuple[str, ...], default: str) -> str:
    v = value.strip().lower()
    if v in allowed:
        return v
    logger.info("Unknown value '%s' (expected one of %s), using '%s'", value, ", ".join(allowed), default)
    return default


def _load_lang(prefs: dict[str, Any]) -> str:
    # Priority: config.json → TUBE_LYRICS_LANG → "EN"
    raw = str(prefs.get("lang") or "").upper()
    if raw in LANGS:
        return raw
    env_lang = os.getenv(ENV_PREFIX + "LANG")
    if env_lang and env_lang.upper() in LANGS:
        return env_lang.upper()
    return "EN"


def _load_delay(prefs: dict[str, Any]) -> int:
    raw = prefs.get("sync_delay_ms")
    if raw is None:
        raw = _env("SYNC_DELAY_MS", "0")
    try:
        return int(raw)
    except (TypeError, ValueError):
        logger.info("Invalid sync_delay_ms %r, using 0", raw)
        return 0


def _validate_pref(key: str, value: Any) -> Any:
    if key == "lang":
        lang = str(value).upper()
        if lang not in LANGS:
            raise ValueError(f"Unsupported language: {value!r}")
        return lang
    if key == "sync_delay_ms":
        return int(value)
    if key == "highlight_mode":
        mode = str(value).lower()
        if mode not in HIGHLIGHT_MODES:
            raise ValueError(f"Unknown highlight mode: {value!r}")
        return mode
    raise ValueError(f"Unknown config key: {key!r}")


def save_config_value(key: str, value: Any) -> None:
    value = _validate_pref(key, value)
    cfg_path = _config_file()
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    data = _read_prefs(cfg_path.parent)
    data[key] = value
    cfg_path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")


def save_config_lang(lang: str) -> None:
    save_config_value("lang", lang)
