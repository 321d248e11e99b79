import math

import regex

_EMOJI = regex.compile(r"[\p{Emoji_Presentation}\p{Extended_Pictographic}\u200d\ufe0f]")
_DOUBLE_QUOTES = regex.compile(r"[“”]")
_SINGLE_QUOTES = regex.compile(r"[‘’]")
_MARKUP = regex.compile(r"[~*_`^]")
_WHITESPACE = regex.compile(r"\s+")


def truncate_text(text: str, limit: int) -> str:
    """Cut text to at most `limit` characters."""
    return text[:limit]


def sanitize_text(text: str) -> str:
    """
    Make chat output safe to read aloud.

    Drops emoji, straightens curly quotes, removes markdown-ish markup
    characters and collapses whitespace. Applying it twice is a no-op.
    """
    text = _EMOJI.sub("", text or "")
    text = _DOUBLE_QUOTES.sub('"', text)
    text = _SINGLE_QUOTES.sub("'", text)
    text = _MARKUP.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


def clamp_speed(value, low: float, high: float, default=None):
    """Clamp a caller-supplied speed into [low, high], or return default if it is not a number."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return default
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return default
    return max(low, min(high, value))


def resolve_format(format_: str) -> str:
    return "wav" if str(format_ or "").lower() == "wav" else "mp3"
