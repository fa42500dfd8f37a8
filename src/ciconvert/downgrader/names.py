"""Identifier and display-name sanitizing for legacy pipelines."""

import secrets
import string
import unicodedata

MAX_NAME_LENGTH = 127

_ALPHANUMERIC = string.ascii_letters + string.digits


def slug(text: str | None) -> str:
    """Lowercase letters and digits of the text, accents stripped."""
    if not text:
        return ""
    text = unicodedata.normalize("NFKD", text)
    return "".join(c.lower() for c in text if c.isalnum())


def slug_with_random(text: str | None, length: int = 8) -> str:
    suffix = "".join(secrets.choice(_ALPHANUMERIC) for _ in range(length))
    return f"{slug(text)}_{suffix}"


def _safe(c: str) -> str:
    if c.isspace():
        return " "
    if c.isalnum() or c in "_-":
        return c
    return ""


def convert_name(text: str | None) -> str:
    """
    Convert a free-form name to a legacy display name.

    Legacy names match ``^[a-zA-Z0-9_][-0-9a-zA-Z_\\s]{0,127}$``: whitespace
    becomes a space, other punctuation is removed and the result is cut to
    127 characters.
    """
    if not text:
        return ""
    text = unicodedata.normalize("NFKD", text.strip())
    text = "".join(_safe(c) for c in text)
    # a leading hyphen or space is not allowed
    text = text.lstrip("- ")
    return text[:MAX_NAME_LENGTH]
