"""Duration helpers using the textual form of Go's time.Duration."""

import re

_NANOSECOND = 1
_MICROSECOND = 1_000 * _NANOSECOND
_MILLISECOND = 1_000 * _MICROSECOND
_SECOND = 1_000 * _MILLISECOND
_MINUTE = 60 * _SECOND
_HOUR = 60 * _MINUTE

_UNITS = {
    "ns": _NANOSECOND,
    "us": _MICROSECOND,
    "µs": _MICROSECOND,
    "ms": _MILLISECOND,
    "s": _SECOND,
    "m": _MINUTE,
    "h": _HOUR,
}

_COMPONENT = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def _fraction(value: int, unit: int) -> str:
    whole, frac = divmod(value, unit)
    if frac == 0:
        return str(whole)
    width = len(str(unit)) - 1
    digits = str(frac).rjust(width, "0").rstrip("0")
    return f"{whole}.{digits}"


def format_duration(seconds: float) -> str:
    """
    Format a number of seconds the way Go formats a time.Duration.

    Examples: ``600`` -> ``"10m0s"``, ``3600`` -> ``"1h0m0s"``,
    ``1.5`` -> ``"1.5s"``, ``0.3`` -> ``"300ms"``, ``0`` -> ``"0s"``.
    """
    ns = int(round(seconds * _SECOND))
    if ns == 0:
        return "0s"

    sign = "-" if ns < 0 else ""
    ns = abs(ns)

    if ns < _MICROSECOND:
        return f"{sign}{ns}ns"
    if ns < _MILLISECOND:
        return f"{sign}{_fraction(ns, _MICROSECOND)}µs"
    if ns < _SECOND:
        return f"{sign}{_fraction(ns, _MILLISECOND)}ms"

    hours, rem = divmod(ns, _HOUR)
    minutes, rem = divmod(rem, _MINUTE)
    secs = f"{_fraction(rem, _SECOND)}s"
    if hours:
        return f"{sign}{hours}h{minutes}m{secs}"
    if minutes:
        return f"{sign}{minutes}m{secs}"
    return f"{sign}{secs}"


def parse_duration(text: str) -> float:
    """
    Parse a Go duration string (``"1h30m"``, ``"500s"``, ``"300ms"``).

    Returns:
        The duration in seconds.

    Raises:
        ValueError: If the text is not a valid duration.
    """
    value = text.strip()
    if not value:
        raise ValueError("invalid duration: empty string")

    sign = 1
    if value[0] in "+-":
        sign = -1 if value[0] == "-" else 1
        value = value[1:]

    if value == "0":
        return 0.0

    total = 0.0
    pos = 0
    while pos < len(value):
        match = _COMPONENT.match(value, pos)
        if not match:
            raise ValueError(f"invalid duration: {text!r}")
        number, unit = match.groups()
        total += float(number) * _UNITS[unit]
        pos = match.end()

    return sign * total / _SECOND
