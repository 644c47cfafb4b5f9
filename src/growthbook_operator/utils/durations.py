"""
Helpers for Kubernetes duration strings.

Instance specs carry Go style durations such as ``5m``, ``1h30m`` or
``250ms``, and the status reports the last reconcile duration in the same
notation.
"""

import re

from ..errors import ValidationError

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_COMPONENT = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(value: str) -> float:
    """
    Parse a Go duration string into seconds.

    Args:
        value: Duration such as ``30s``, ``5m`` or ``1h2m3.5s``

    Returns:
        Duration in seconds

    Raises:
        ValidationError: If the string is not a valid duration
    """
    text = value.strip()
    if not text:
        raise ValidationError(f"invalid duration {value!r}")
    if text == "0":
        return 0.0

    sign = 1.0
    if text[0] in "+-":
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]

    total = 0.0
    position = 0
    for match in _COMPONENT.finditer(text):
        if match.start() != position:
            raise ValidationError(f"invalid duration {value!r}")
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        position = match.end()

    if position == 0 or position != len(text):
        raise ValidationError(f"invalid duration {value!r}")

    return sign * total


def format_duration(seconds: float) -> str:
    """
    Format seconds the way Go's ``time.Duration.String`` does.

    Examples: ``0s``, ``1.5s``, ``2m0.25s``, ``1h0m0s``, ``350ms``.
    """
    if seconds == 0:
        return "0s"

    sign = "-" if seconds < 0 else ""
    nanos = round(abs(seconds) * 1e9)

    if nanos < 1_000_000_000:
        if nanos < 1_000:
            return f"{sign}{nanos}ns"
        if nanos < 1_000_000:
            return f"{sign}{_trim(nanos / 1_000)}µs"
        return f"{sign}{_trim(nanos / 1_000_000)}ms"

    hours, rest = divmod(nanos, 3_600 * 1_000_000_000)
    minutes, rest = divmod(rest, 60 * 1_000_000_000)
    secs = _trim(rest / 1_000_000_000)

    if hours:
        return f"{sign}{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{sign}{minutes}m{secs}s"
    return f"{sign}{secs}s"


def _trim(value: float) -> str:
    text = f"{value:.9f}".rstrip("0").rstrip(".")
    return text or "0"
