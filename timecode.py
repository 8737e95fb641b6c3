"""
Timecode normalisation for OSC time messages.

Accepted argument shapes (first match wins):
  "01:02:03"  "01:02:03.25"  "01:02:03:12"   - clock string, suffix dropped
  "3725" / 3725 / 3725.9                     - seconds elapsed
  1, 2, 3 [, ...]                            - hours, minutes, seconds

Everything else normalises to None.
"""

import math
import re
from typing import Any, Sequence, Union

Scalar = Union[bool, int, float, str]

ZERO_TIME = "00:00:00"

HHMMSS_RE = re.compile(r"^(\d+):(\d{2}):(\d{2})(?:[.:]\d+)?$")
_DECIMAL_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")


def scalar_args(args: Sequence[Any]) -> list[Scalar | None]:
    """Reduce raw OSC argument values to bool / int / float / str.

    Blobs, MIDI tuples, arrays and nil become None, which no rule accepts.
    """
    return [a if isinstance(a, (bool, int, float, str)) else None for a in args]


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def pad2(n: int) -> str:
    return str(n).zfill(2)


def seconds_to_hhmmss(total_seconds: float) -> str | None:
    """Format a seconds count as HH:MM:SS; negatives clamp to zero."""
    if math.isnan(total_seconds) or math.isinf(total_seconds):
        return None
    s = max(0, math.floor(total_seconds))
    h, rem = divmod(s, 3600)
    m, sec = divmod(rem, 60)
    return f"{pad2(h)}:{pad2(m)}:{pad2(sec)}"


def _string_to_hhmmss(text: str) -> str | None:
    text = text.strip()
    match = HHMMSS_RE.match(text)
    if match:
        h, m, s = (int(g) for g in match.groups())
        if m > 59 or s > 59:
            return None
        return f"{pad2(h)}:{pad2(m)}:{pad2(s)}"
    if _DECIMAL_RE.match(text):
        return seconds_to_hhmmss(float(text))
    return None


def normalize_to_hhmmss(args: Sequence[Any]) -> str | None:
    """Turn the arguments of an OSC time message into HH:MM:SS, or None."""
    if not args:
        return None
    args = scalar_args(args)
    first = args[0]

    if isinstance(first, str):
        return _string_to_hhmmss(first)

    # float seconds
    if _is_number(first) and len(args) == 1:
        return seconds_to_hhmmss(first)

    # h, m, s triplet
    if len(args) >= 3 and all(_is_number(a) for a in args[:3]):
        h, m, s = args[:3]
        return seconds_to_hhmmss(h * 3600 + m * 60 + s)

    return None


def is_on(value: Any = None) -> bool:
    """Gate for /play, /stop and /pause.

    Toggle-style senders send 0/1; bang-style senders send nothing, which
    counts as on.
    """
    if isinstance(value, bool):
        return value
    if _is_number(value):
        return value != 0
    if isinstance(value, str):
        text = value.strip()
        return text != "" and text != "0"
    return True
