#!/usr/bin/python3

import decimal
import math
import re

# literal ffmpeg prints in place of a time code when the value is unknown
NOT_AVAILABLE = "N/A"

# e.g. "00:03:00.03"; hours are not limited to two digits for very long inputs
TIMECODE_PATTERN = r"\d+:\d{2}:\d{2}(?:\.\d+)?"

_timecode_re = re.compile(r"(\d+):(\d+):(\d+(?:\.\d+)?)")


def parse_to_seconds(text: str) -> float:
    """
    Converts a time code such as "00:01:00.03" to fractional seconds (60.03).

    "N/A" maps to NaN.  The sum is computed on exact decimals and rounded once, so the result
    is the float nearest to the written value.
    """
    if text == NOT_AVAILABLE:
        return math.nan
    match = _timecode_re.fullmatch(text.strip())
    if not match:
        raise ValueError(f"Invalid time code {text!r}")
    hours, minutes, seconds = (decimal.Decimal(part) for part in match.groups())
    return float((hours * 60 + minutes) * 60 + seconds)


def seconds_to_string(seconds: float) -> str:
    """
    Converts fractional seconds to a time code; NaN maps to "N/A".

    The fraction is copied from the shortest decimal form of the value instead of being
    rounded to a fixed width, so 60.1234 becomes "00:01:00.1234" rather than "00:01:00.123".
    """
    if math.isnan(seconds):
        return NOT_AVAILABLE

    # repr() gives the shortest string that round-trips; Decimal drops any exponent notation
    exact = decimal.Decimal(repr(seconds))
    whole = int(exact)
    _, _, fraction = f"{exact:f}".partition(".")
    fraction = fraction.rstrip("0")

    hours, remainder = divmod(whole, 3600)
    minutes, secs = divmod(remainder, 60)
    text = f"{hours:02d}:{minutes:02d}:{secs:02d}"
    if fraction:
        return f"{text}.{fraction}"
    return text
