"""Timecode rendering shared by the export formats.

RULES:
- Hours and minutes are zero-padded to 2 digits
- SubRip milliseconds are truncated from the fractional second, not rounded
- WebVTT milliseconds are rounded to the nearest millisecond
- Markdown uses m:ss.ff with hundredths rounded
"""

from __future__ import annotations

# Absorbs binary float error such as 3725.4 * 1000 == 3725399.9999999995.
_EPSILON_MS = 1e-6


def _split_ms(total_ms: int) -> tuple:
    hours, rest = divmod(total_ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    seconds, millis = divmod(rest, 1000)
    return hours, minutes, seconds, millis


def srt_timestamp(seconds: float) -> str:
    """Render seconds as ``hh:mm:ss,mmm`` with truncated milliseconds."""
    total_ms = int(max(seconds, 0.0) * 1000 + _EPSILON_MS)
    return "{:02d}:{:02d}:{:02d},{:03d}".format(*_split_ms(total_ms))


def vtt_timestamp(seconds: float) -> str:
    """Render seconds as ``hh:mm:ss.mmm``."""
    total_ms = int(round(max(seconds, 0.0) * 1000))
    return "{:02d}:{:02d}:{:02d}.{:03d}".format(*_split_ms(total_ms))


def markdown_timestamp(seconds: float) -> str:
    """Render seconds as ``m:ss.ff``, e.g. 65.25 → ``1:05.25``."""
    centis = int(round(max(seconds, 0.0) * 100))
    minutes, rest = divmod(centis, 6000)
    return "{}:{:05.2f}".format(minutes, rest / 100)
