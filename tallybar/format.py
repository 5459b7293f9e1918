"""Human-friendly formatting of durations, byte sizes and counts."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import timedelta

__all__ = [
    "FormattedDuration",
    "HumanDuration",
    "HumanBytes",
    "DecimalBytes",
    "BinaryBytes",
    "HumanCount",
    "HumanFloatCount",
]

_MICROS_PER_SECOND = 1_000_000
_SECOND = _MICROS_PER_SECOND
_MINUTE = 60 * _SECOND
_HOUR = 60 * _MINUTE
_DAY = 24 * _HOUR
_WEEK = 7 * _DAY
_YEAR = 365 * _DAY

# (length in microseconds, singular name, short suffix), largest first.
_UNITS: tuple[tuple[int, str, str], ...] = (
    (_YEAR, "year", "y"),
    (_WEEK, "week", "w"),
    (_DAY, "day", "d"),
    (_HOUR, "hour", "h"),
    (_MINUTE, "minute", "m"),
    (_SECOND, "second", "s"),
)

_BINARY_PREFIXES = ("Ki", "Mi", "Gi", "Ti", "Pi", "Ei", "Zi", "Yi")
_DECIMAL_PREFIXES = ("k", "M", "G", "T", "P", "E", "Z", "Y")


def _to_micros(duration: timedelta | float | int) -> int:
    """Convert a timedelta or a number of seconds to whole microseconds."""
    if isinstance(duration, timedelta):
        micros = duration // timedelta(microseconds=1)
    else:
        micros = int(round(duration * _MICROS_PER_SECOND))
    if micros < 0:
        raise ValueError("duration must not be negative")
    return micros


def _group_thousands(digits: str) -> str:
    """Insert a comma before every group of three trailing characters."""
    length = len(digits)
    out = []
    for idx, char in enumerate(digits):
        out.append(char)
        pos = length - idx - 1
        if pos > 0 and pos % 3 == 0:
            out.append(",")
    return "".join(out)


def _prefixed_bytes(value: int, base: int, prefixes: tuple[str, ...]) -> str:
    amount = float(value)
    if amount < base:
        return f"{amount:.0f} B"
    amount /= base
    prefix_iter = iter(prefixes)
    prefix = next(prefix_iter)
    for candidate in prefix_iter:
        if amount < base:
            break
        amount /= base
        prefix = candidate
    return f"{amount:.2f} {prefix}B"


@dataclass(frozen=True)
class FormattedDuration:
    """A duration shown as ``HH:MM:SS``, with a leading day count when needed."""

    duration: timedelta | float | int

    def __str__(self) -> str:
        total = _to_micros(self.duration) // _MICROS_PER_SECOND
        total, seconds = divmod(total, 60)
        total, minutes = divmod(total, 60)
        days, hours = divmod(total, 24)
        clock = f"{hours:02}:{minutes:02}:{seconds:02}"
        return f"{days}d {clock}" if days > 0 else clock

    def __format__(self, spec: str) -> str:
        return format(str(self), spec)


@dataclass(frozen=True)
class HumanDuration:
    """A duration rounded to a single, easily read unit.

    Formatting with the ``#`` flag gives the short form, such as ``3m``.
    """

    duration: timedelta | float | int

    def _render(self, alternate: bool) -> str:
        micros = _to_micros(self.duration)
        idx = len(_UNITS) - 1
        for i, (cur, _, _) in enumerate(_UNITS[:-1]):
            nxt = _UNITS[i + 1][0]
            if micros + nxt // 2 >= cur + cur // 2:
                idx = i
                break

        unit, name, alt = _UNITS[idx]
        # Round half away from zero, in exact integer arithmetic.
        count = (2 * micros + unit) // (2 * unit)
        if idx < len(_UNITS) - 1:
            count = max(count, 2)

        if alternate:
            return f"{count}{alt}"
        if count == 1:
            return f"{count} {name}"
        return f"{count} {name}s"

    def __str__(self) -> str:
        return self._render(alternate=False)

    def __format__(self, spec: str) -> str:
        alternate = spec.startswith("#")
        if alternate:
            spec = spec[1:]
        return format(self._render(alternate), spec)


@dataclass(frozen=True)
class HumanBytes:
    """A byte count with binary prefixes (KiB, MiB, ...)."""

    value: int

    def __str__(self) -> str:
        return _prefixed_bytes(self.value, 1024, _BINARY_PREFIXES)

    def __format__(self, spec: str) -> str:
        return format(str(self), spec)


@dataclass(frozen=True)
class DecimalBytes:
    """A byte count with SI prefixes (kB, MB, ...)."""

    value: int

    def __str__(self) -> str:
        return _prefixed_bytes(self.value, 1000, _DECIMAL_PREFIXES)

    def __format__(self, spec: str) -> str:
        return format(str(self), spec)


@dataclass(frozen=True)
class BinaryBytes:
    """A byte count with ISO/IEC prefixes (KiB, MiB, ...)."""

    value: int

    def __str__(self) -> str:
        return _prefixed_bytes(self.value, 1024, _BINARY_PREFIXES)

    def __format__(self, spec: str) -> str:
        return format(str(self), spec)


@dataclass(frozen=True)
class HumanCount:
    """An integer count with commas between groups of thousands."""

    value: int

    def __str__(self) -> str:
        return _group_thousands(str(self.value))

    def __format__(self, spec: str) -> str:
        return format(str(self), spec)


@dataclass(frozen=True)
class HumanFloatCount:
    """A float count with thousands separators and at most four decimals."""

    value: float

    def __str__(self) -> str:
        value = float(self.value)
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "inf" if value > 0 else "-inf"
        int_part, _, frac_part = f"{value:.4f}".partition(".")
        text = _group_thousands(int_part)
        frac_trimmed = frac_part.rstrip("0")
        if frac_trimmed:
            text += "." + frac_trimmed
        return text

    def __format__(self, spec: str) -> str:
        return format(str(self), spec)