"""Draw targets: where progress output goes and how often it is painted."""

from __future__ import annotations

import math
import os
import re
import sys
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, TextIO

from wcwidth import wcwidth

__all__ = [
    "MAX_BURST",
    "MultiProgressAlignment",
    "TermLike",
    "Terminal",
    "measure_text_width",
    "RateLimiter",
    "LineAdjust",
    "DrawState",
    "DrawStateWrapper",
    "Drawable",
    "ProgressDrawTarget",
]

MAX_BURST = 20
"""Number of draws a rate limiter lets through in one burst."""

_DEFAULT_WIDTH = 79
_DEFAULT_HEIGHT = 24

_ANSI_RE = re.compile(
    r"\x1b\[[0-?]*[ -/]*[@-~]"
    r"|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"
    r"|\x1b[@-Z\\-_]"
)


class MultiProgressAlignment(Enum):
    """Vertical alignment of a multi progress when some of its bars go away."""

    TOP = "top"
    BOTTOM = "bottom"


class TermLike(Protocol):
    """Anything a progress display can be painted onto."""

    def width(self) -> int: ...

    def height(self) -> int: ...

    def move_cursor_up(self, n: int) -> None: ...

    def move_cursor_down(self, n: int) -> None: ...

    def clear_line(self) -> None: ...

    def write_line(self, text: str) -> None: ...

    def write_str(self, text: str) -> None: ...

    def flush(self) -> None: ...


def measure_text_width(text: str) -> int:
    """Return the number of terminal columns ``text`` takes, ignoring ANSI codes."""
    plain = _ANSI_RE.sub("", text)
    return sum(max(wcwidth(char), 0) for char in plain)


class Terminal:
    """A buffered terminal over a text stream; output is written on ``flush``."""

    def __init__(self, stream: TextIO) -> None:
        self.stream = stream
        self._buffer: list[str] = []

    def is_term(self) -> bool:
        isatty = getattr(self.stream, "isatty", None)
        try:
            return bool(isatty()) if isatty is not None else False
        except (OSError, ValueError):
            return False

    def _size(self) -> os.terminal_size:
        try:
            return os.get_terminal_size(self.stream.fileno())
        except (AttributeError, OSError, ValueError):
            return os.terminal_size((_DEFAULT_WIDTH, _DEFAULT_HEIGHT))

    def width(self) -> int:
        return self._size().columns

    def height(self) -> int:
        return self._size().lines

    def move_cursor_up(self, n: int) -> None:
        if n > 0:
            self._buffer.append(f"\x1b[{n}A")

    def move_cursor_down(self, n: int) -> None:
        if n > 0:
            self._buffer.append(f"\x1b[{n}B")

    def clear_line(self) -> None:
        self._buffer.append("\r\x1b[2K")

    def write_line(self, text: str) -> None:
        self._buffer.append(text + "\n")

    def write_str(self, text: str) -> None:
        self._buffer.append(text)

    def flush(self) -> None:
        if self._buffer:
            self.stream.write("".join(self._buffer))
            self._buffer.clear()
        self.stream.flush()


class RateLimiter:
    """Limit draws to a given rate while allowing occasional bursts.

    Times are seconds on a monotonic clock, as from ``time.monotonic()``.
    """

    def __init__(self, rate: int, now: float | None = None) -> None:
        if not 1 <= rate <= 255:
            raise ValueError(f"refresh rate must be between 1 and 255, got {rate}")
        self.interval_ms = 1000 // rate
        self.capacity = MAX_BURST
        self.prev = time.monotonic() if now is None else now

    def allow(self, now: float) -> bool:
        if now < self.prev:
            return False

        elapsed_ns = round((now - self.prev) * 1e9)
        interval_ns = self.interval_ms * 1_000_000
        if self.capacity == 0 and elapsed_ns < interval_ns:
            return False

        new = (elapsed_ns // 1_000_000) // self.interval_ms
        remainder_ns = elapsed_ns % interval_ns
        self.capacity = min(MAX_BURST, self.capacity + new - 1)
        self.prev = now - remainder_ns / 1e9
        return True


class _AdjustKind(Enum):
    CLEAR = "clear"
    KEEP = "keep"


@dataclass(frozen=True)
class LineAdjust:
    """A change to the count of lines the next draw clears."""

    kind: _AdjustKind
    count: int

    @classmethod
    def clear(cls, count: int) -> LineAdjust:
        """Make the next draw also clear ``count`` more lines."""
        return cls(_AdjustKind.CLEAR, count)

    @classmethod
    def keep(cls, count: int) -> LineAdjust:
        """Make the next draw leave ``count`` lines in place."""
        return cls(_AdjustKind.KEEP, count)

    def apply(self, count: int) -> int:
        """Return ``count`` adjusted, never below zero."""
        if self.kind is _AdjustKind.CLEAR:
            return count + self.count
        return max(count - self.count, 0)


@dataclass
class DrawState:
    """The drawn state of one element."""

    lines: list[str] = field(default_factory=list)
    orphan_lines_count: int = 0
    move_cursor: bool = False
    alignment: MultiProgressAlignment = MultiProgressAlignment.TOP

    def draw_to_term(self, term: TermLike, last_line_count: int) -> int:
        """Paint the lines over the previous output; return the new line count."""
        if self.lines and self.move_cursor:
            term.move_cursor_up(last_line_count)
        else:
            n = last_line_count
            term.move_cursor_up(max(n - 1, 0))
            for i in range(n):
                term.clear_line()
                if i + 1 != n:
                    term.move_cursor_down(1)
            term.move_cursor_up(max(n - 1, 0))

        shift = 0
        if (
            self.alignment is MultiProgressAlignment.BOTTOM
            and len(self.lines) < last_line_count
        ):
            shift = last_line_count - len(self.lines)
            for _ in range(shift):
                term.write_line("")

        term_height = term.height()
        term_width = term.width()
        count = len(self.lines)
        real_len = 0
        last_line_filler = 0
        for idx, line in enumerate(self.lines):
            line_width = measure_text_width(line)
            if not line:
                diff = 1
            elif term_width > 0:
                diff = max(math.ceil(line_width / term_width), 1)
            else:
                diff = sys.maxsize if line_width > 0 else 1

            if (
                self.orphan_lines_count <= idx
                and real_len - self.orphan_lines_count + diff > term_height
            ):
                break
            real_len += diff
            if idx != 0:
                term.write_line("")
            term.write_str(line)
            if idx + 1 == count:
                # Keep the cursor at the right edge so later prints start on a new line.
                last_line_filler = max(term_width - line_width, 0)
        term.write_str(" " * last_line_filler)

        term.flush()
        return real_len - self.orphan_lines_count + shift

    def reset(self) -> None:
        self.lines.clear()
        self.orphan_lines_count = 0


class DrawStateWrapper:
    """Context manager over a draw state.

    On exit, the orphan lines at the head of a multi-progress member's state
    are moved into the shared orphan list.
    """

    def __init__(self, state: DrawState, orphan_lines: list[str] | None = None) -> None:
        self.state = state
        self.orphan_lines = orphan_lines

    @classmethod
    def for_term(cls, state: DrawState) -> DrawStateWrapper:
        return cls(state)

    @classmethod
    def for_multi(cls, state: DrawState, orphan_lines: list[str]) -> DrawStateWrapper:
        return cls(state, orphan_lines)

    def __enter__(self) -> DrawState:
        return self.state

    def __exit__(self, *args: Any) -> None:
        if self.orphan_lines is not None:
            count = self.state.orphan_lines_count
            self.orphan_lines.extend(self.state.lines[:count])
            del self.state.lines[:count]
            self.state.orphan_lines_count = 0


@dataclass
class _TermKind:
    term: Any
    rate_limiter: RateLimiter | None
    checks_tty: bool
    last_line_count: int = 0
    draw_state: DrawState = field(default_factory=DrawState)


@dataclass
class _MultiKind:
    # A multi-progress state exposing ``lock`` (a reentrant lock), ``draw_state``,
    # ``draw``, ``mark_zombie``, ``is_hidden`` and ``width``.
    state: Any
    idx: int


class Drawable:
    """A draw target that is ready to be painted right now."""

    def __init__(
        self,
        kind: _TermKind | _MultiKind,
        force_draw: bool = False,
        now: float | None = None,
    ) -> None:
        self._kind = kind
        self.force_draw = force_draw
        self.now = time.monotonic() if now is None else now

    def adjust_last_line_count(self, adjust: LineAdjust) -> None:
        if isinstance(self._kind, _TermKind):
            self._kind.last_line_count = adjust.apply(self._kind.last_line_count)

    def state(self) -> DrawStateWrapper:
        """Return the reset draw state, ready to be filled with lines."""
        kind = self._kind
        if isinstance(kind, _TermKind):
            wrapper = DrawStateWrapper.for_term(kind.draw_state)
        else:
            with kind.state.lock:
                wrapper = kind.state.draw_state(kind.idx)
        wrapper.state.reset()
        return wrapper

    def clear(self) -> None:
        with self.state():
            pass
        self.draw()

    def draw(self) -> None:
        kind = self._kind
        if isinstance(kind, _TermKind):
            kind.last_line_count = kind.draw_state.draw_to_term(
                kind.term, kind.last_line_count
            )
        else:
            with kind.state.lock:
                kind.state.draw(self.force_draw, None, self.now)


class ProgressDrawTarget:
    """Where a progress bar or a multi progress paints, and how often."""

    def __init__(self, kind: _TermKind | _MultiKind | None = None) -> None:
        self._kind = kind

    def __repr__(self) -> str:
        return f"ProgressDrawTarget({self._kind!r})"

    @classmethod
    def stdout(cls) -> ProgressDrawTarget:
        """Draw to buffered stdout at most 20 times a second."""
        return cls.term(Terminal(sys.stdout), 20)

    @classmethod
    def stderr(cls) -> ProgressDrawTarget:
        """Draw to buffered stderr at most 20 times a second."""
        return cls.term(Terminal(sys.stderr), 20)

    @classmethod
    def stdout_with_hz(cls, refresh_rate: int) -> ProgressDrawTarget:
        return cls.term(Terminal(sys.stdout), refresh_rate)

    @classmethod
    def stderr_with_hz(cls, refresh_rate: int) -> ProgressDrawTarget:
        return cls.term(Terminal(sys.stderr), refresh_rate)

    @classmethod
    def new_remote(cls, state: Any, idx: int) -> ProgressDrawTarget:
        """Draw through the multi-progress ``state`` as member ``idx``."""
        return cls(_MultiKind(state, idx))

    @classmethod
    def term(cls, term: Terminal, refresh_rate: int) -> ProgressDrawTarget:
        """Draw to a terminal; hidden entirely when it is not a tty."""
        return cls(_TermKind(term, RateLimiter(refresh_rate), checks_tty=True))

    @classmethod
    def term_like(cls, term_like: TermLike) -> ProgressDrawTarget:
        """Draw to any terminal-like object, without rate limiting."""
        return cls(_TermKind(term_like, None, checks_tty=False))

    @classmethod
    def term_like_with_hz(cls, term_like: TermLike, refresh_rate: int) -> ProgressDrawTarget:
        return cls(_TermKind(term_like, RateLimiter(refresh_rate), checks_tty=False))

    @classmethod
    def hidden(cls) -> ProgressDrawTarget:
        """A target that never renders anything."""
        return cls(None)

    def is_hidden(self) -> bool:
        kind = self._kind
        if kind is None:
            return True
        if isinstance(kind, _MultiKind):
            with kind.state.lock:
                return kind.state.is_hidden()
        if kind.checks_tty:
            return not kind.term.is_term()
        return False

    def width(self) -> int:
        kind = self._kind
        if kind is None:
            return 0
        if isinstance(kind, _MultiKind):
            with kind.state.lock:
                return kind.state.width()
        return kind.term.width()

    def mark_zombie(self) -> None:
        """Tell the owning multi progress, if any, that this bar is gone."""
        kind = self._kind
        if isinstance(kind, _MultiKind):
            with kind.state.lock:
                kind.state.mark_zombie(kind.idx)

    def drawable(self, force_draw: bool, now: float) -> Drawable | None:
        """Return something to paint on, or None when hidden or rate limited."""
        kind = self._kind
        if kind is None:
            return None
        if isinstance(kind, _MultiKind):
            return Drawable(kind, force_draw, now)
        if kind.checks_tty and not kind.term.is_term():
            return None
        if force_draw or kind.rate_limiter is None or kind.rate_limiter.allow(now):
            return Drawable(kind, force_draw, now)
        return None

    def disconnect(self, now: float) -> None:
        """Clear this element from its multi progress, if it has one."""
        kind = self._kind
        if isinstance(kind, _MultiKind):
            with kind.state.lock:
                Drawable(kind, True, now).clear()

    def remote(self) -> tuple[Any, int] | None:
        """Return the multi-progress state and index, or None."""
        kind = self._kind
        if isinstance(kind, _MultiKind):
            return kind.state, kind.idx
        return None

    def adjust_last_line_count(self, adjust: LineAdjust) -> None:
        kind = self._kind
        if isinstance(kind, _TermKind):
            kind.last_line_count = adjust.apply(kind.last_line_count)