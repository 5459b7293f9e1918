"""Shared state behind a multi progress: member order, zombies and drawing."""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, TypeVar

from tallybar.draw_target import (
    DrawState,
    DrawStateWrapper,
    LineAdjust,
    MultiProgressAlignment,
    ProgressDrawTarget,
    measure_text_width,
)

__all__ = ["InsertLocation", "MultiState"]

R = TypeVar("R")


class _LocationKind(Enum):
    END = "end"
    INDEX = "index"
    INDEX_FROM_BACK = "index_from_back"
    AFTER = "after"
    BEFORE = "before"


@dataclass(frozen=True)
class InsertLocation:
    """Where a new member goes in the visual order."""

    kind: _LocationKind
    value: int = 0

    @classmethod
    def end(cls) -> InsertLocation:
        """Below every other member."""
        return cls(_LocationKind.END)

    @classmethod
    def index(cls, pos: int) -> InsertLocation:
        """At visual position ``pos``, or at the end if ``pos`` is past it."""
        return cls(_LocationKind.INDEX, pos)

    @classmethod
    def index_from_back(cls, pos: int) -> InsertLocation:
        """At ``pos`` positions from the end, or at the start if past it."""
        return cls(_LocationKind.INDEX_FROM_BACK, pos)

    @classmethod
    def after(cls, idx: int) -> InsertLocation:
        """Right after the member with slot index ``idx``."""
        return cls(_LocationKind.AFTER, idx)

    @classmethod
    def before(cls, idx: int) -> InsertLocation:
        """Right before the member with slot index ``idx``."""
        return cls(_LocationKind.BEFORE, idx)


@dataclass
class _Member:
    # None for members never drawn, and for slots in the free set.
    draw_state: DrawState | None = None
    is_zombie: bool = False


def _real_len(lines: list[str], width: int) -> int:
    """Count terminal rows the lines take, allowing for wrapping."""
    if width <= 0:
        # Nothing can be shown at zero width; count each visible line once.
        return sum(1 for line in lines if measure_text_width(line) > 0)
    return sum(math.ceil(measure_text_width(line) / width) for line in lines)


def _split_lines(msg: str) -> list[str]:
    """Split like a line iterator: no empty trailing line, ``\\r\\n`` accepted."""
    parts = msg.split("\n")
    if parts and parts[-1] == "":
        parts.pop()
    return [part[:-1] if part.endswith("\r") else part for part in parts]


@dataclass
class MultiState:
    """Members of a multi progress and the target they are drawn to.

    All access goes through ``lock``, a reentrant lock.
    """

    draw_target: ProgressDrawTarget
    members: list[_Member] = field(default_factory=list)
    free_set: list[int] = field(default_factory=list)
    ordering: list[int] = field(default_factory=list)
    move_cursor: bool = False
    alignment: MultiProgressAlignment = MultiProgressAlignment.TOP
    orphan_lines: list[str] = field(default_factory=list)
    zombie_lines_count: int = 0
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def __init__(self, draw_target: ProgressDrawTarget) -> None:
        self.draw_target = draw_target
        self.members = []
        self.free_set = []
        self.ordering = []
        self.move_cursor = False
        self.alignment = MultiProgressAlignment.TOP
        self.orphan_lines = []
        self.zombie_lines_count = 0
        self.lock = threading.RLock()

    def mark_zombie(self, index: int) -> None:
        """Mark a member whose bar is gone; reap it now if it is drawn first."""
        with self.lock:
            member = self.members[index]
            if index != self.ordering[0]:
                member.is_zombie = True
                return

            line_count = len(member.draw_state.lines) if member.draw_state else 0
            self.zombie_lines_count += line_count
            # Forget the zombie's lines so the next draw leaves them on screen.
            self.draw_target.adjust_last_line_count(LineAdjust.keep(line_count))
            self.remove_idx(index)

    def draw(self, force_draw: bool, extra_lines: list[str] | None, now: float) -> None:
        """Paint all members, with ``extra_lines`` printed above them."""
        with self.lock:
            width = self.width()

            reap_indices: list[int] = []
            adjust = 0
            for index in self.ordering:
                member = self.members[index]
                if not member.is_zombie:
                    break
                line_count = (
                    _real_len(member.draw_state.lines, width) if member.draw_state else 0
                )
                self.zombie_lines_count += line_count
                adjust += line_count
                reap_indices.append(index)

            # A printed line must appear above everything, so zombies get erased.
            if extra_lines is not None:
                self.draw_target.adjust_last_line_count(
                    LineAdjust.clear(self.zombie_lines_count)
                )
                self.zombie_lines_count = 0

            orphan_lines_count = _real_len(self.orphan_lines, width)
            force_draw = force_draw or orphan_lines_count > 0
            drawable = self.draw_target.drawable(force_draw, now)
            if drawable is None:
                return

            with drawable.state() as draw_state:
                draw_state.orphan_lines_count = orphan_lines_count
                draw_state.alignment = self.alignment
                if extra_lines is not None:
                    draw_state.lines.extend(extra_lines)
                    draw_state.orphan_lines_count += _real_len(extra_lines, width)
                draw_state.lines.extend(self.orphan_lines)
                self.orphan_lines.clear()
                for index in self.ordering:
                    state = self.members[index].draw_state
                    if state is not None:
                        draw_state.lines.extend(state.lines)

            try:
                drawable.draw()
            finally:
                for index in reap_indices:
                    self.remove_idx(index)
                # Zombie lines were drawn for the last time; keep them on screen.
                if extra_lines is None:
                    self.draw_target.adjust_last_line_count(LineAdjust.keep(adjust))

    def println(self, msg: str, now: float) -> None:
        """Print ``msg`` above all members; an empty message prints one blank line."""
        lines = _split_lines(msg) if msg else [""]
        self.draw(True, lines, now)

    def draw_state(self, idx: int) -> DrawStateWrapper:
        """Return the draw state of member ``idx``, creating it if needed."""
        with self.lock:
            member = self.members[idx]
            if member.draw_state is None:
                member.draw_state = DrawState(move_cursor=self.move_cursor)
            return DrawStateWrapper.for_multi(member.draw_state, self.orphan_lines)

    def is_hidden(self) -> bool:
        return self.draw_target.is_hidden()

    def suspend(self, f: Callable[[], R], now: float) -> R:
        """Clear the display, run ``f``, then draw again; return what ``f`` returned."""
        with self.lock:
            self.clear(now)
            result = f()
            self.draw(True, None, time.monotonic())
            return result

    def width(self) -> int:
        return self.draw_target.width()

    def insert(self, location: InsertLocation) -> int:
        """Take a slot for a new member, place it in the order; return the slot."""
        with self.lock:
            if self.free_set:
                idx = self.free_set.pop()
                self.members[idx] = _Member()
            else:
                self.members.append(_Member())
                idx = len(self.members) - 1

            kind, value = location.kind, location.value
            if kind is _LocationKind.END:
                self.ordering.append(idx)
            elif kind is _LocationKind.INDEX:
                self.ordering.insert(min(value, len(self.ordering)), idx)
            elif kind is _LocationKind.INDEX_FROM_BACK:
                self.ordering.insert(max(len(self.ordering) - value, 0), idx)
            elif kind is _LocationKind.AFTER:
                self.ordering.insert(self.ordering.index(value) + 1, idx)
            else:
                self.ordering.insert(self.ordering.index(value), idx)

            self._check_consistency()
            return idx

    def clear(self, now: float) -> None:
        """Wipe everything drawn, zombie lines included."""
        with self.lock:
            drawable = self.draw_target.drawable(True, now)
            if drawable is None:
                return
            drawable.adjust_last_line_count(LineAdjust.clear(self.zombie_lines_count))
            self.zombie_lines_count = 0
            drawable.clear()

    def remove_idx(self, idx: int) -> None:
        """Free slot ``idx``; removing a free slot again does nothing."""
        with self.lock:
            if idx in self.free_set:
                return
            self.members[idx] = _Member()
            self.free_set.append(idx)
            self.ordering[:] = [x for x in self.ordering if x != idx]
            self._check_consistency()

    def __len__(self) -> int:
        return len(self.members) - len(self.free_set)

    def _check_consistency(self) -> None:
        if len(self) != len(self.ordering):
            raise RuntimeError("Draw state is inconsistent")