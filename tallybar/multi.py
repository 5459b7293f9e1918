"""Several progress bars drawn together, one below another."""

from __future__ import annotations

import time
from typing import Any, Callable, Protocol, TypeVar

from tallybar.draw_target import MultiProgressAlignment, ProgressDrawTarget
from tallybar.multi_state import InsertLocation, MultiState

__all__ = ["MultiProgress"]

R = TypeVar("R")


class _Bar(Protocol):
    """What a multi progress needs from a progress bar."""

    draw_target: ProgressDrawTarget

    def set_draw_target(self, target: ProgressDrawTarget) -> None: ...


_B = TypeVar("_B", bound=_Bar)


def _bar_index(pb: Any) -> int | None:
    """Return the slot index of ``pb`` in its multi progress, or None."""
    remote = pb.draw_target.remote()
    return None if remote is None else remote[1]


class MultiProgress:
    """Manages several progress bars, possibly updated from different threads.

    Bars added here are redrawn through one shared draw target, which by
    default is stderr at most 20 times a second.
    """

    def __init__(self, draw_target: ProgressDrawTarget | None = None) -> None:
        if draw_target is None:
            draw_target = ProgressDrawTarget.stderr()
        self.state = MultiState(draw_target)

    def __repr__(self) -> str:
        return f"MultiProgress(members={len(self.state)})"

    def set_draw_target(self, target: ProgressDrawTarget) -> None:
        """Paint to ``target`` from now on."""
        with self.state.lock:
            self.state.draw_target.disconnect(time.monotonic())
            self.state.draw_target = target

    def set_move_cursor(self, move_cursor: bool) -> None:
        """Move the cursor instead of clearing lines where possible.

        This reduces flicker; do not enable it if the number of bars changes.
        """
        with self.state.lock:
            self.state.move_cursor = move_cursor

    def set_alignment(self, alignment: MultiProgressAlignment) -> None:
        with self.state.lock:
            self.state.alignment = alignment

    def add(self, pb: _B) -> _B:
        """Add ``pb`` below all other bars and return it."""
        return self._internalize(InsertLocation.end(), pb)

    def insert(self, index: int, pb: _B) -> _B:
        """Insert ``pb`` at visual position ``index``, or at the end if past it."""
        return self._internalize(InsertLocation.index(index), pb)

    def insert_from_back(self, index: int, pb: _B) -> _B:
        """Insert ``pb`` ``index`` places from the end, or at the start if past it."""
        return self._internalize(InsertLocation.index_from_back(index), pb)

    def insert_before(self, before: Any, pb: _B) -> _B:
        """Insert ``pb`` right above the member bar ``before``."""
        return self._internalize(InsertLocation.before(self._member_index(before)), pb)

    def insert_after(self, after: Any, pb: _B) -> _B:
        """Insert ``pb`` right below the member bar ``after``."""
        return self._internalize(InsertLocation.after(self._member_index(after)), pb)

    def remove(self, pb: Any) -> None:
        """Remove ``pb``; a bar that is not a member is left alone.

        Raises ValueError if ``pb`` belongs to a different multi progress.
        """
        remote = pb.draw_target.remote()
        if remote is None:
            return
        state, idx = remote
        if state is not self.state:
            raise ValueError("progress bar belongs to a different MultiProgress")
        pb.set_draw_target(ProgressDrawTarget.hidden())
        self.state.remove_idx(idx)

    def println(self, msg: str) -> None:
        """Print a line above all bars; nothing happens when the target is hidden."""
        with self.state.lock:
            self.state.println(msg, time.monotonic())

    def suspend(self, f: Callable[[], R]) -> R:
        """Hide all bars, run ``f``, draw again and return what ``f`` returned.

        The internal lock is held while ``f`` runs.
        """
        with self.state.lock:
            return self.state.suspend(f, time.monotonic())

    def clear(self) -> None:
        """Wipe all bars from the display."""
        with self.state.lock:
            self.state.clear(time.monotonic())

    def is_hidden(self) -> bool:
        with self.state.lock:
            return self.state.is_hidden()

    def _member_index(self, pb: Any) -> int:
        idx = _bar_index(pb)
        if idx is None:
            raise ValueError("progress bar is not a member of a MultiProgress")
        return idx

    def _internalize(self, location: InsertLocation, pb: _B) -> _B:
        idx = self.state.insert(location)
        pb.set_draw_target(ProgressDrawTarget.new_remote(self.state, idx))
        return pb