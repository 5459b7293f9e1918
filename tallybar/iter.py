"""Progress reporting for iterables and file-like objects."""

from __future__ import annotations

import io
import operator
from typing import Any, Generic, Iterable, Iterator, TypeVar

__all__ = ["ProgressBarIter", "ProgressFile", "progress_with"]

T = TypeVar("T")


class ProgressBarIter(Generic[T]):
    """An iterator that advances a progress bar by one for every item.

    When the wrapped iterator is exhausted the bar is finished using its
    style's finish behaviour, unless it was finished already.
    """

    def __init__(self, it: Iterable[T], progress: Any) -> None:
        self.it: Iterator[T] = iter(it)
        self.progress = progress

    def __repr__(self) -> str:
        return f"ProgressBarIter(it={self.it!r}, progress={self.progress!r})"

    def __iter__(self) -> ProgressBarIter[T]:
        return self

    def __next__(self) -> T:
        try:
            item = next(self.it)
        except StopIteration:
            if not self.progress.is_finished():
                self.progress.finish_using_style()
            raise
        self.progress.inc(1)
        return item

    def __length_hint__(self) -> int:
        return operator.length_hint(self.it)

    def with_style(self, style: Any) -> ProgressBarIter[T]:
        """Set the style of the underlying bar and return this iterator."""
        self.progress = self.progress.with_style(style)
        return self

    def with_prefix(self, prefix: str) -> ProgressBarIter[T]:
        """Set the prefix of the underlying bar and return this iterator."""
        self.progress = self.progress.with_prefix(prefix)
        return self

    def with_message(self, message: str) -> ProgressBarIter[T]:
        """Set the message of the underlying bar and return this iterator."""
        self.progress = self.progress.with_message(message)
        return self

    def with_position(self, position: int) -> ProgressBarIter[T]:
        """Set the position of the underlying bar and return this iterator."""
        self.progress = self.progress.with_position(position)
        return self

    def with_elapsed(self, elapsed: Any) -> ProgressBarIter[T]:
        """Set the elapsed time of the underlying bar and return this iterator."""
        self.progress = self.progress.with_elapsed(elapsed)
        return self

    def with_finish(self, finish: Any) -> ProgressBarIter[T]:
        """Set the finish behaviour of the underlying bar and return this iterator."""
        self.progress = self.progress.with_finish(finish)
        return self


class ProgressFile:
    """A file-like wrapper that advances a progress bar by the amount transferred.

    Reads and writes increase the position by the number of bytes (or
    characters) moved; seeking sets the position to the new offset.
    """

    def __init__(self, raw: Any, progress: Any) -> None:
        self.raw = raw
        self.progress = progress

    def __repr__(self) -> str:
        return f"ProgressFile(raw={self.raw!r}, progress={self.progress!r})"

    def __enter__(self) -> ProgressFile:
        return self

    def __exit__(self, *args: Any) -> None:
        close = getattr(self.raw, "close", None)
        if close is not None:
            close()

    def __iter__(self) -> Iterator[Any]:
        while True:
            line = self.readline()
            if not line:
                return
            yield line

    def read(self, size: int = -1) -> Any:
        data = self.raw.read(size)
        if data:
            self.progress.inc(len(data))
        return data

    def readinto(self, buffer: Any) -> int | None:
        count = self.raw.readinto(buffer)
        if count:
            self.progress.inc(count)
        return count

    def readline(self, size: int = -1) -> Any:
        line = self.raw.readline(size)
        if line:
            self.progress.inc(len(line))
        return line

    def write(self, data: Any) -> int | None:
        count = self.raw.write(data)
        if count:
            self.progress.inc(count)
        return count

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        pos = self.raw.seek(offset, whence)
        self.progress.set_position(pos)
        return pos

    def tell(self) -> int:
        # Passed straight through: the position has not changed.
        return self.raw.tell()

    def flush(self) -> None:
        self.raw.flush()


def progress_with(iterable: Iterable[T], progress: Any) -> ProgressBarIter[T]:
    """Wrap ``iterable`` so that ``progress`` advances as it is consumed."""
    return ProgressBarIter(iterable, progress)