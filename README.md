# tallybar

Building blocks for showing progress on a terminal:

- `tallybar.format` – durations, byte sizes and counts formatted for people
  to read.
- `tallybar.draw_target` – where progress output is painted and how often:
  terminals, terminal-like objects, or nowhere at all.
- `tallybar.multi` and `tallybar.multi_state` – several bars kept in order
  and redrawn together as one block.
- `tallybar.iter` – iterables and file objects that advance a bar as they
  are consumed.

## Installation

```
pip install tallybar
```

## Human-readable formatting

```python
from datetime import timedelta
from tallybar.format import (
    BinaryBytes, DecimalBytes, FormattedDuration, HumanBytes,
    HumanCount, HumanDuration, HumanFloatCount,
)

str(HumanBytes(3 * 1024 * 1024))                        # '3.00 MiB'
str(BinaryBytes(1536))                                  # '1.50 KiB'
str(DecimalBytes(3_000_000))                            # '3.00 MB'
str(HumanDuration(timedelta(seconds=8)))                # '8 seconds'
format(HumanDuration(timedelta(hours=2)), "#")          # '2h'
str(FormattedDuration(timedelta(hours=1, seconds=5)))   # '01:00:05'
str(FormattedDuration(timedelta(days=2, minutes=3)))    # '2d 00:03:00'
str(HumanCount(33857009))                               # '33,857,009'
str(HumanFloatCount(33857009.123456))                   # '33,857,009.1235'
```

Durations may be given as a `timedelta` or as a number of seconds; a
negative duration raises `ValueError`.

`HumanDuration` rounds rather than truncates, and avoids showing "1 unit"
for anything but seconds: 89 seconds stays in seconds, 90 seconds becomes
"2 minutes". The `#` format flag gives the short form (`2h`, `3m`, `10d`).

## Draw targets

`ProgressDrawTarget` says where output is painted:

- `ProgressDrawTarget.stderr()` / `stdout()` – a buffered terminal over the
  standard stream, refreshed at most 20 times a second;
  `stderr_with_hz(rate)` / `stdout_with_hz(rate)` set another rate
  (1 to 255, otherwise `ValueError`).
- `ProgressDrawTarget.term(Terminal(stream), rate)` – any text stream.
  When the stream is not a tty the target counts as hidden and draws
  nothing, so output piped to a file stays free of escape codes.
- `ProgressDrawTarget.term_like(obj)` / `term_like_with_hz(obj, rate)` – any
  object with the `Terminal` methods (`width`, `height`, `move_cursor_up`,
  `move_cursor_down`, `clear_line`, `write_line`, `write_str`, `flush`),
  without or with rate limiting.
- `ProgressDrawTarget.hidden()` – draws nothing.

To paint, ask the target for a `Drawable`; it is `None` when the target is
hidden or the rate limiter says not yet:

```python
import time
from tallybar.draw_target import ProgressDrawTarget

target = ProgressDrawTarget.stderr()
drawable = target.drawable(force_draw=True, now=time.monotonic())
if drawable is not None:
    with drawable.state() as state:
        state.lines.append("[#####-----] 50%")
    drawable.draw()
```

Each draw erases the lines painted the time before, then writes the new
ones. `measure_text_width(text)` gives the columns a string takes on screen,
ignoring ANSI escape codes; it is used to account for lines that wrap.

## Several bars at once

`MultiProgress` keeps an ordered list of bars and redraws them through one
shared draw target (stderr by default). A bar here is any object with a
`draw_target` attribute and a `set_draw_target(target)` method; adding it
to a `MultiProgress` gives it a target that draws through the group.

```python
from tallybar.draw_target import MultiProgressAlignment, ProgressDrawTarget
from tallybar.multi import MultiProgress


class Bar:
    def __init__(self):
        self.draw_target = ProgressDrawTarget.hidden()

    def set_draw_target(self, target):
        self.draw_target = target


mp = MultiProgress(ProgressDrawTarget.stderr())
mp.set_alignment(MultiProgressAlignment.BOTTOM)

first = mp.add(Bar())
second = mp.insert_after(first, Bar())
mp.insert_before(first, Bar())
mp.insert(0, Bar())
mp.insert_from_back(1, Bar())

mp.println("starting!")              # printed above all bars
result = mp.suspend(lambda: 42)      # bars cleared while the callable runs
mp.remove(second)
mp.clear()
```

Removed slots are reused by later insertions; removing a bar that is not a
member, or removing it twice, has no effect, while removing a bar that
belongs to another `MultiProgress` raises `ValueError`. `insert_before` and
`insert_after` raise `ValueError` when the reference bar is not a member.
`set_move_cursor(True)` moves the cursor instead of clearing lines, which
reduces flicker when the number of bars stays the same.

## Iterables and files

```python
from tallybar.iter import ProgressBarIter, ProgressFile, progress_with

for item in progress_with(range(1000), bar):
    ...

with open("data.bin", "rb") as raw, ProgressFile(raw, bar) as tracked:
    while tracked.read(65536):
        pass
```

`ProgressBarIter` calls `bar.inc(1)` for each item and, when the iterable
is exhausted, `bar.finish_using_style()` unless `bar.is_finished()` is
already true. Its `with_style`, `with_prefix`, `with_message`,
`with_position`, `with_elapsed` and `with_finish` pass the value on to the
bar's method of the same name and return the wrapper, so calls can be
chained.

`ProgressFile` calls `bar.inc(n)` with the number of bytes or characters
moved by `read`, `readinto`, `readline`, `write` and line iteration, and
`bar.set_position(pos)` after `seek`; `tell` and `flush` pass straight
through. Leaving its `with` block closes the wrapped file.

## What this package does not do

There is no progress bar or spinner class here, no template or style
language for rendering a bar into text, and no command-line program. The
bar objects used above are supplied by you: `MultiProgress`,
`ProgressBarIter` and `ProgressFile` only call the methods listed in their
sections, and the lines a bar shows are whatever you put into its draw
state.

## Running the tests

```
pip install -e ".[test]"
pytest
```