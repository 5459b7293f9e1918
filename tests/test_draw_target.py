import io
import threading

import pytest

from tallybar.draw_target import (
    MAX_BURST,
    DrawState,
    DrawStateWrapper,
    LineAdjust,
    MultiProgressAlignment,
    ProgressDrawTarget,
    RateLimiter,
    Terminal,
    measure_text_width,
)


class RecordingTerm:
    def __init__(self, width=80, height=24):
        self._width = width
        self._height = height
        self.ops = []

    def width(self):
        return self._width

    def height(self):
        return self._height

    def move_cursor_up(self, n):
        self.ops.append(("up", n))

    def move_cursor_down(self, n):
        self.ops.append(("down", n))

    def clear_line(self):
        self.ops.append(("clear",))

    def write_line(self, text):
        self.ops.append(("line", text))

    def write_str(self, text):
        self.ops.append(("str", text))

    def flush(self):
        self.ops.append(("flush",))

    def written(self):
        return [op[1] for op in self.ops if op[0] == "str"]


class FakeMultiState:
    def __init__(self):
        self.lock = threading.RLock()
        self.zombies = []
        self.draws = []
        self.member = DrawState(lines=["stale"])
        self.orphans = []

    def mark_zombie(self, idx):
        self.zombies.append(idx)

    def is_hidden(self):
        return True

    def width(self):
        return 42

    def draw_state(self, idx):
        return DrawStateWrapper.for_multi(self.member, self.orphans)

    def draw(self, force_draw, extra_lines, now):
        self.draws.append((force_draw, extra_lines, now))


def test_measure_ignores_ansi_codes():
    assert measure_text_width("\x1b[31mabc\x1b[0m") == measure_text_width("abc")
    assert measure_text_width("abc") == 3


def test_measure_wide_characters():
    assert measure_text_width("日本") == 4


def test_rate_limiter_allows_burst_then_blocks():
    limiter = RateLimiter(20, now=0.0)
    results = [limiter.allow(0.0) for _ in range(MAX_BURST + 5)]
    assert sum(results) == MAX_BURST
    assert results[-1] is False
    assert limiter.allow(1.0) is True


def test_rate_limiter_rejects_time_going_backwards():
    limiter = RateLimiter(20, now=5.0)
    assert limiter.allow(4.0) is False


@pytest.mark.parametrize("rate", [0, 256])
def test_rate_limiter_invalid_rate(rate):
    with pytest.raises(ValueError):
        RateLimiter(rate, now=0.0)


def test_line_adjust_round_trip_and_saturation():
    assert LineAdjust.keep(4).apply(LineAdjust.clear(4).apply(7)) == 7
    assert LineAdjust.keep(10).apply(3) == 0


def test_draw_lines_returns_line_count():
    term = RecordingTerm(width=80)
    state = DrawState(lines=["a", "b"])
    assert state.draw_to_term(term, 0) == 2
    written = term.written()
    assert written[:2] == ["a", "b"]
    assert written[-1] == " " * (80 - len("b"))
    assert term.ops[-1] == ("flush",)


def test_draw_counts_wrapped_lines():
    term = RecordingTerm(width=40)
    state = DrawState(lines=["x" * 80])
    assert state.draw_to_term(term, 0) == 2


def test_draw_respects_terminal_height():
    term = RecordingTerm(width=80, height=5)
    state = DrawState(lines=[f"line {i}" for i in range(10)])
    assert state.draw_to_term(term, 0) == 5
    assert "line 5" not in term.written()


def test_draw_clears_previous_lines():
    term = RecordingTerm()
    state = DrawState()
    assert state.draw_to_term(term, 3) == 0
    assert term.ops.count(("clear",)) == 3


def test_move_cursor_moves_up_instead_of_clearing():
    term = RecordingTerm()
    state = DrawState(lines=["a"], move_cursor=True)
    state.draw_to_term(term, 5)
    assert term.ops[0] == ("up", 5)
    assert ("clear",) not in term.ops


def test_bottom_alignment_keeps_height():
    term = RecordingTerm()
    state = DrawState(lines=["a"], alignment=MultiProgressAlignment.BOTTOM)
    assert state.draw_to_term(term, 3) == 3
    assert term.ops.count(("line", "")) == 2


def test_reset_empties_state():
    state = DrawState(lines=["a", "b"], orphan_lines_count=1)
    state.reset()
    assert state.lines == []
    assert state.orphan_lines_count == 0


def test_wrapper_for_multi_moves_orphans():
    orphans = []
    state = DrawState(lines=["o1", "o2", "bar"], orphan_lines_count=2)
    with DrawStateWrapper.for_multi(state, orphans) as inner:
        assert inner is state
    assert orphans == ["o1", "o2"]
    assert state.lines == ["bar"]
    assert state.orphan_lines_count == 0


def test_wrapper_for_term_keeps_lines():
    state = DrawState(lines=["o1", "bar"], orphan_lines_count=1)
    with DrawStateWrapper.for_term(state):
        pass
    assert state.lines == ["o1", "bar"]


def test_hidden_target():
    target = ProgressDrawTarget.hidden()
    assert target.is_hidden() is True
    assert target.width() == 0
    assert target.drawable(True, 0.0) is None
    assert target.remote() is None


def test_term_target_on_non_tty_is_hidden():
    target = ProgressDrawTarget.term(Terminal(io.StringIO()), 20)
    assert target.is_hidden() is True
    assert target.drawable(True, 0.0) is None


def test_term_target_rejects_zero_rate():
    with pytest.raises(ValueError):
        ProgressDrawTarget.term(Terminal(io.StringIO()), 0)


def test_term_like_target_draws():
    term = RecordingTerm(width=60)
    target = ProgressDrawTarget.term_like(term)
    assert target.is_hidden() is False
    assert target.width() == 60
    drawable = target.drawable(False, 0.0)
    with drawable.state() as state:
        state.lines.append("hello")
    drawable.draw()
    assert "hello" in term.written()


def test_drawable_state_is_reset():
    term = RecordingTerm()
    target = ProgressDrawTarget.term_like(term)
    drawable = target.drawable(False, 0.0)
    with drawable.state() as state:
        state.lines.extend(["a", "b"])
    drawable.draw()
    with target.drawable(False, 0.0).state() as state:
        assert state.lines == []


def test_clear_erases_drawn_lines():
    term = RecordingTerm()
    target = ProgressDrawTarget.term_like(term)
    drawable = target.drawable(False, 0.0)
    with drawable.state() as state:
        state.lines.extend(["a", "b"])
    drawable.draw()
    term.ops.clear()
    target.drawable(True, 0.0).clear()
    assert term.ops.count(("clear",)) == 2


def test_adjust_last_line_count_affects_next_draw():
    term = RecordingTerm()
    target = ProgressDrawTarget.term_like(term)
    target.adjust_last_line_count(LineAdjust.clear(4))
    target.drawable(True, 0.0).draw()
    assert term.ops.count(("clear",)) == 4


def test_term_like_with_hz_rate_limits_unless_forced():
    target = ProgressDrawTarget.term_like_with_hz(RecordingTerm(), 20)
    allowed = [target.drawable(False, 0.0) is not None for _ in range(MAX_BURST + 5)]
    assert allowed.count(True) <= MAX_BURST
    assert allowed[-1] is False
    assert target.drawable(True, 0.0) is not None


def test_remote_target_delegates_to_multi_state():
    multi = FakeMultiState()
    target = ProgressDrawTarget.new_remote(multi, 3)
    assert target.remote() == (multi, 3)
    assert target.is_hidden() is True
    assert target.width() == 42
    target.mark_zombie()
    assert multi.zombies == [3]


def test_remote_disconnect_clears_member():
    multi = FakeMultiState()
    target = ProgressDrawTarget.new_remote(multi, 1)
    target.disconnect(7.0)
    assert multi.member.lines == []
    assert multi.draws == [(True, None, 7.0)]


def test_terminal_buffers_until_flush():
    stream = io.StringIO()
    term = Terminal(stream)
    term.move_cursor_up(2)
    term.move_cursor_up(0)
    term.write_str("abc")
    assert stream.getvalue() == ""
    term.flush()
    assert stream.getvalue() == "\x1b[2Aabc"
    assert term.is_term() is False


def test_terminal_write_line_adds_newline():
    stream = io.StringIO()
    term = Terminal(stream)
    term.write_line("x")
    term.flush()
    assert stream.getvalue() == "x\n"