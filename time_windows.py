"""Time windows: split scene boundaries into bounded, contiguous windows."""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterator, Sequence

from decimals import DECIMAL_CONTEXT, DecimalLike, NonZeroDecimal, round_places, to_decimal
from errors import WindowBoundsError

DURATION_PLACES = 3


@dataclass(frozen=True)
class TimeWindow:
    start: Decimal
    end: NonZeroDecimal

    def __post_init__(self) -> None:
        if self.start >= self.end.value:
            raise WindowBoundsError(self.start, None, self.end)

    @property
    def duration(self) -> NonZeroDecimal:
        # Rounded to milliseconds so extraction always covers at least one frame.
        delta = DECIMAL_CONTEXT.subtract(self.end.value, self.start)
        return NonZeroDecimal(round_places(delta, DURATION_PLACES))


class WindowSequence:
    """
    Lazy, single-pass iterator over windows between two boundaries.

    Intermediate window ends are rounded to whole seconds; the final window
    ends exactly on ``end`` so fractional scene cuts are preserved. A tail
    that would round to a zero duration is folded into the window before it.
    """

    def __init__(self, start: DecimalLike, max_step_size: int, end: DecimalLike) -> None:
        if isinstance(max_step_size, bool) or not isinstance(max_step_size, int) or max_step_size <= 0:
            raise WindowBoundsError(start, max_step_size, end)

        cursor = to_decimal(start)
        end_value = to_decimal(end)
        if cursor >= end_value or end_value.is_zero() or _rounds_to_zero(end_value, cursor):
            raise WindowBoundsError(cursor, max_step_size, end_value)

        self._cursor = cursor
        self._end = NonZeroDecimal(end_value)
        self._step = Decimal(max_step_size)
        self.max_step_size = max_step_size

    @property
    def end(self) -> NonZeroDecimal:
        return self._end

    def __iter__(self) -> Iterator[TimeWindow]:
        return self

    def __next__(self) -> TimeWindow:
        start = self._cursor
        end = self._end.value
        if start == end:
            raise StopIteration

        stepped = round_places(DECIMAL_CONTEXT.add(start, self._step), 0)
        if stepped.is_zero():
            # A window cannot end on zero; run on to the following step.
            stepped = self._step
        next_end = stepped if stepped < end else end
        if next_end != end and _rounds_to_zero(end, next_end):
            next_end = end
        self._cursor = next_end
        return TimeWindow(start=start, end=NonZeroDecimal(next_end))


def _rounds_to_zero(end: Decimal, start: Decimal) -> bool:
    return round_places(DECIMAL_CONTEXT.subtract(end, start), DURATION_PLACES).is_zero()


def build_window_plan(
    boundaries: Sequence[Decimal],
    max_step_size: int,
) -> list[TimeWindow]:
    """Flatten one window sequence per consecutive boundary pair, in order."""
    sequences = [
        WindowSequence(start, max_step_size, end)
        for start, end in zip(boundaries, boundaries[1:])
    ]
    return list(itertools.chain.from_iterable(sequences))
